"""
Unit Tests for DSL Normalizer
=============================

Raw document to canonical SchemaGraph lowering.
"""

import pytest

from dbdoc.core.dsl.normalizer import (
    normalize,
    parse_foreign_key,
    parse_target,
    resolve_source_kind,
)
from dbdoc.exceptions import CompilerInternalError
from dbdoc.models.graph import (
    WILDCARD,
    ForeignKeyRef,
    OriginKind,
    SchemaGraph,
    SourceKind,
    Table,
    TableRef,
    TargetRef,
    UnresolvedTarget,
)


class TestParseTarget:
    """Test mapping target parsing."""

    def test_four_segments(self):
        target = parse_target("shop.public.orders.id")

        assert target == TargetRef("shop", "public", "orders", "id")
        assert not target.is_wildcard

    def test_extra_segments_stay_in_column(self):
        target = parse_target("shop.public.orders.payload.items")

        assert target.column == "payload.items"

    def test_three_segments_is_wildcard(self):
        target = parse_target("shop.public.orders")

        assert target.column == WILDCARD
        assert target.is_wildcard

    @pytest.mark.parametrize("raw", ["orders.id", "orders", 42, None, ["a", "b"]])
    def test_unresolvable_targets(self, raw):
        target = parse_target(raw)

        assert isinstance(target, UnresolvedTarget)
        assert target.raw == raw

    @pytest.mark.parametrize(
        "raw",
        [
            "..",
            "...",
            "shop..orders.id",
            ".public.orders",
            "shop.public.",
            "shop.public.orders.",
            "shop.public.orders. ",
        ],
    )
    def test_empty_segments_are_unresolved(self, raw):
        assert isinstance(parse_target(raw), UnresolvedTarget)


class TestSourceKinds:
    @pytest.mark.parametrize(
        "raw_kind,expected",
        [
            ("postgres", SourceKind.RELATIONAL),
            ("MySQL", SourceKind.RELATIONAL),
            ("mongodb", SourceKind.DOCUMENT),
            ("rest", SourceKind.API),
            ("csv", SourceKind.FILE),
        ],
    )
    def test_known_aliases(self, raw_kind, expected):
        assert resolve_source_kind(raw_kind, {}) == expected

    def test_unknown_kind_with_url_is_api(self):
        assert resolve_source_kind("salesforce", {"url": "https://x.example.com"}) == SourceKind.API

    def test_unknown_kind_without_url_is_file(self):
        assert resolve_source_kind("sftp-drop", {"path": "/data"}) == SourceKind.FILE


class TestForeignKeys:
    def test_dotted_string(self):
        assert parse_foreign_key("core.dim_users.user_id") == ForeignKeyRef("core.dim_users", "user_id")

    def test_bare_table(self):
        assert parse_foreign_key("dim_users") == ForeignKeyRef("dim_users")

    def test_dict_form(self):
        assert parse_foreign_key({"table": "dim_users", "column": "id"}) == ForeignKeyRef("dim_users", "id")

    def test_empty(self):
        assert parse_foreign_key(None) is None
        assert parse_foreign_key({"column": "id"}) is None


class TestNormalize:
    """Test full document normalization."""

    def test_orders_document(self, orders_doc):
        graph = normalize(orders_doc)

        assert graph.project == "orders_demo"
        ref = TableRef("shop", "public", "orders")
        assert list(graph.tables) == [ref]
        orders = graph.tables[ref]
        assert orders.columns["id"].pk is True
        assert orders.columns["total"].not_null is True
        assert orders.primary_key == ["id"]
        assert graph.sources["crm"].kind == SourceKind.RELATIONAL
        assert graph.sources["crm"].engine == "postgres"

    def test_table_keys_match_declared_triples(self, warehouse_doc):
        graph = normalize(warehouse_doc)

        declared = {
            (group["db"], group.get("schema") or "public", table["name"])
            for group in warehouse_doc["targets"]
            for table in group["tables"]
        }
        assert {(r.db, r.schema, r.table) for r in graph.tables} == declared

    def test_project_from_dict(self, warehouse_doc):
        assert normalize(warehouse_doc).project == "warehouse"

    def test_project_fallback(self, test_settings):
        graph = normalize({"targets": []})

        assert graph.project == test_settings.project_fallback_name

    def test_default_schema(self):
        graph = normalize({"targets": [{"db": "shop", "tables": [{"name": "t", "columns": [{"name": "a"}]}]}]})

        assert TableRef("shop", "public", "t") in graph.tables

    def test_last_declaration_wins(self, redeclared_doc):
        graph = normalize(redeclared_doc)

        ref = TableRef("shop", "public", "orders")
        assert len(graph.tables) == 1
        assert list(graph.tables[ref].columns) == ["id", "status"]
        assert graph.tables[ref].columns["id"].type == "BIGINT"
        assert graph.redeclared_tables == [ref]

    def test_table_level_keys(self):
        raw = {
            "targets": [
                {
                    "db": "shop",
                    "schema": "sales",
                    "tables": [
                        {
                            "name": "lines",
                            "columns": [
                                {"name": "order_id", "type": "INT"},
                                {"name": "line_no", "type": "INT"},
                                {"name": "sku", "type": "TEXT", "nullable": False},
                            ],
                            "primary_key": ["order_id", "line_no"],
                            "foreign_keys": [
                                {"columns": ["order_id"], "references": {"table": "orders", "columns": ["id"]}}
                            ],
                        }
                    ],
                }
            ]
        }

        table = normalize(raw).tables[TableRef("shop", "sales", "lines")]

        assert table.primary_key == ["order_id", "line_no"]
        assert table.columns["order_id"].fk == ForeignKeyRef("orders", "id")
        assert table.columns["sku"].not_null is True

    def test_column_defaults_are_strings(self):
        raw = {
            "targets": [
                {
                    "db": "d",
                    "tables": [
                        {"name": "t", "columns": [{"name": "flag", "default": False}, {"name": "n", "default": 0}]}
                    ],
                }
            ]
        }

        columns = normalize(raw).tables[TableRef("d", "public", "t")].columns

        assert columns["flag"].default == "FALSE"
        assert columns["n"].default == "0"

    def test_sources_without_id_are_skipped(self):
        graph = normalize({"targets": [], "sources": [{"kind": "csv"}, {"id": "s1", "kind": "csv"}]})

        assert list(graph.sources) == ["s1"]

    def test_mapping_origins(self, warehouse_doc):
        mappings = normalize(warehouse_doc).mappings

        assert [m.index for m in mappings] == list(range(len(mappings)))
        assert mappings[0].origin.kind == OriginKind.SOURCE
        assert mappings[1].origin.transform == "round(2)"
        assert mappings[3].origin.kind == OriginKind.FIELDS
        assert mappings[3].origin.fields == {"user_id": "users.id", "email": "users.email"}
        assert mappings[3].target.is_wildcard
        assert mappings[4].origin.kind == OriginKind.RULE
        assert mappings[4].notes == "Surrogate key"

    def test_malformed_mappings_are_kept(self):
        graph = normalize({"targets": [], "mappings": [{"target": 7}, "bad.target", {"target": "a.b.c.d"}]})

        assert len(graph.mappings) == 3
        assert not graph.mappings[0].resolved
        assert not graph.mappings[1].resolved
        assert graph.mappings[1].raw_target == "bad.target"
        assert graph.mappings[2].origin.kind == OriginKind.UNKNOWN

    def test_non_dict_input(self):
        graph = normalize(None)

        assert graph.tables == {}
        assert graph.mappings == []

    def test_to_dict_keys_targets_by_qualified_name(self, orders_doc):
        data = normalize(orders_doc).to_dict()

        assert list(data["targets"]) == ["shop.public.orders"]
        assert data["mappings"][0]["target"]["column"] == "id"


class TestSchemaGraphInvariants:
    def test_mismatched_table_key_raises(self):
        table = Table(ref=TableRef("a", "b", "c"))

        with pytest.raises(CompilerInternalError):
            SchemaGraph(project="p", tables={TableRef("a", "b", "other"): table})
