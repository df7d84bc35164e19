"""
Unit Tests for DDL Emitters
===========================

PostgreSQL, MySQL, Snowflake and MongoDB renderers over the same schema graph.
"""

import json

import pytest

from dbdoc.core.dsl.normalizer import normalize
from dbdoc.core.rendering.dialects import (
    Dialect,
    MongoRenderer,
    MySQLRenderer,
    PostgresRenderer,
    SnowflakeRenderer,
    get_renderer,
    render_all_dialects,
    render_ddl,
)
from dbdoc.models.graph import TableRef


@pytest.fixture
def flagged_graph():
    """One column carrying every constraint flag."""
    return normalize(
        {
            "project": "flags",
            "targets": [
                {
                    "db": "app",
                    "schema": "core",
                    "tables": [
                        {
                            "name": "accounts",
                            "columns": [
                                {"name": "id", "type": "INT", "pk": True, "not_null": True, "unique": True},
                                {"name": "nickname", "type": "TEXT"},
                                {"name": "untyped"},
                            ],
                        }
                    ],
                }
            ],
        }
    )


class TestRendererFactory:
    @pytest.mark.parametrize(
        "dialect,expected",
        [
            ("postgres", PostgresRenderer),
            (Dialect.SNOWFLAKE, SnowflakeRenderer),
            ("MongoDB", MongoRenderer),
            ("mysql", MySQLRenderer),
        ],
    )
    def test_get_renderer(self, dialect, expected):
        assert isinstance(get_renderer(dialect), expected)

    def test_unknown_dialect(self):
        with pytest.raises(ValueError, match="Unsupported dialect"):
            get_renderer("oracle")

    def test_render_all_dialects(self, warehouse_graph):
        outputs = render_all_dialects(warehouse_graph)

        assert set(outputs) == {"postgres", "mysql", "snowflake", "mongodb"}

    def test_render_selected_dialects(self, warehouse_graph):
        assert list(render_all_dialects(warehouse_graph, ["snowflake"])) == ["snowflake"]


class TestPostgres:
    def test_flags_render_inline(self, flagged_graph):
        ddl = render_ddl(flagged_graph, "postgres")

        assert "-- PostgreSQL DDL" in ddl
        assert "-- Project: flags" in ddl
        assert "CREATE TABLE IF NOT EXISTS app.core.accounts (" in ddl
        assert "  id INT PRIMARY KEY UNIQUE NOT NULL," in ddl
        assert "  untyped VARCHAR\n);" in ddl

    def test_table_order_dims_before_facts(self, warehouse_graph):
        ddl = render_ddl(warehouse_graph, Dialect.POSTGRES)

        dim = ddl.index("analytics.core.dim_users")
        other = ddl.index("analytics.core.events (")
        fact = ddl.index("analytics.core.fct_orders (")
        assert dim < other < fact

    def test_references_and_defaults(self, warehouse_graph):
        ddl = render_ddl(warehouse_graph, "postgres")

        assert "  user_id BIGINT REFERENCES analytics.core.dim_users(user_id)" in ddl
        assert "  token UUID DEFAULT gen_random_uuid()" in ddl
        assert "  created_at TIMESTAMPTZ DEFAULT now()" in ddl

    def test_reference_qualification(self, warehouse_graph):
        renderer = PostgresRenderer()
        table = warehouse_graph.tables[TableRef("analytics", "core", "fct_orders")]

        assert renderer.reference_target(table, "dim_users") == "analytics.core.dim_users"
        assert renderer.reference_target(table, "mart.dim_users") == "analytics.mart.dim_users"
        assert renderer.reference_target(table, "other.mart.dim_users") == "other.mart.dim_users"


class TestSnowflake:
    def test_type_aliases(self, warehouse_graph):
        ddl = render_ddl(warehouse_graph, "snowflake")

        assert "CREATE OR REPLACE TABLE analytics.core.dim_users (" in ddl
        assert "VARCHAR" not in ddl
        assert "  email STRING UNIQUE NOT NULL" in ddl
        assert "  profile VARIANT" in ddl
        assert "  event_id NUMBER AUTOINCREMENT NOT NULL" in ddl
        assert "  created_at TIMESTAMP_TZ DEFAULT CURRENT_TIMESTAMP()" in ddl
        assert "  token STRING DEFAULT UUID_STRING()" in ddl

    def test_trailing_primary_key(self, warehouse_graph):
        ddl = render_ddl(warehouse_graph, "snowflake")

        assert "  PRIMARY KEY (user_id)\n);" in ddl

    def test_composite_primary_key(self):
        graph = normalize(
            {
                "targets": [
                    {
                        "db": "d",
                        "tables": [
                            {
                                "name": "lines",
                                "columns": [{"name": "a", "type": "INT"}, {"name": "b", "type": "INT"}],
                                "primary_key": ["a", "b"],
                            }
                        ],
                    }
                ]
            }
        )

        assert "PRIMARY KEY (a, b)" in render_ddl(graph, "snowflake")

    def test_foreign_keys_are_table_constraints(self, warehouse_graph):
        ddl = render_ddl(warehouse_graph, "snowflake")

        assert (
            "  PRIMARY KEY (order_id),\n"
            "  FOREIGN KEY (user_id) REFERENCES analytics.core.dim_users(user_id)\n);"
        ) in ddl

    @pytest.mark.parametrize(
        "raw,expected",
        [("varchar(64)", "STRING"), ("text", "STRING"), ("", "STRING"), ("NUMBER(38,0)", "NUMBER(38,0)")],
    )
    def test_map_type(self, raw, expected):
        assert SnowflakeRenderer().map_type(raw) == expected


class TestMySQL:
    def test_database_and_engine(self, warehouse_graph):
        ddl = render_ddl(warehouse_graph, "mysql")

        assert ddl.startswith("-- MySQL DDL\n-- Project: warehouse")
        assert ddl.count("CREATE DATABASE IF NOT EXISTS analytics;") == 1
        assert "CREATE TABLE IF NOT EXISTS analytics.dim_users (" in ddl
        assert ddl.count(") ENGINE=InnoDB;") == 3

    def test_type_and_default_rewrites(self, warehouse_graph):
        ddl = render_ddl(warehouse_graph, Dialect.MYSQL)

        assert "  event_id INT AUTO_INCREMENT NOT NULL" in ddl
        assert "  token CHAR(36) DEFAULT (UUID())" in ddl
        assert "  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP" in ddl
        assert "  email VARCHAR(255) UNIQUE NOT NULL" in ddl
        assert "  profile JSON" in ddl

    def test_keys_are_table_constraints(self, warehouse_graph):
        ddl = render_ddl(warehouse_graph, "mysql")

        assert "  PRIMARY KEY (user_id)\n) ENGINE=InnoDB;" in ddl
        assert "  FOREIGN KEY (user_id) REFERENCES analytics.dim_users(user_id)\n) ENGINE=InnoDB;" in ddl
        assert ddl.index("analytics.dim_users (") < ddl.index("analytics.fct_orders (")

    def test_untyped_column_and_flags(self, flagged_graph):
        ddl = render_ddl(flagged_graph, "mysql")

        assert "  id INT UNIQUE NOT NULL," in ddl
        assert "  untyped VARCHAR(255)," in ddl
        assert "  PRIMARY KEY (id)" in ddl

    def test_auto_increment_drops_default(self):
        graph = normalize(
            {
                "targets": [
                    {
                        "db": "d",
                        "tables": [
                            {"name": "t", "columns": [{"name": "id", "type": "SERIAL", "pk": True, "default": "1"}]}
                        ],
                    }
                ]
            }
        )

        assert "  id INT AUTO_INCREMENT NOT NULL,\n" in render_ddl(graph, "mysql")

    def test_reference_target(self, warehouse_graph):
        renderer = MySQLRenderer()
        table = warehouse_graph.tables[TableRef("analytics", "core", "fct_orders")]

        assert renderer.reference_target(table, "dim_users") == "analytics.dim_users"
        assert renderer.reference_target(table, "mart.dim_users") == "analytics.dim_users"
        assert renderer.reference_target(table, "other.mart.dim_users") == "other.dim_users"


class TestMongo:
    def test_script_matches_json_schema(self, warehouse_graph):
        renderer = MongoRenderer()

        for table in warehouse_graph.tables.values():
            statement = renderer.render_table(table)
            options = statement[statement.index(", {") + 2 : statement.rindex(");")]

            assert json.loads(options) == {"validator": {"$jsonSchema": renderer.json_schema(table)}}

    def test_render_column_is_one_property_entry(self, warehouse_graph):
        table = warehouse_graph.tables[TableRef("analytics", "core", "fct_orders")]

        entry = MongoRenderer().render_column(table.columns["user_id"], table)

        assert entry == '"user_id": {"bsonType": ["long", "null"]}'
        assert f"        {entry}" in render_ddl(warehouse_graph, "mongodb")

    def test_collection_script(self, warehouse_graph):
        script = render_ddl(warehouse_graph, "mongodb")

        assert script.startswith("// MongoDB schema validation script")
        assert 'db.getSiblingDB("analytics").createCollection("fct_orders", {' in script
        assert '"$jsonSchema"' in script
        assert '"long"' in script
        assert '"null"' in script

    def test_required_and_nullable_unions(self, warehouse_graph):
        table = warehouse_graph.tables[TableRef("analytics", "core", "fct_orders")]

        schema = MongoRenderer().json_schema(table)

        assert schema["required"] == ["order_id", "amount"]
        assert schema["properties"]["order_id"]["bsonType"] == "long"
        assert schema["properties"]["user_id"]["bsonType"] == ["long", "null"]
        assert schema["properties"]["amount"]["bsonType"] == "decimal"
        assert schema["properties"]["created_at"]["bsonType"] == ["date", "null"]

    def test_flagged_column_is_required_and_single_typed(self, flagged_graph):
        table = flagged_graph.tables[TableRef("app", "core", "accounts")]

        schema = MongoRenderer().json_schema(table)

        assert "id" in schema["required"]
        assert schema["properties"]["id"]["bsonType"] == "int"
        assert schema["properties"]["untyped"]["bsonType"] == ["string", "null"]

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("BIGINT", "long"),
            ("INTERVAL", "string"),
            ("SMALLINT", "int"),
            ("BOOLEAN", "bool"),
            ("TIMESTAMP", "date"),
            ("DOUBLE PRECISION", "double"),
            ("NUMERIC(12,2)", "decimal"),
            ("JSONB", "object"),
            ("TEXT[]", "array"),
            ("TEXT", "string"),
        ],
    )
    def test_bson_type(self, raw, expected):
        assert MongoRenderer().bson_type(raw) == expected
