"""
Documentation Generator
=======================

Two documentation artifacts built from the same graph:

- a JSON-ready project summary (owners, targets with their tables, sources
  and totals), written as ``documentation.json``
- a static HTML site rendered from autoescaped Jinja2 templates: an overview,
  a table index, one page per table, a sources page and a mappings page

Table pages list the mappings that target the table and its upstream
table-level lineage.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from dbdoc.config.logging import get_logger
from dbdoc.core.lineage.builder import build_lineage, table_node_id
from dbdoc.core.rendering.environment import render_template
from dbdoc.core.rendering.erd import column_flags
from dbdoc.core.rendering.naming import safe_file_stem, unique_file_name
from dbdoc.core.rendering.tabular import MAPPING_CSV_HEADER, mapping_row
from dbdoc.models.graph import LineageGraph, SchemaGraph, Table, TableRef, TargetRef

logger = get_logger(__name__)

TABLES_DIR = "tables"

# Source metadata keys tried in order for the location column
LOCATION_KEYS = ("url", "connection", "location", "path", "db")


def _timestamp(generated_at: Optional[datetime]) -> str:
    moment = generated_at or datetime.now(timezone.utc)
    return moment.isoformat(timespec="seconds")


def _target_groups(graph: SchemaGraph) -> Dict[Tuple[str, str], List[Table]]:
    groups: Dict[Tuple[str, str], List[Table]] = {}
    for ref, table in graph.tables.items():
        groups.setdefault((ref.db, ref.schema), []).append(table)
    return groups


def source_location(metadata: Dict[str, Any]) -> Optional[str]:
    for key in LOCATION_KEYS:
        if metadata.get(key):
            return str(metadata[key])
    return None


def documentation_summary(graph: SchemaGraph) -> Dict[str, int]:
    return {
        "total_targets": len(_target_groups(graph)),
        "total_tables": len(graph.tables),
        "total_sources": len(graph.sources),
        "total_mappings": len(graph.mappings),
    }


def build_documentation(
    graph: SchemaGraph, generated_at: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Summarize a project for documentation consumers.

    Args:
        graph: Normalized schema graph
        generated_at: Timestamp to stamp; defaults to now (UTC)

    Returns:
        JSON-serializable summary dict
    """
    groups = _target_groups(graph)
    return {
        "project": graph.project,
        "owners": list(graph.owners),
        "generated_at": _timestamp(generated_at),
        "targets": [
            {
                "db": db,
                "schema": schema,
                "tables": [
                    {
                        "name": table.name,
                        "description": table.description,
                        "column_count": len(table.columns),
                    }
                    for table in tables
                ],
            }
            for (db, schema), tables in groups.items()
        ],
        "sources": [
            {
                "id": source.id,
                "kind": source.kind.value,
                "engine": source.engine,
                "location": source_location(source.metadata),
            }
            for source in graph.sources.values()
        ],
        "summary": documentation_summary(graph),
    }


class StaticSiteGenerator:
    """Renders the documentation pages, keyed by path relative to the site root."""

    def __init__(
        self,
        graph: SchemaGraph,
        lineage: Optional[LineageGraph] = None,
        generated_at: Optional[datetime] = None,
    ) -> None:
        self.graph = graph
        self.lineage = lineage if lineage is not None else build_lineage(graph)
        self.generated_at = _timestamp(generated_at)
        self.logger: Any = logger.bind(generator="docs")  # structlog.BoundLoggerBase

        used: Set[str] = {"index.html"}
        self.table_pages: Dict[TableRef, str] = {
            ref: unique_file_name(safe_file_stem(ref.key), ".html", used) for ref in graph.tables
        }

    def generate(self) -> Dict[str, str]:
        pages: Dict[str, str] = {
            "index.html": self._render(
                "index.html",
                "Overview",
                "",
                summary=documentation_summary(self.graph),
                owners=self.graph.owners,
                targets=self._targets(),
            ),
            f"{TABLES_DIR}/index.html": self._render(
                "tables.html", "Tables", "../", tables=self._table_rows()
            ),
            "sources.html": self._render("sources.html", "Sources", "", sources=self._source_rows()),
            "mappings.html": self._render(
                "mappings.html",
                "Mappings",
                "",
                header=MAPPING_CSV_HEADER,
                rows=[mapping_row(self.graph, mapping) for mapping in self.graph.mappings],
            ),
        }
        for ref, table in self.graph.tables.items():
            pages[f"{TABLES_DIR}/{self.table_pages[ref]}"] = self.render_table_page(table)

        self.logger.info("Documentation site rendered", pages=len(pages))
        return pages

    def render_table_page(self, table: Table) -> str:
        return self._render(
            "table.html",
            table.ref.key,
            "../",
            table={"description": table.description, "owner": table.owner},
            columns=[
                {
                    "name": column.name,
                    "type": column.type,
                    "flags": column_flags(column),
                    "default": column.default,
                    "references": self._reference_label(column.fk.table, column.fk.column)
                    if column.fk
                    else None,
                    "description": column.description,
                }
                for column in table.columns.values()
            ],
            mappings=self._incoming_mappings(table.ref),
            upstream=self._upstream(table.ref),
        )

    def _render(self, template: str, title: str, root: str, **context: Any) -> str:
        return render_template(
            f"docs/{template}",
            title=title,
            project=self.graph.project,
            root=root,
            generated_at=self.generated_at,
            **context,
        )

    @staticmethod
    def _reference_label(table: str, column: Optional[str]) -> str:
        return f"{table}.{column}" if column else table

    def _targets(self) -> List[Dict[str, Any]]:
        return [
            {
                "db": db,
                "schema": schema,
                "tables": [
                    {
                        "name": table.name,
                        "page": self.table_pages[table.ref],
                        "column_count": len(table.columns),
                    }
                    for table in tables
                ],
            }
            for (db, schema), tables in _target_groups(self.graph).items()
        ]

    def _table_rows(self) -> List[Dict[str, Any]]:
        return [
            {
                "key": ref.key,
                "page": self.table_pages[ref],
                "column_count": len(table.columns),
                "owner": table.owner,
                "description": table.description,
            }
            for ref, table in self.graph.tables.items()
        ]

    def _source_rows(self) -> List[Dict[str, Any]]:
        counts: Dict[str, int] = {}
        for mapping in self.graph.mappings:
            if mapping.origin.source_id:
                counts[mapping.origin.source_id] = counts.get(mapping.origin.source_id, 0) + 1
        return [
            {
                "id": source.id,
                "kind": source.kind.value,
                "engine": source.engine,
                "location": source_location(source.metadata),
                "mapping_count": counts.get(source.id, 0),
                "description": source.metadata.get("description"),
            }
            for source in self.graph.sources.values()
        ]

    def _incoming_mappings(self, ref: TableRef) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        for mapping in self.graph.mappings:
            target = mapping.target
            if not isinstance(target, TargetRef) or target.table_ref != ref:
                continue
            origin = mapping.origin
            if origin.fields:
                for column, path in origin.fields.items():
                    rows.append(
                        {
                            "column": column,
                            "source": origin.source_id,
                            "path": path,
                            "transform": origin.transform,
                            "rule": origin.rule,
                        }
                    )
                continue
            rows.append(
                {
                    "column": target.column,
                    "source": origin.source_id,
                    "path": origin.path,
                    "transform": origin.transform,
                    "rule": origin.rule,
                }
            )
        return rows

    def _upstream(self, ref: TableRef) -> List[Dict[str, Any]]:
        target_id = table_node_id(ref)
        rows: List[Dict[str, Any]] = []
        for edge in self.lineage.table_edges:
            if edge.target != target_id:
                continue
            node = self.lineage.get_node(edge.source)
            rows.append(
                {
                    "label": node.label if node else edge.source,
                    "kind": node.kind.value if node else "unknown",
                    "columns": edge.meta.get("columns", []),
                }
            )
        return rows


def render_documentation_site(
    graph: SchemaGraph,
    lineage: Optional[LineageGraph] = None,
    generated_at: Optional[datetime] = None,
) -> Dict[str, str]:
    """Render every documentation page for a normalized graph."""
    return StaticSiteGenerator(graph, lineage=lineage, generated_at=generated_at).generate()
