"""
ERD Generator
=============

Renders Mermaid ``erDiagram`` sources, one per (db, schema) group, with an
optional overview diagram covering every table.

Each table block lists ``column type "FLAGS"``; relationships come from
explicit foreign keys and from ``<name>_id`` naming conventions.
"""

import re
from typing import Dict, List, Optional, Tuple

from dbdoc.config.logging import get_logger
from dbdoc.core.rendering.environment import render_template
from dbdoc.core.rendering.naming import unique_file_name
from dbdoc.models.graph import Column, SchemaGraph, Table, TableRef

logger = get_logger(__name__)

OVERVIEW_FILE_NAME = "erd_all.mmd"

# Fixed flag order in the rendered token set
FLAG_ORDER = ("PK", "FK", "UNIQUE", "NOT_NULL")


def sanitize_name(raw: str) -> str:
    return re.sub(r"[^A-Za-z0-9_]", "_", str(raw or "").strip())


def sanitize_type(raw_type: Optional[str]) -> str:
    """Reduce a SQL type to a diagram-safe token: ``DECIMAL(10, 2)`` -> ``decimal_10_2``."""
    if not raw_type or not str(raw_type).strip():
        return "unknown"
    token = re.sub(r"[^A-Za-z0-9_]", "_", str(raw_type).strip())
    token = re.sub(r"_+", "_", token).strip("_")
    return token.lower() or "unknown"


def column_flags(column: Column) -> List[str]:
    present = {
        "PK": column.pk,
        "FK": column.fk is not None,
        "UNIQUE": column.unique,
        "NOT_NULL": column.not_null,
    }
    return [flag for flag in FLAG_ORDER if present[flag]]


class MermaidERDGenerator:
    """Builds Mermaid ER diagram text for groups of tables."""

    def __init__(self, graph: SchemaGraph) -> None:
        self.graph = graph
        self.logger = logger.bind(generator="mermaid")
        self._by_simple_name: Dict[str, List[TableRef]] = {}
        for ref in graph.tables:
            self._by_simple_name.setdefault(ref.table, []).append(ref)

    def generate(self, include_overview: bool = False) -> Dict[str, str]:
        groups: Dict[Tuple[str, str], List[Table]] = {}
        for ref, table in self.graph.tables.items():
            groups.setdefault((ref.db, ref.schema), []).append(table)

        diagrams: Dict[str, str] = {}
        if include_overview and self.graph.tables:
            diagrams[OVERVIEW_FILE_NAME] = self.render_diagram(list(self.graph.tables.values()))

        # distinct groups can sanitize to the same name
        used = set(diagrams)
        for (db, schema), tables in groups.items():
            stem = f"erd_{sanitize_name(db)}_{sanitize_name(schema)}"
            file_name = unique_file_name(stem, ".mmd", used)
            diagrams[file_name] = self.render_diagram(tables)

        self.logger.info("ER diagrams rendered", diagrams=len(diagrams))
        return diagrams

    def render_diagram(self, tables: List[Table]) -> str:
        lines: List[str] = []
        for table in tables:
            lines.append("")
            lines.append(f"  {sanitize_name(table.name)} {{")
            for column in table.columns.values():
                entry = f"    {sanitize_name(column.name)} {sanitize_type(column.type)}"
                flags = column_flags(column)
                if flags:
                    entry += f' "{",".join(flags)}"'
                lines.append(entry)
            lines.append("  }")

        relationships = self._relationships(tables)
        if relationships:
            lines.append("")
            lines.append("  %% Relationships")
            lines.extend(relationships)

        return render_template("erd.mmd.j2", lines=lines)

    def _relationships(self, tables: List[Table]) -> List[str]:
        lines: List[str] = []

        for table in tables:
            child = sanitize_name(table.name)
            for column in table.columns.values():
                if column.fk is None:
                    continue
                parent = self.resolve_table(column.fk.table, table.ref)
                parent_name = sanitize_name(parent.table if parent else column.fk.table.split(".")[-1])
                label = sanitize_name(column.fk.column or "fk")
                lines.append(f'  {parent_name} ||--o{{ {child} : "{label}"')

        for table in tables:
            child = sanitize_name(table.name)
            for column in table.columns.values():
                if column.fk is not None or not column.name.lower().endswith("_id"):
                    continue
                parent = self._infer_parent(column.name[:-3], table.ref)
                if parent is None or parent == table.ref:
                    continue
                lines.append(f'  {sanitize_name(parent.table)} ||--o{{ {child} : "{sanitize_name(column.name)}"')

        return lines

    def resolve_table(self, reference: str, context: TableRef) -> Optional[TableRef]:
        """Resolve a bare, schema- or fully-qualified table name relative to ``context``."""
        parts = reference.split(".")
        if len(parts) >= 3:
            candidate = TableRef(parts[-3], parts[-2], parts[-1])
            return candidate if candidate in self.graph.tables else None
        if len(parts) == 2:
            candidate = TableRef(context.db, parts[0], parts[1])
            return candidate if candidate in self.graph.tables else None
        return self._prefer_local(self._by_simple_name.get(reference, []), context)

    def _infer_parent(self, base: str, context: TableRef) -> Optional[TableRef]:
        if not base:
            return None
        for candidate in (base, f"dim_{base}", f"{base}s", f"dim_{base}s"):
            found = self._prefer_local(self._by_simple_name.get(candidate, []), context)
            if found is not None:
                return found
        return None

    def _prefer_local(self, candidates: List[TableRef], context: TableRef) -> Optional[TableRef]:
        if not candidates:
            return None
        for candidate in candidates:
            if candidate.db == context.db and candidate.schema == context.schema:
                return candidate
        return candidates[0]


def render_erd(graph: SchemaGraph, include_overview: bool = False) -> Dict[str, str]:
    """Render one Mermaid diagram per (db, schema) group, keyed by file name."""
    return MermaidERDGenerator(graph).generate(include_overview=include_overview)
