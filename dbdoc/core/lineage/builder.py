"""
Lineage Graph Builder
=====================

Derives a provenance graph from a normalized SchemaGraph.

Nodes: source, table, column, source_column, rule.
Edges: provenance -> target column (column_lineage), aggregated into
provenance root -> target table (table_lineage) with the set of
contributing column names.

Every declared source, table and column is emitted even when nothing maps to
it, and every mapping contributes to the graph: origins that name no source,
rule or fields fall back to an ``unknown`` provenance node.

Id segments are percent-escaped (``%``, ``:`` and, inside table keys, ``.``)
so that user-supplied names cannot forge another node's id.
"""

from typing import Any, Dict, List, Optional, Set, Tuple

from dbdoc.config.logging import get_logger
from dbdoc.exceptions import CompilerInternalError
from dbdoc.models.graph import (
    EdgeKind,
    LineageEdge,
    LineageGraph,
    LineageNode,
    Mapping,
    NodeKind,
    OriginKind,
    SchemaGraph,
    TableRef,
    TargetRef,
)

logger = get_logger(__name__)

UNKNOWN = "unknown"

_ENCLOSING_PAIRS = (("(", ")"), ('"', '"'), ("'", "'"))


def escape_segment(segment: str, dotted: bool = False) -> str:
    """Percent-escape the characters that delimit node id segments."""
    escaped = segment.replace("%", "%25").replace(":", "%3A")
    if dotted:
        escaped = escaped.replace(".", "%2E")
    return escaped


def source_node_id(source_id: str) -> str:
    return f"src:{escape_segment(source_id)}"


def source_column_node_id(source_id: str, path: str) -> str:
    return f"src:{escape_segment(source_id)}:{escape_segment(path)}"


def rule_node_id(rule: str) -> str:
    return f"rule:{rule}"


def _table_key(ref: TableRef) -> str:
    return ".".join(escape_segment(part, dotted=True) for part in (ref.db, ref.schema, ref.table))


def table_node_id(ref: TableRef) -> str:
    return f"t:{_table_key(ref)}"


def column_node_id(ref: TableRef, column: str) -> str:
    return f"t:{_table_key(ref)}.{escape_segment(column, dotted=True)}"


def _encloses(label: str, opening: str, closing: str) -> bool:
    """True when the first and last characters are one matching pair."""
    if len(label) < 2 or not (label.startswith(opening) and label.endswith(closing)):
        return False
    inner = label[1:-1]
    if opening == closing:
        return opening not in inner
    depth = 0
    for char in inner:
        if char == opening:
            depth += 1
        elif char == closing:
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def rule_label(rule: str) -> str:
    """Strip enclosing parentheses/quotes from a rule for display only."""
    label = rule.strip()
    stripped = True
    while stripped:
        stripped = False
        for opening, closing in _ENCLOSING_PAIRS:
            if _encloses(label, opening, closing):
                label = label[1:-1].strip()
                stripped = True
                break
    return label or rule


class LineageBuilder:
    """Builds one LineageGraph; create a new builder per graph."""

    def __init__(self) -> None:
        self.logger: Any = logger.bind(component="lineage")  # structlog.BoundLoggerBase
        self._nodes: Dict[str, LineageNode] = {}
        self._edges: List[LineageEdge] = []
        self._table_columns: Dict[Tuple[str, str], Set[str]] = {}
        self._unresolved: List[int] = []

    def build(self, graph: SchemaGraph) -> LineageGraph:
        self._add_declared_nodes(graph)

        for mapping in graph.mappings:
            self._add_mapping(graph, mapping)

        table_edges = [
            LineageEdge(
                id=f"te{position}",
                source=root,
                target=target,
                kind=EdgeKind.TABLE_LINEAGE,
                meta={"columns": sorted(columns)},
            )
            for position, ((root, target), columns) in enumerate(self._table_columns.items(), start=1)
        ]

        lineage = LineageGraph(
            nodes=list(self._nodes.values()),
            edges=self._edges,
            table_edges=table_edges,
            unresolved=self._unresolved,
        )
        self.logger.info("Lineage graph built", project=graph.project, **lineage.summary())
        return lineage

    def _ensure_node(
        self, node_id: str, kind: NodeKind, label: str, meta: Optional[Dict[str, Any]] = None
    ) -> LineageNode:
        existing = self._nodes.get(node_id)
        if existing is not None:
            if existing.kind != kind:
                raise CompilerInternalError(
                    f"Lineage node '{node_id}' already exists as {existing.kind.value}, "
                    f"cannot redefine it as {kind.value}"
                )
            return existing
        node = LineageNode(id=node_id, kind=kind, label=label, meta=meta or {})
        self._nodes[node_id] = node
        return node

    def _add_declared_nodes(self, graph: SchemaGraph) -> None:
        for source in graph.sources.values():
            self._ensure_node(source_node_id(source.id), NodeKind.SOURCE, source.id, source.to_dict())

        for ref, table in graph.tables.items():
            self._ensure_node(
                table_node_id(ref),
                NodeKind.TABLE,
                ref.key,
                {"db": ref.db, "schema": ref.schema, "table": ref.table, "declared": True},
            )
            for name, column in table.columns.items():
                self._ensure_node(
                    column_node_id(ref, name),
                    NodeKind.COLUMN,
                    name,
                    {**column.to_dict(), "table": ref.key, "declared": True},
                )

    def _ensure_target_node(self, ref: TableRef, column: Optional[str]) -> str:
        """Return the target node id, adding placeholders for undeclared tables/columns."""
        table_id = table_node_id(ref)
        if table_id not in self._nodes:
            self._ensure_node(
                table_id,
                NodeKind.TABLE,
                ref.key,
                {"db": ref.db, "schema": ref.schema, "table": ref.table, "declared": False},
            )
        if column is None:
            return table_id
        column_id = column_node_id(ref, column)
        if column_id not in self._nodes:
            self._ensure_node(
                column_id, NodeKind.COLUMN, column, {"table": ref.key, "declared": False}
            )
        return column_id

    def _provenance(self, mapping: Mapping, path: Optional[str]) -> Tuple[str, str]:
        """Resolve (node id, table-edge root id) for one mapping or fields entry."""
        origin = mapping.origin

        if origin.rule and not origin.source_id:
            node_id = rule_node_id(origin.rule)
            self._ensure_node(node_id, NodeKind.RULE, rule_label(origin.rule), {"rule": origin.rule})
            return node_id, node_id

        source_id = origin.source_id or UNKNOWN
        root_id = self._ensure_source_root(source_id)
        node_path = path if path is not None else (origin.path or UNKNOWN)
        node_id = source_column_node_id(source_id, node_path)
        self._ensure_node(
            node_id,
            NodeKind.SOURCE_COLUMN,
            node_path,
            {"source_id": origin.source_id, "path": node_path},
        )
        return node_id, root_id

    def _ensure_source_root(self, source_id: str) -> str:
        """Return the table-edge root for a source, adding a placeholder if undeclared."""
        root_id = source_node_id(source_id)
        if root_id not in self._nodes:
            self._ensure_node(root_id, NodeKind.SOURCE, source_id, {"id": source_id, "declared": False})
        return root_id

    def _add_edge(
        self, provenance: Tuple[str, str], ref: TableRef, column: Optional[str], meta: Dict[str, Any]
    ) -> None:
        node_id, root = provenance
        target_id = self._ensure_target_node(ref, column)
        self._edges.append(
            LineageEdge(
                id=f"e{len(self._edges) + 1}",
                source=node_id,
                target=target_id,
                kind=EdgeKind.COLUMN_LINEAGE,
                meta=meta,
            )
        )
        columns = self._table_columns.setdefault((root, table_node_id(ref)), set())
        columns.add(column if column is not None else "*")

    def _edge_meta(self, mapping: Mapping, **extra: Any) -> Dict[str, Any]:
        return {
            "transform": mapping.origin.transform,
            "rule": mapping.origin.rule,
            "raw": mapping.raw_target,
            **extra,
        }

    def _add_mapping(self, graph: SchemaGraph, mapping: Mapping) -> None:
        target = mapping.target

        if not isinstance(target, TargetRef):
            # No addressable target: keep the provenance visible, record the mapping.
            self._provenance(mapping, None)
            self._unresolved.append(mapping.index)
            self.logger.debug("Mapping target unresolved", index=mapping.index, raw=mapping.raw_target)
            return

        ref = target.table_ref

        if mapping.origin.kind == OriginKind.FIELDS:
            for column, path in (mapping.origin.fields or {}).items():
                provenance = self._provenance(mapping, path)
                self._add_edge(provenance, ref, column, self._edge_meta(mapping, field_path=path))
            return

        provenance = self._provenance(mapping, None)
        if target.is_wildcard:
            self._add_edge(provenance, ref, None, self._edge_meta(mapping, wildcard=True))
        else:
            self._add_edge(provenance, ref, target.column, self._edge_meta(mapping))


def build_lineage(graph: SchemaGraph) -> LineageGraph:
    """Build the column- and table-level lineage graph for a normalized document."""
    return LineageBuilder().build(graph)
