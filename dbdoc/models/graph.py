"""
Canonical Schema Graph
======================

In-memory representation produced by the normalizer and consumed by every
later stage. Raw documents are plain dicts; only the normalizer converts them
into these types.

Nodes: Source, Table, Column, Mapping.
Lineage: LineageNode, LineageEdge, LineageGraph.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from dbdoc.exceptions import CompilerInternalError

WILDCARD = "*"


class SourceKind(str, Enum):
    """Closed set of source system kinds."""
    RELATIONAL = "relational"
    DOCUMENT = "document"
    API = "api"
    FILE = "file"


class OriginKind(str, Enum):
    """Shape of a mapping's ``from`` block."""
    SOURCE = "source"
    RULE = "rule"
    FIELDS = "fields"
    UNKNOWN = "unknown"


class NodeKind(str, Enum):
    """Lineage node types."""
    SOURCE = "source"
    TABLE = "table"
    COLUMN = "column"
    SOURCE_COLUMN = "source_column"
    RULE = "rule"


class EdgeKind(str, Enum):
    """Lineage edge types."""
    COLUMN_LINEAGE = "column_lineage"
    TABLE_LINEAGE = "table_lineage"


@dataclass(frozen=True)
class TableRef:
    """Identity of a target table."""
    db: str
    schema: str
    table: str

    @property
    def key(self) -> str:
        return f"{self.db}.{self.schema}.{self.table}"

    def column_key(self, column: str) -> str:
        return f"{self.key}.{column}"

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class ForeignKeyRef:
    """Foreign key target; ``table`` may be bare, schema- or fully-qualified."""
    table: str
    column: Optional[str] = None


@dataclass
class Column:
    name: str
    type: str = ""
    pk: bool = False
    fk: Optional[ForeignKeyRef] = None
    unique: bool = False
    not_null: bool = False
    default: Optional[str] = None
    description: Optional[str] = None

    @property
    def required(self) -> bool:
        """Whether a value must always be present (primary key or NOT NULL)."""
        return self.pk or self.not_null

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "pk": self.pk,
            "fk": {"table": self.fk.table, "column": self.fk.column} if self.fk else None,
            "unique": self.unique,
            "not_null": self.not_null,
            "default": self.default,
            "description": self.description,
        }


@dataclass
class Table:
    ref: TableRef
    columns: Dict[str, Column] = field(default_factory=dict)
    description: Optional[str] = None
    owner: Optional[str] = None

    @property
    def db(self) -> str:
        return self.ref.db

    @property
    def schema(self) -> str:
        return self.ref.schema

    @property
    def name(self) -> str:
        return self.ref.table

    @property
    def primary_key(self) -> List[str]:
        return [col.name for col in self.columns.values() if col.pk]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "db": self.db,
            "schema": self.schema,
            "table": self.name,
            "description": self.description,
            "owner": self.owner,
            "columns": {name: col.to_dict() for name, col in self.columns.items()},
        }


@dataclass
class Source:
    id: str
    kind: SourceKind
    engine: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "kind": self.kind.value, "engine": self.engine, **self.metadata}


@dataclass(frozen=True)
class TargetRef:
    """Parsed mapping target; ``column`` may be the wildcard marker."""
    db: str
    schema: str
    table: str
    column: str

    @property
    def table_ref(self) -> TableRef:
        return TableRef(self.db, self.schema, self.table)

    @property
    def is_wildcard(self) -> bool:
        return self.column == WILDCARD

    def to_dict(self) -> Dict[str, Any]:
        return {"db": self.db, "schema": self.schema, "table": self.table, "column": self.column}


@dataclass(frozen=True)
class UnresolvedTarget:
    """Mapping target that could not be parsed; kept for the validator to report."""
    raw: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"raw": self.raw}


Target = Union[TargetRef, UnresolvedTarget]


@dataclass
class MappingOrigin:
    source_id: Optional[str] = None
    path: Optional[str] = None
    transform: Optional[str] = None
    rule: Optional[str] = None
    fields: Optional[Dict[str, str]] = None
    default: Optional[str] = None

    @property
    def kind(self) -> OriginKind:
        if self.fields:
            return OriginKind.FIELDS
        if self.source_id:
            return OriginKind.SOURCE
        if self.rule:
            return OriginKind.RULE
        return OriginKind.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "source_id": self.source_id,
            "path": self.path,
            "transform": self.transform,
            "rule": self.rule,
            "fields": dict(self.fields) if self.fields else None,
            "default": self.default,
        }
        return {key: value for key, value in data.items() if value is not None}


@dataclass
class Mapping:
    index: int
    raw_target: Any
    target: Target
    origin: MappingOrigin = field(default_factory=MappingOrigin)
    notes: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return isinstance(self.target, TargetRef)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rawTarget": self.raw_target,
            "target": self.target.to_dict(),
            "from": self.origin.to_dict(),
            "notes": self.notes,
            "tags": list(self.tags),
        }


@dataclass
class SchemaGraph:
    """Canonical AST: sources by id, tables by TableRef, mappings in document order."""
    project: str
    sources: Dict[str, Source] = field(default_factory=dict)
    tables: Dict[TableRef, Table] = field(default_factory=dict)
    mappings: List[Mapping] = field(default_factory=list)
    redeclared_tables: List[TableRef] = field(default_factory=list)
    owners: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        for ref, table in self.tables.items():
            if ref != table.ref:
                raise CompilerInternalError(
                    f"Table index corrupted: key '{ref.key}' holds table '{table.ref.key}'"
                )
        for source_id, source in self.sources.items():
            if source_id != source.id:
                raise CompilerInternalError(
                    f"Source index corrupted: key '{source_id}' holds source '{source.id}'"
                )

    def table_for(self, target: Target) -> Optional[Table]:
        """Look up the table a mapping target points at."""
        if not isinstance(target, TargetRef):
            return None
        return self.tables.get(target.table_ref)

    def iter_columns(self) -> Iterator[Tuple[Table, Column]]:
        for table in self.tables.values():
            for column in table.columns.values():
                yield table, column

    def to_dict(self) -> Dict[str, Any]:
        """JSON-shaped canonical AST for downstream reuse."""
        return {
            "project": self.project,
            "owners": list(self.owners),
            "sources": {sid: source.to_dict() for sid, source in self.sources.items()},
            "targets": {ref.key: table.to_dict() for ref, table in self.tables.items()},
            "mappings": [mapping.to_dict() for mapping in self.mappings],
        }


# Lineage Models
@dataclass
class LineageNode:
    id: str
    kind: NodeKind
    label: str
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.kind.value, "label": self.label, "meta": self.meta}


@dataclass
class LineageEdge:
    id: str
    source: str
    target: str
    kind: EdgeKind
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.kind.value,
            "meta": self.meta,
        }


@dataclass
class LineageGraph:
    nodes: List[LineageNode] = field(default_factory=list)
    edges: List[LineageEdge] = field(default_factory=list)
    table_edges: List[LineageEdge] = field(default_factory=list)
    unresolved: List[int] = field(default_factory=list)

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def get_node(self, node_id: str) -> Optional[LineageNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def nodes_of_kind(self, kind: NodeKind) -> List[LineageNode]:
        return [node for node in self.nodes if node.kind == kind]

    def summary(self) -> Dict[str, int]:
        return {
            "nodes": len(self.nodes),
            "edges": len(self.edges),
            "table_edges": len(self.table_edges),
            "sources": len(self.nodes_of_kind(NodeKind.SOURCE)),
            "tables": len(self.nodes_of_kind(NodeKind.TABLE)),
            "unresolved_mappings": len(self.unresolved),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "table_edges": [edge.to_dict() for edge in self.table_edges],
        }
