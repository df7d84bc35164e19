"""
DSL Normalizer
==============

Lowers a raw (loosely-typed) document dict into the canonical SchemaGraph.

The normalizer is tolerant: malformed entries are kept as unresolved
references or skipped, never raised, so the validator can report every
problem in one pass. Duplicate table declarations are merged by overwrite
(last declaration wins) and recorded on the graph.
"""

from typing import Any, Dict, List, Optional, Tuple

from dbdoc.config.logging import get_logger
from dbdoc.config.settings import get_settings
from dbdoc.models.graph import (
    WILDCARD,
    Column,
    ForeignKeyRef,
    Mapping,
    MappingOrigin,
    SchemaGraph,
    Source,
    SourceKind,
    Table,
    TableRef,
    Target,
    TargetRef,
    UnresolvedTarget,
)

logger = get_logger(__name__)

DEFAULT_SCHEMA = "public"

SOURCE_KIND_ALIASES: Dict[str, SourceKind] = {
    "relational": SourceKind.RELATIONAL,
    "postgres": SourceKind.RELATIONAL,
    "postgresql": SourceKind.RELATIONAL,
    "mysql": SourceKind.RELATIONAL,
    "mssql": SourceKind.RELATIONAL,
    "oracle": SourceKind.RELATIONAL,
    "snowflake": SourceKind.RELATIONAL,
    "bigquery": SourceKind.RELATIONAL,
    "sqlite": SourceKind.RELATIONAL,
    "document": SourceKind.DOCUMENT,
    "document-store": SourceKind.DOCUMENT,
    "mongodb": SourceKind.DOCUMENT,
    "mongo": SourceKind.DOCUMENT,
    "dynamodb": SourceKind.DOCUMENT,
    "api": SourceKind.API,
    "rest": SourceKind.API,
    "http": SourceKind.API,
    "graphql": SourceKind.API,
    "file": SourceKind.FILE,
    "csv": SourceKind.FILE,
    "json": SourceKind.FILE,
    "parquet": SourceKind.FILE,
    "excel": SourceKind.FILE,
}


def parse_target(raw_target: Any) -> Target:
    """
    Parse a dotted mapping target.

    ``db.schema.table`` targets every column (wildcard); ``db.schema.table.col``
    targets one column, with any further segments kept in the column name.
    Any empty or blank segment leaves the target unresolved.
    """
    if not isinstance(raw_target, str):
        return UnresolvedTarget(raw=raw_target)

    parts = raw_target.split(".")
    if any(not part.strip() for part in parts):
        return UnresolvedTarget(raw=raw_target)
    if len(parts) >= 4:
        return TargetRef(db=parts[0], schema=parts[1], table=parts[2], column=".".join(parts[3:]))
    if len(parts) == 3:
        return TargetRef(db=parts[0], schema=parts[1], table=parts[2], column=WILDCARD)
    return UnresolvedTarget(raw=raw_target)


def resolve_source_kind(raw_kind: Any, metadata: Dict[str, Any]) -> SourceKind:
    kind = SOURCE_KIND_ALIASES.get(str(raw_kind or "").strip().lower())
    if kind is not None:
        return kind
    location = str(metadata.get("url") or metadata.get("connection") or "")
    if location.startswith(("http://", "https://")):
        return SourceKind.API
    return SourceKind.FILE


def parse_foreign_key(raw_fk: Any) -> Optional[ForeignKeyRef]:
    """Accept ``{table, column}`` dicts or dotted ``[db.][schema.]table.column`` strings."""
    if not raw_fk:
        return None
    if isinstance(raw_fk, dict):
        table = raw_fk.get("table") or raw_fk.get("table_name") or raw_fk.get("ref")
        column = raw_fk.get("column") or raw_fk.get("col")
        if not table:
            return None
        return ForeignKeyRef(table=str(table), column=str(column) if column else None)
    text = str(raw_fk).strip()
    if "." not in text:
        return ForeignKeyRef(table=text)
    table, _, column = text.rpartition(".")
    return ForeignKeyRef(table=table, column=column or None)


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)


class DSLNormalizer:
    """Builds a SchemaGraph from a raw document dict."""

    def __init__(self) -> None:
        self.settings = get_settings()
        self.logger: Any = logger.bind(component="normalizer")  # structlog.BoundLoggerBase

    def normalize(self, raw: Dict[str, Any]) -> SchemaGraph:
        raw = raw if isinstance(raw, dict) else {}

        sources = self._normalize_sources(raw.get("sources"))
        tables, redeclared = self._normalize_targets(raw.get("targets"))
        mappings = self._normalize_mappings(raw.get("mappings"))

        graph = SchemaGraph(
            project=self._project_name(raw.get("project")),
            sources=sources,
            tables=tables,
            mappings=mappings,
            redeclared_tables=redeclared,
            owners=self._owners(raw),
        )

        self.logger.info(
            "Document normalized",
            project=graph.project,
            sources=len(sources),
            tables=len(tables),
            mappings=len(mappings),
            redeclared=len(redeclared),
        )
        return graph

    def _project_name(self, raw_project: Any) -> str:
        if isinstance(raw_project, dict):
            raw_project = raw_project.get("name")
        if raw_project:
            return str(raw_project)
        return self.settings.project_fallback_name

    def _owners(self, raw: Dict[str, Any]) -> List[str]:
        """Owners as display strings; ``{name, email}`` entries become ``name <email>``."""
        raw_owners = raw.get("owners")
        if raw_owners is None and isinstance(raw.get("project"), dict):
            raw_owners = raw["project"].get("owners")
        owners: List[str] = []
        for owner in raw_owners if isinstance(raw_owners, list) else []:
            if isinstance(owner, dict):
                name = str(owner.get("name") or "").strip()
                email = str(owner.get("email") or "").strip()
                label = f"{name} <{email}>" if name and email else (name or email)
            else:
                label = str(owner).strip() if owner is not None else ""
            if label:
                owners.append(label)
        return owners

    def _normalize_sources(self, raw_sources: Any) -> Dict[str, Source]:
        sources: Dict[str, Source] = {}
        for raw_source in raw_sources if isinstance(raw_sources, list) else []:
            if not isinstance(raw_source, dict) or not raw_source.get("id"):
                self.logger.debug("Skipping source without id", source=raw_source)
                continue
            source_id = str(raw_source["id"])
            metadata = {k: v for k, v in raw_source.items() if k not in ("id", "kind")}
            raw_kind = raw_source.get("kind")
            sources[source_id] = Source(
                id=source_id,
                kind=resolve_source_kind(raw_kind, metadata),
                engine=str(raw_kind) if raw_kind else None,
                metadata=metadata,
            )
        return sources

    def _normalize_targets(self, raw_targets: Any) -> Tuple[Dict[TableRef, Table], List[TableRef]]:
        tables: Dict[TableRef, Table] = {}
        redeclared: List[TableRef] = []

        for group in raw_targets if isinstance(raw_targets, list) else []:
            if not isinstance(group, dict):
                continue
            db = str(group.get("db") or "")
            schema = str(group.get("schema") or DEFAULT_SCHEMA)

            for raw_table in group.get("tables") or []:
                if not isinstance(raw_table, dict) or not raw_table.get("name"):
                    self.logger.debug("Skipping table without name", db=db, schema=schema)
                    continue
                ref = TableRef(db=db, schema=schema, table=str(raw_table["name"]))
                if ref in tables:
                    self.logger.debug("Table redeclared; last declaration wins", table=ref.key)
                    redeclared.append(ref)
                tables[ref] = self._normalize_table(ref, raw_table)

        return tables, redeclared

    def _normalize_table(self, ref: TableRef, raw_table: Dict[str, Any]) -> Table:
        columns: Dict[str, Column] = {}
        for raw_column in raw_table.get("columns") or []:
            if not isinstance(raw_column, dict) or not raw_column.get("name"):
                continue
            column = self._normalize_column(raw_column)
            columns[column.name] = column

        for pk_name in raw_table.get("primary_key") or []:
            if pk_name in columns:
                columns[pk_name].pk = True

        for raw_fk in raw_table.get("foreign_keys") or []:
            if not isinstance(raw_fk, dict):
                continue
            references = raw_fk.get("references")
            if not isinstance(references, dict):
                continue
            local_columns = raw_fk.get("columns") or []
            ref_columns = references.get("columns") or []
            for position, local in enumerate(local_columns):
                if local in columns and columns[local].fk is None and references.get("table"):
                    ref_column = ref_columns[position] if position < len(ref_columns) else None
                    columns[local].fk = ForeignKeyRef(table=str(references["table"]), column=ref_column)

        return Table(
            ref=ref,
            columns=columns,
            description=_optional_str(raw_table.get("description")),
            owner=_optional_str(raw_table.get("owner")),
        )

    def _normalize_column(self, raw_column: Dict[str, Any]) -> Column:
        not_null = bool(raw_column.get("not_null"))
        if raw_column.get("nullable") is False:
            not_null = True
        return Column(
            name=str(raw_column["name"]),
            type=str(raw_column.get("type") or ""),
            pk=bool(raw_column.get("pk")),
            fk=parse_foreign_key(raw_column.get("fk")),
            unique=bool(raw_column.get("unique")),
            not_null=not_null,
            default=_optional_str(raw_column.get("default")),
            description=_optional_str(raw_column.get("description")),
        )

    def _normalize_mappings(self, raw_mappings: Any) -> List[Mapping]:
        mappings: List[Mapping] = []
        for index, raw_mapping in enumerate(raw_mappings if isinstance(raw_mappings, list) else []):
            if not isinstance(raw_mapping, dict):
                raw_mapping = {"target": raw_mapping}
            raw_target = raw_mapping.get("target")
            mappings.append(
                Mapping(
                    index=index,
                    raw_target=raw_target,
                    target=parse_target(raw_target),
                    origin=self._normalize_origin(raw_mapping.get("from")),
                    notes=_optional_str(raw_mapping.get("notes")),
                    tags=[str(tag) for tag in raw_mapping.get("tags") or []],
                )
            )
        return mappings

    def _normalize_origin(self, raw_from: Any) -> MappingOrigin:
        if not isinstance(raw_from, dict):
            return MappingOrigin()
        raw_fields = raw_from.get("fields")
        fields = (
            {str(column): str(path) for column, path in raw_fields.items()}
            if isinstance(raw_fields, dict)
            else None
        )
        return MappingOrigin(
            source_id=_optional_str(raw_from.get("source_id")),
            path=_optional_str(raw_from.get("path")),
            transform=_optional_str(raw_from.get("transform")),
            rule=_optional_str(raw_from.get("rule")),
            fields=fields,
            default=_optional_str(raw_from.get("default")),
        )


def normalize(raw: Dict[str, Any]) -> SchemaGraph:
    """Normalize a raw document into the canonical schema graph."""
    return DSLNormalizer().normalize(raw)
