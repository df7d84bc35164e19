"""
Mapping Matrix Export
=====================

Flattens every mapping into one CSV row with its target coordinates, the
resolved target type and the flattened ``from`` block.
"""

import csv
import io
from typing import List

from dbdoc.config.logging import get_logger
from dbdoc.models.graph import Mapping, SchemaGraph, TargetRef

logger = get_logger(__name__)

MAPPING_CSV_HEADER = [
    "target_db",
    "target_schema",
    "target_table",
    "target_column",
    "target_type",
    "source_id",
    "source_path",
    "transform",
    "default",
    "mapping_rule",
    "fields",
    "notes",
]


def _target_type(graph: SchemaGraph, mapping: Mapping) -> str:
    target = mapping.target
    if not isinstance(target, TargetRef) or target.is_wildcard:
        return ""
    table = graph.table_for(target)
    if table is None or target.column not in table.columns:
        return ""
    return table.columns[target.column].type


def mapping_row(graph: SchemaGraph, mapping: Mapping) -> List[str]:
    origin = mapping.origin
    target = mapping.target
    if isinstance(target, TargetRef):
        coordinates = [target.db, target.schema, target.table, target.column]
    else:
        raw = "" if target.raw is None else str(target.raw)
        coordinates = ["", "", "", raw]

    fields = ";".join(f"{column}={path}" for column, path in (origin.fields or {}).items())
    return [
        *coordinates,
        _target_type(graph, mapping),
        origin.source_id or "",
        origin.path or "",
        origin.transform or "",
        origin.default or "",
        origin.rule or "",
        fields,
        mapping.notes or "",
    ]


def render_mapping_csv(graph: SchemaGraph) -> str:
    """Render the mapping matrix; values are quoted only when they need it."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(MAPPING_CSV_HEADER)
    for mapping in graph.mappings:
        writer.writerow(mapping_row(graph, mapping))

    logger.debug("Mapping matrix rendered", rows=len(graph.mappings))
    return buffer.getvalue()
