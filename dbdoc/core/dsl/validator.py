"""
Referential Validator
=====================

Walks a normalized SchemaGraph and reports referential problems. Every check
is independent and findings are collected exhaustively; nothing here raises
on malformed input.
"""

import re
from typing import Any, Dict, List, Set

from dbdoc.config.logging import get_logger
from dbdoc.core.dsl.transforms import validate_transform
from dbdoc.models.graph import (
    Mapping,
    OriginKind,
    SchemaGraph,
    TableRef,
    TargetRef,
)
from dbdoc.models.schemas import ValidationReport

logger = get_logger(__name__)

_COLUMN_SEPARATORS = re.compile(r"[,;\s]+")


def split_column_tokens(column: str) -> List[str]:
    """Fan a composite-looking literal column (``a,b`` / ``a b`` / ``a;b``) out into names."""
    return [token for token in _COLUMN_SEPARATORS.split(column) if token]


class ReferentialValidator:
    """Pure (graph) -> report checker."""

    def __init__(self, strict_redeclarations: bool = False) -> None:
        self.strict_redeclarations = strict_redeclarations
        self.logger: Any = logger.bind(component="referential_validator")  # structlog.BoundLoggerBase

    def validate(self, graph: SchemaGraph) -> ValidationReport:
        errors: List[str] = []
        warnings: List[str] = []

        mapped_columns = self._check_mappings(graph, errors, warnings)
        self._check_not_null_coverage(graph, mapped_columns, errors)
        self._check_orphan_sources(graph, warnings)
        self._check_redeclarations(graph, errors, warnings)

        self.logger.info(
            "Referential validation finished",
            project=graph.project,
            error_count=len(errors),
            warning_count=len(warnings),
        )
        return ValidationReport(errors=errors, warnings=warnings)

    def _check_mappings(
        self, graph: SchemaGraph, errors: List[str], warnings: List[str]
    ) -> Dict[TableRef, Set[str]]:
        """Single pass over mappings; returns the columns each table has covered."""
        mapped_columns: Dict[TableRef, Set[str]] = {}

        for mapping in graph.mappings:
            label = f"Mapping[{mapping.index}]"
            origin = mapping.origin

            if origin.source_id and origin.source_id not in graph.sources:
                errors.append(f"{label} references unknown source_id '{origin.source_id}'")

            if origin.kind == OriginKind.UNKNOWN:
                errors.append(
                    f"{label} ({mapping.raw_target}) must declare 'from.source_id', "
                    f"'from.rule' or 'from.fields'"
                )

            if origin.transform:
                problem = validate_transform(origin.transform)
                if problem:
                    errors.append(f"{label} ({mapping.raw_target}) has invalid transform: {problem}")

            target = mapping.target
            if not isinstance(target, TargetRef):
                errors.append(
                    f"{label} target {target.raw!r} is not a valid db.schema.table[.column] reference"
                )
                continue

            covered = mapped_columns.setdefault(target.table_ref, set())
            covered.update(self._covered_columns(mapping, target))

            table = graph.tables.get(target.table_ref)
            if table is None:
                errors.append(
                    f"{label} target table '{target.table_ref.key}' does not resolve to a declared table"
                )
            else:
                if not target.is_wildcard and not split_column_tokens(target.column):
                    errors.append(
                        f"{label} target {mapping.raw_target!r} does not name any column"
                    )
                for column in self._referenced_columns(mapping, target):
                    if column not in table.columns:
                        errors.append(
                            f"{label} target column '{target.table_ref.column_key(column)}' does not exist"
                        )

            if target.is_wildcard and not origin.fields:
                warnings.append(
                    f"{label} uses wildcard target '{mapping.raw_target}' without explicit "
                    f"'fields'; no columns are considered mapped"
                )

        return mapped_columns

    def _covered_columns(self, mapping: Mapping, target: TargetRef) -> Set[str]:
        if target.is_wildcard:
            return set(mapping.origin.fields or {})
        return set(split_column_tokens(target.column))

    def _referenced_columns(self, mapping: Mapping, target: TargetRef) -> List[str]:
        if target.is_wildcard:
            return list(mapping.origin.fields or {})
        return split_column_tokens(target.column)

    def _check_not_null_coverage(
        self, graph: SchemaGraph, mapped_columns: Dict[TableRef, Set[str]], errors: List[str]
    ) -> None:
        for table, column in graph.iter_columns():
            if not column.not_null or column.pk or column.default is not None:
                continue
            if column.name in mapped_columns.get(table.ref, set()):
                continue
            errors.append(
                f"Column '{table.ref.column_key(column.name)}' is NOT NULL without a default "
                f"and has no mapping"
            )

    def _check_orphan_sources(self, graph: SchemaGraph, warnings: List[str]) -> None:
        referenced = {m.origin.source_id for m in graph.mappings if m.origin.source_id}
        for source_id in graph.sources:
            if source_id not in referenced:
                warnings.append(f"Source '{source_id}' is declared but not referenced by any mapping")

    def _check_redeclarations(
        self, graph: SchemaGraph, errors: List[str], warnings: List[str]
    ) -> None:
        for ref in dict.fromkeys(graph.redeclared_tables):
            message = f"Table '{ref.key}' is declared more than once; the last declaration wins"
            (errors if self.strict_redeclarations else warnings).append(message)


def validate(graph: SchemaGraph, strict_redeclarations: bool = False) -> ValidationReport:
    """Run every referential check over a normalized graph."""
    return ReferentialValidator(strict_redeclarations=strict_redeclarations).validate(graph)
