"""
Test Assertions
===============

Custom assertion helpers for compilation results.
"""

from typing import List

from dbdoc.models.graph import LineageGraph
from dbdoc.models.schemas import ParseResult, ValidationReport


def assert_successful_parse_result(result: ParseResult) -> None:
    """Assert that a parse result is successful."""
    assert isinstance(result, ParseResult)
    assert result.success is True, f"Parse failed: {result.errors}"
    assert result.document is not None
    assert result.errors == []
    assert result.processing_time is not None


def assert_failed_parse_result(result: ParseResult, expected_fragment: str = "") -> None:
    """Assert that a parse result failed, optionally with a matching error."""
    assert isinstance(result, ParseResult)
    assert result.success is False
    assert result.document is None
    assert result.errors
    if expected_fragment:
        assert any(expected_fragment in error for error in result.errors), result.errors


def matching(messages: List[str], *fragments: str) -> List[str]:
    """Messages containing every fragment."""
    return [message for message in messages if all(f in message for f in fragments)]


def assert_has_error(report: ValidationReport, *fragments: str) -> None:
    assert matching(report.errors, *fragments), f"No error with {fragments}: {report.errors}"


def assert_has_warning(report: ValidationReport, *fragments: str) -> None:
    assert matching(report.warnings, *fragments), f"No warning with {fragments}: {report.warnings}"


def assert_no_dangling_edges(lineage: LineageGraph) -> None:
    """Every edge endpoint must be a node in the graph."""
    node_ids = set(lineage.node_ids())
    for edge in [*lineage.edges, *lineage.table_edges]:
        assert edge.source in node_ids, f"Edge {edge.id} has dangling source {edge.source}"
        assert edge.target in node_ids, f"Edge {edge.id} has dangling target {edge.target}"


def assert_unique_node_ids(lineage: LineageGraph) -> None:
    ids = lineage.node_ids()
    assert len(ids) == len(set(ids)), "Duplicate lineage node ids"
