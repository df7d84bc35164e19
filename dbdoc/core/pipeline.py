"""
Compilation Pipeline
====================

End-to-end facade: raw document -> normalized graph -> referential report ->
lineage graph -> rendered artifacts. ``write_artifacts`` is the only function
in the package that touches the filesystem.
"""

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from dbdoc.config.logging import get_logger
from dbdoc.config.settings import get_settings
from dbdoc.core.dsl.normalizer import normalize
from dbdoc.core.dsl.parser import parse_dsl
from dbdoc.core.dsl.validator import validate
from dbdoc.core.lineage.builder import build_lineage
from dbdoc.core.rendering.dialects import Dialect, render_all_dialects
from dbdoc.core.rendering.docs import build_documentation, render_documentation_site
from dbdoc.core.rendering.erd import render_erd
from dbdoc.core.rendering.tabular import render_mapping_csv
from dbdoc.exceptions import DBDocError
from dbdoc.models.graph import LineageGraph, SchemaGraph
from dbdoc.models.schemas import ArtifactBundle, ValidationReport

logger = get_logger(__name__)

MAPPING_CSV_FILE = "mapping_matrix.csv"
LINEAGE_FILE = "lineage.json"
REPORT_FILE = "report.json"
DOCUMENTATION_FILE = "documentation.json"
DOCS_DIR = "docs"
ERD_DIR = "erd"
DDL_DIR = "ddl"


@dataclass
class CompilationResult:
    """Everything one compilation produced; ``graph`` is None when parsing failed."""
    graph: Optional[SchemaGraph] = None
    report: ValidationReport = field(default_factory=ValidationReport)
    lineage: Optional[LineageGraph] = None
    artifacts: ArtifactBundle = field(default_factory=ArtifactBundle)
    parse_errors: List[str] = field(default_factory=list)
    processing_time: float = 0.0

    @property
    def success(self) -> bool:
        return not self.parse_errors and self.report.valid

    def report_dict(self) -> Dict[str, Any]:
        settings = get_settings()
        return {
            "compiler": {"name": settings.app_name, "version": settings.app_version},
            "project": self.graph.project if self.graph else None,
            "valid": self.success,
            "errors": list(self.report.errors),
            "warnings": list(self.report.warnings),
            "parse_errors": list(self.parse_errors),
            "summary": self.lineage.summary() if self.lineage else {},
            "processing_time": self.processing_time,
        }


def compile_document(
    raw: Dict[str, Any],
    dialects: Optional[Sequence[str]] = None,
    include_overview: Optional[bool] = None,
    include_docs: Optional[bool] = None,
) -> CompilationResult:
    """
    Run every stage over an already-loaded raw document.

    Artifacts are rendered even when the report has errors; consumers decide
    whether to gate on ``result.report.valid``.

    Args:
        raw: Raw document dict
        dialects: Dialect names to render; defaults to the configured set
        include_overview: Also emit ``erd_all.mmd``; defaults to the configured value
        include_docs: Also build the documentation summary and site; defaults to the configured value

    Returns:
        CompilationResult with graph, report, lineage and artifacts
    """
    settings = get_settings()
    start_time = time.time()

    selected = list(dialects) if dialects is not None else list(settings.default_dialects)
    overview = settings.erd_include_overview if include_overview is None else include_overview
    docs = settings.generate_docs if include_docs is None else include_docs

    graph = normalize(raw)
    report = validate(graph, strict_redeclarations=settings.strict_redeclarations)
    lineage = build_lineage(graph)

    artifacts = ArtifactBundle(
        mapping_csv=render_mapping_csv(graph),
        erd=render_erd(graph, include_overview=overview),
        ddl=render_all_dialects(graph, selected),
        lineage=lineage.to_dict(),
        documentation=build_documentation(graph) if docs else {},
        site=render_documentation_site(graph, lineage=lineage) if docs else {},
    )

    result = CompilationResult(
        graph=graph,
        report=report,
        lineage=lineage,
        artifacts=artifacts,
        processing_time=time.time() - start_time,
    )
    logger.info(
        "Compilation finished",
        project=graph.project,
        valid=report.valid,
        error_count=len(report.errors),
        warning_count=len(report.warnings),
        dialects=selected,
        processing_time=result.processing_time,
    )
    return result


def compile_text(
    content: str,
    parser_type: Optional[str] = None,
    dialects: Optional[Sequence[str]] = None,
    include_overview: Optional[bool] = None,
    include_docs: Optional[bool] = None,
) -> CompilationResult:
    """Parse JSON/YAML text, then compile it; structural failures stop before normalization."""
    start_time = time.time()
    parse_result = parse_dsl(content, parser_type)

    if not parse_result.success or parse_result.document is None:
        logger.warning("Document failed structural checks", errors=parse_result.errors)
        return CompilationResult(
            report=ValidationReport(warnings=list(parse_result.warnings)),
            parse_errors=list(parse_result.errors),
            processing_time=time.time() - start_time,
        )

    result = compile_document(
        parse_result.document,
        dialects=dialects,
        include_overview=include_overview,
        include_docs=include_docs,
    )
    result.report = ValidationReport(warnings=list(parse_result.warnings)).merge(result.report)
    result.processing_time = time.time() - start_time
    return result


def write_artifacts(result: CompilationResult, out_dir: Optional[Path] = None) -> List[Path]:
    """
    Write the result's artifacts under ``out_dir``.

    Only ``report.json`` is written when the document never reached normalization.

    Raises:
        DBDocError: If the output directory or a file cannot be written
    """
    target_dir = Path(out_dir) if out_dir is not None else get_settings().output_dir
    written: List[Path] = []

    def _write(relative: str, content: str) -> None:
        path = target_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        written.append(path)

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        if result.graph is not None:
            _write(MAPPING_CSV_FILE, result.artifacts.mapping_csv)
            _write(LINEAGE_FILE, json.dumps(result.artifacts.lineage, indent=2, default=str))
            for file_name, text in result.artifacts.erd.items():
                _write(f"{ERD_DIR}/{file_name}", text)
            for dialect_name, text in result.artifacts.ddl.items():
                extension = Dialect(dialect_name).file_extension
                _write(f"{DDL_DIR}/{dialect_name}{extension}", text)
            if result.artifacts.documentation:
                documentation = json.dumps(result.artifacts.documentation, indent=2, default=str)
                _write(DOCUMENTATION_FILE, documentation)
            for relative, html in result.artifacts.site.items():
                _write(f"{DOCS_DIR}/{relative}", html)
        _write(REPORT_FILE, json.dumps(result.report_dict(), indent=2, default=str))
    except OSError as e:
        raise DBDocError(f"Failed to write artifacts to {target_dir}: {e}") from e

    logger.info("Artifacts written", out_dir=str(target_dir), files=len(written))
    return written
