"""
Pydantic Models and Schemas
===========================

Result models returned across the package boundary: parse results,
validation reports and the artifact bundle written by the pipeline.
"""

from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field, computed_field


# Parsing Results
class ParseResult(BaseModel):
    """Result of DSL parsing operation."""
    success: bool = Field(..., description="Whether parsing succeeded")
    document: Optional[Dict[str, Any]] = Field(None, description="Parsed raw document")
    errors: List[str] = Field(default_factory=list, description="Parsing errors")
    warnings: List[str] = Field(default_factory=list, description="Parsing warnings")
    processing_time: Optional[float] = Field(None, description="Parsing time in seconds")


# Validation Results
class ValidationReport(BaseModel):
    """Referential validation findings."""
    errors: List[str] = Field(default_factory=list, description="Referential errors")
    warnings: List[str] = Field(default_factory=list, description="Ambiguous-but-legal constructs")

    @computed_field  # type: ignore[misc]
    @property
    def valid(self) -> bool:
        return not self.errors

    def merge(self, other: "ValidationReport") -> "ValidationReport":
        """Return a new report containing findings from both reports."""
        return ValidationReport(
            errors=[*self.errors, *other.errors],
            warnings=[*self.warnings, *other.warnings],
        )


# Artifact Models
class ArtifactBundle(BaseModel):
    """Rendered text artifacts keyed the way they are written to disk."""
    mapping_csv: str = Field("", description="Mapping matrix CSV")
    erd: Dict[str, str] = Field(default_factory=dict, description="Mermaid ERD text per file name")
    ddl: Dict[str, str] = Field(default_factory=dict, description="DDL/script text per dialect")
    lineage: Dict[str, Any] = Field(default_factory=dict, description="Lineage graph JSON object")
    documentation: Dict[str, Any] = Field(
        default_factory=dict, description="Project documentation summary"
    )
    site: Dict[str, str] = Field(
        default_factory=dict, description="Static documentation pages keyed by relative path"
    )
