"""
DSL Parser
==========

Boundary loader for DBDoc documents. Turns JSON/YAML text, files or
directories into raw document dicts and checks their structure with
Cerberus schemas. Referential checks happen later, on the normalized graph.
"""

from typing import Dict, List, Any, Optional, Tuple
import json
import yaml  # type: ignore[import-untyped]
import time
from abc import ABC, abstractmethod
from pathlib import Path
from cerberus import Validator  # type: ignore[import-untyped]

from dbdoc.config.logging import get_logger
from dbdoc.exceptions import DBDocError
from dbdoc.models.schemas import ParseResult

logger = get_logger(__name__)

DOCUMENT_EXTENSIONS = (".yml", ".yaml", ".json", ".dbdoc")


class DSLParseError(DBDocError):
    """Exception raised when a DSL file cannot be read or parsed."""

    pass


class DSLValidator:
    """Structural DSL validation using Cerberus schemas."""

    def __init__(self) -> None:
        self.logger: Any = logger.bind(component="validator")  # structlog.BoundLoggerBase
        self._setup_schemas()

    def _setup_schemas(self) -> None:
        """Setup validation schemas."""
        self.column_schema = {
            "name": {"type": "string", "required": True, "empty": False},
            "type": {"type": "string", "nullable": True},
            "pk": {"type": "boolean"},
            "fk": {"type": ["string", "dict"], "nullable": True},
            "unique": {"type": "boolean"},
            "not_null": {"type": "boolean"},
            "nullable": {"type": "boolean"},
            "default": {"type": ["string", "number", "boolean"], "nullable": True},
            "description": {"type": "string", "nullable": True},
        }

        self.table_schema = {
            "name": {"type": "string", "required": True, "empty": False},
            "description": {"type": "string", "nullable": True},
            "owner": {"type": "string", "nullable": True},
            "columns": {
                "type": "list",
                "required": True,
                "schema": {"type": "dict", "schema": self.column_schema, "allow_unknown": True},
            },
            "primary_key": {"type": "list", "schema": {"type": "string"}},
            "foreign_keys": {"type": "list", "schema": {"type": "dict", "allow_unknown": True}},
        }

        self.target_schema = {
            "db": {"type": "string", "required": True, "empty": False},
            "schema": {"type": "string", "nullable": True},
            "engine": {"type": "string", "nullable": True},
            "tables": {
                "type": "list",
                "required": True,
                "schema": {"type": "dict", "schema": self.table_schema, "allow_unknown": True},
            },
        }

        self.source_schema = {
            "id": {"type": "string", "required": True, "empty": False},
            "kind": {"type": "string", "required": True},
            "description": {"type": "string", "nullable": True},
        }

        self.mapping_schema = {
            "target": {"type": "string", "required": True, "empty": False},
            "from": {"type": "dict", "nullable": True, "allow_unknown": True},
            "notes": {"type": "string", "nullable": True},
            "tags": {"type": "list", "schema": {"type": "string"}},
        }

        # Document schema
        self.document_schema: Dict[str, Any] = {
            "project": {"type": ["string", "dict"], "nullable": True},
            "version": {"type": ["string", "number"], "nullable": True},
            "owners": {"type": "list", "nullable": True},
            "description": {"type": "string", "nullable": True},
            "targets": {
                "type": "list",
                "required": True,
                "schema": {"type": "dict", "schema": self.target_schema, "allow_unknown": True},
            },
            "sources": {
                "type": "list",
                "schema": {"type": "dict", "schema": self.source_schema, "allow_unknown": True},
            },
            "mappings": {
                "type": "list",
                "schema": {"type": "dict", "schema": self.mapping_schema, "allow_unknown": True},
            },
        }

    def validate_document(self, data: Dict[str, Any]) -> Tuple[bool, List[str], List[str]]:
        """
        Validate DSL document structure.

        Args:
            data: Document data to validate

        Returns:
            Tuple of (is_valid, errors, warnings)
        """
        validator = Validator(self.document_schema)  # type: ignore[misc]
        validator.allow_unknown = True  # Allow extra fields  # type: ignore[attr-defined]

        is_valid = validator.validate(data)  # type: ignore[misc]
        errors: List[str] = []
        warnings: List[str] = []

        if not is_valid:
            errors.extend(self._format_validation_errors(validator.errors))  # type: ignore[attr-defined]

        custom_errors, custom_warnings = self._perform_custom_validations(data)
        errors.extend(custom_errors)
        warnings.extend(custom_warnings)

        self.logger.debug(
            "Structural validation finished", error_count=len(errors), warning_count=len(warnings)
        )
        return bool(is_valid) and len(custom_errors) == 0, errors, warnings

    def _format_validation_errors(self, errors: Any, path: str = "") -> List[str]:
        """Format Cerberus validation errors into readable messages."""
        formatted_errors: List[str] = []

        for field, error_info in errors.items():
            if isinstance(field, int):
                current_path = f"{path}[{field}]"
            else:
                current_path = f"{path}.{field}" if path else str(field)

            if isinstance(error_info, list):
                for error in error_info:
                    if isinstance(error, dict):
                        formatted_errors.extend(self._format_validation_errors(error, current_path))
                    else:
                        formatted_errors.append(f"{current_path}: {error}")
            elif isinstance(error_info, dict):
                formatted_errors.extend(self._format_validation_errors(error_info, current_path))

        return formatted_errors

    def _perform_custom_validations(self, data: Dict[str, Any]) -> Tuple[List[str], List[str]]:
        """Checks Cerberus cannot express: duplicate and empty declarations."""
        errors: List[str] = []
        warnings: List[str] = []

        targets = data.get("targets")
        if not isinstance(targets, list):
            return errors, warnings

        if not targets:
            warnings.append("targets: document declares no target groups")

        for i, target in enumerate(targets):
            if not isinstance(target, dict):
                continue
            tables = target.get("tables")
            if isinstance(tables, list) and not tables:
                warnings.append(f"targets[{i}]: target group has no tables")
            for j, table in enumerate(tables if isinstance(tables, list) else []):
                if not isinstance(table, dict):
                    continue
                path = f"targets[{i}].tables[{j}]"
                columns = table.get("columns")
                if isinstance(columns, list) and not columns:
                    errors.append(f"{path}: table must have at least one column")
                seen: set = set()
                for k, column in enumerate(columns if isinstance(columns, list) else []):
                    name = column.get("name") if isinstance(column, dict) else None
                    if name is None:
                        continue
                    if name in seen:
                        errors.append(f"{path}.columns[{k}]: duplicate column name '{name}'")
                    seen.add(name)

        return errors, warnings


class BaseDSLParser(ABC):
    """Abstract base class for DSL parsers."""

    def __init__(self) -> None:
        self.validator = DSLValidator()

    @abstractmethod
    def load(self, content: str) -> Any:
        """Deserialize raw text; raise the format's own error on bad syntax."""
        pass

    @abstractmethod
    def validate_syntax(self, content: str) -> bool:
        """Validate DSL syntax without full parsing."""
        pass

    def parse(self, content: str) -> ParseResult:
        """
        Parse DSL content into a structurally checked raw document.

        Args:
            content: Raw DSL content as string

        Returns:
            ParseResult containing the raw document or errors
        """
        start_time = time.time()

        try:
            raw_data = self.load(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            error_msg = self._syntax_error_message(e)
            self.logger.error("DSL parsing failed", error=error_msg)
            return ParseResult(
                success=False,
                document=None,
                errors=[error_msg],
                processing_time=time.time() - start_time,
            )

        if raw_data is None:
            return ParseResult(
                success=False,
                document=None,
                errors=["Empty DSL document"],
                processing_time=time.time() - start_time,
            )

        if not isinstance(raw_data, dict):
            return ParseResult(
                success=False,
                document=None,
                errors=[f"DSL content must be a dictionary/object, got {type(raw_data).__name__}"],
                processing_time=time.time() - start_time,
            )

        is_valid, errors, warnings = self.validator.validate_document(raw_data)

        return ParseResult(
            success=is_valid,
            document=raw_data if is_valid else None,
            errors=errors,
            warnings=warnings,
            processing_time=time.time() - start_time,
        )

    def _syntax_error_message(self, error: Exception) -> str:
        return f"Invalid syntax: {error}"


class JSONDSLParser(BaseDSLParser):
    """JSON-based DSL parser implementation."""

    def __init__(self) -> None:
        super().__init__()
        self.logger: Any = logger.bind(parser="json")  # structlog.BoundLoggerBase

    def load(self, content: str) -> Any:
        self.logger.info("Parsing JSON DSL content")
        return json.loads(content)

    def validate_syntax(self, content: str) -> bool:
        try:
            json.loads(content)
            return True
        except json.JSONDecodeError:
            return False

    def _syntax_error_message(self, error: Exception) -> str:
        if isinstance(error, json.JSONDecodeError):
            return f"Invalid JSON syntax at line {error.lineno}, column {error.colno}: {error.msg}"
        return super()._syntax_error_message(error)


class YAMLDSLParser(BaseDSLParser):
    """YAML-based DSL parser implementation."""

    def __init__(self) -> None:
        super().__init__()
        self.logger: Any = logger.bind(parser="yaml")  # structlog.BoundLoggerBase

    def load(self, content: str) -> Any:
        self.logger.info("Parsing YAML DSL content")
        return yaml.safe_load(content)

    def validate_syntax(self, content: str) -> bool:
        try:
            yaml.safe_load(content)
            return True
        except yaml.YAMLError:
            return False

    def _syntax_error_message(self, error: Exception) -> str:
        return f"Invalid YAML syntax: {error}"


class DSLParserFactory:
    """Factory for creating DSL parsers based on content type."""

    _parsers = {
        "json": JSONDSLParser,
        "yaml": YAMLDSLParser,
    }

    @classmethod
    def create_parser(cls, parser_type: str) -> BaseDSLParser:
        """
        Create a DSL parser instance.

        Raises:
            ValueError: If parser type is not supported
        """
        if parser_type not in cls._parsers:
            raise ValueError(f"Unsupported parser type: {parser_type}")

        return cls._parsers[parser_type]()

    @classmethod
    def detect_parser_type(cls, content: str) -> str:
        """Detect DSL parser type from content."""
        content = content.strip()
        if content.startswith(("{", "[")):
            return "json"
        elif content.startswith(("---", "- ")) or "\n-" in content[:100]:
            return "yaml"
        else:
            try:
                json.loads(content)
                return "json"
            except json.JSONDecodeError:
                return "yaml"

    @classmethod
    def parser_type_for_path(cls, path: Path) -> str:
        return "json" if path.suffix.lower() == ".json" else "yaml"


def parse_dsl(content: str, parser_type: Optional[str] = None) -> ParseResult:
    """
    Parse DSL content using appropriate parser.

    Args:
        content: Raw DSL content
        parser_type: Optional parser type override

    Returns:
        ParseResult containing the raw document or errors
    """
    if not content or not content.strip():
        return ParseResult(
            success=False, document=None, errors=["Empty DSL content provided"], processing_time=0.0
        )

    if not parser_type:
        parser_type = DSLParserFactory.detect_parser_type(content)

    try:
        parser = DSLParserFactory.create_parser(parser_type)
    except ValueError as e:
        return ParseResult(success=False, document=None, errors=[str(e)], processing_time=0.0)
    return parser.parse(content)


def validate_dsl_syntax(content: str, parser_type: Optional[str] = None) -> bool:
    """Validate DSL syntax without full parsing."""
    if not content or not content.strip():
        return False

    if not parser_type:
        parser_type = DSLParserFactory.detect_parser_type(content)

    try:
        parser = DSLParserFactory.create_parser(parser_type)
    except ValueError:
        return False
    return parser.validate_syntax(content)


def load_documents(path: Path) -> List[Tuple[Path, Dict[str, Any]]]:
    """
    Load every DSL file under ``path`` (a file or a directory walked recursively).

    Files with other extensions are ignored. Structure is not checked here;
    callers run ``DSLValidator`` on the merged document.

    Raises:
        DSLParseError: If a file cannot be read, has invalid syntax or is not an object
    """
    path = Path(path)
    if not path.exists():
        return []

    if path.is_file():
        candidates = [path] if path.suffix.lower() in DOCUMENT_EXTENSIONS else []
    else:
        candidates = sorted(
            p for p in path.rglob("*") if p.is_file() and p.suffix.lower() in DOCUMENT_EXTENSIONS
        )

    results: List[Tuple[Path, Dict[str, Any]]] = []
    for candidate in candidates:
        try:
            content = candidate.read_text(encoding="utf-8")
        except OSError as e:
            raise DSLParseError(f"Failed to read file {candidate}: {e}") from e

        parser = DSLParserFactory.create_parser(DSLParserFactory.parser_type_for_path(candidate))
        try:
            data = parser.load(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise DSLParseError(f"Syntax error in {candidate}: {e}") from e

        if not isinstance(data, dict):
            raise DSLParseError(
                f"Expected object at root of {candidate}, got {type(data).__name__}"
            )
        results.append((candidate, data))

    logger.info("Loaded DSL documents", path=str(path), count=len(results))
    return results


def merge_documents(documents: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Concatenate targets, sources and mappings; the first declared project wins."""
    merged: Dict[str, Any] = {"targets": [], "sources": [], "mappings": []}
    for document in documents:
        if "project" not in merged and document.get("project"):
            merged["project"] = document["project"]
        for section in ("targets", "sources", "mappings"):
            entries = document.get(section) or []
            if isinstance(entries, list):
                merged[section].extend(entries)
    return merged


def get_validation_suggestions(content: str, errors: List[str]) -> List[str]:
    """
    Generate validation suggestions based on content and errors.

    Returns:
        Up to five suggestions for fixing errors
    """
    suggestions: List[str] = []

    for error in errors:
        if "JSON syntax" in error:
            suggestions.extend(
                [
                    "Check for missing commas between object properties",
                    "Ensure all strings are properly quoted",
                ]
            )
        elif "YAML syntax" in error:
            suggestions.extend(
                [
                    "Check indentation consistency (use spaces, not tabs)",
                    "Verify list item format (- item)",
                ]
            )
        elif "duplicate column" in error:
            suggestions.append("Column names must be unique within a table")
        elif "required" in error.lower():
            suggestions.append(
                "Ensure required fields are present: db and tables for targets, "
                "name for tables and columns, id and kind for sources, target for mappings"
            )

    if "targets" not in content:
        suggestions.append("DSL document should contain a 'targets' list")

    unique_suggestions: List[str] = []
    for suggestion in suggestions:
        if suggestion not in unique_suggestions:
            unique_suggestions.append(suggestion)

    return unique_suggestions[:5]
