"""
DDL Emitters
============

One renderer per target engine, selected through ``get_renderer``. Every
renderer turns the same SchemaGraph into a single script; none of them fail
on validator findings.
"""

import json
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Type, Union

from dbdoc.config.logging import get_logger
from dbdoc.core.rendering.environment import render_template
from dbdoc.models.graph import Column, SchemaGraph, Table

logger = get_logger(__name__)


class Dialect(str, Enum):
    """Supported output engines."""
    POSTGRES = "postgres"
    MYSQL = "mysql"
    SNOWFLAKE = "snowflake"
    MONGODB = "mongodb"

    @property
    def file_extension(self) -> str:
        return ".js" if self is Dialect.MONGODB else ".sql"


class DialectRenderer(ABC):
    """Strategy interface for engine-specific output."""

    dialect: Dialect
    dialect_label: str = ""
    template_name: str = "ddl.sql.j2"

    def __init__(self) -> None:
        self.logger = logger.bind(dialect=self.dialect.value)

    @abstractmethod
    def render_column(self, column: Column, table: Table) -> str:
        """Render one column definition."""

    @abstractmethod
    def render_table(self, table: Table) -> str:
        """Render one complete statement for a table."""

    def ordered_tables(self, graph: SchemaGraph) -> List[Table]:
        return [graph.tables[ref] for ref in sorted(graph.tables, key=lambda ref: ref.key)]

    def preamble(self, graph: SchemaGraph) -> List[str]:
        """Statements emitted before any table."""
        return []

    def reference_target(self, table: Table, fk_table: str) -> str:
        """Qualify a foreign key table relative to the referencing table."""
        parts = fk_table.split(".")
        if len(parts) == 1:
            return ".".join(part for part in (table.db, table.schema, fk_table) if part)
        if len(parts) == 2:
            return ".".join(part for part in (table.db, fk_table) if part)
        return fk_table

    def foreign_key_constraints(self, table: Table) -> List[str]:
        """Table-level ``FOREIGN KEY`` clauses for engines that do not accept inline references."""
        constraints = []
        for column in table.columns.values():
            if column.fk is None:
                continue
            reference = self.reference_target(table, column.fk.table)
            if column.fk.column:
                reference += f"({column.fk.column})"
            constraints.append(f"  FOREIGN KEY ({column.name}) REFERENCES {reference}")
        return constraints

    def render(self, graph: SchemaGraph) -> str:
        statements = self.preamble(graph)
        statements.extend(self.render_table(table) for table in self.ordered_tables(graph))
        self.logger.debug("DDL rendered", project=graph.project, statements=len(statements))
        return render_template(
            self.template_name,
            dialect_label=self.dialect_label,
            project=graph.project,
            statements=statements,
        )


def qualified_name(table: Table) -> str:
    return ".".join(part for part in (table.db, table.schema, table.name) if part)


def table_rank(table: Table) -> int:
    """Dimensions first, facts last, so referenced tables are created before their referrers."""
    name = table.name.lower()
    if name.startswith("dim_"):
        return 0
    if name.startswith(("fct_", "fact_")):
        return 2
    return 1


class PostgresRenderer(DialectRenderer):
    """``CREATE TABLE IF NOT EXISTS`` with inline constraints."""

    dialect = Dialect.POSTGRES
    dialect_label = "PostgreSQL"

    def ordered_tables(self, graph: SchemaGraph) -> List[Table]:
        return sorted(graph.tables.values(), key=lambda t: (table_rank(t), t.ref.key))

    def render_column(self, column: Column, table: Table) -> str:
        parts = [f"  {column.name}", column.type or "VARCHAR"]
        if column.pk:
            parts.append("PRIMARY KEY")
        if column.unique:
            parts.append("UNIQUE")
        if column.not_null:
            parts.append("NOT NULL")
        if column.default is not None:
            parts.append(f"DEFAULT {column.default}")
        if column.fk is not None:
            reference = self.reference_target(table, column.fk.table)
            if column.fk.column:
                reference += f"({column.fk.column})"
            parts.append(f"REFERENCES {reference}")
        return " ".join(parts)

    def render_table(self, table: Table) -> str:
        definitions = [self.render_column(column, table) for column in table.columns.values()]
        body = ",\n".join(definitions)
        return f"CREATE TABLE IF NOT EXISTS {qualified_name(table)} (\n{body}\n);"


class MySQLRenderer(DialectRenderer):
    """
    InnoDB tables qualified as ``db.table``.

    MySQL has no schema level below the database, so the schema segment is
    dropped; one ``CREATE DATABASE`` statement is emitted per database.
    Keys and foreign keys are table-level clauses because InnoDB ignores
    inline ``REFERENCES``.
    """

    dialect = Dialect.MYSQL
    dialect_label = "MySQL"

    TYPE_ALIASES: Dict[str, str] = {
        "VARCHAR": "VARCHAR(255)",
        "CHARACTER VARYING": "VARCHAR(255)",
        "SERIAL": "INT AUTO_INCREMENT",
        "BIGSERIAL": "BIGINT AUTO_INCREMENT",
        "UUID": "CHAR(36)",
        "JSONB": "JSON",
        "BOOL": "BOOLEAN",
        "TIMESTAMPTZ": "TIMESTAMP",
        "TIMESTAMP WITH TIME ZONE": "TIMESTAMP",
        "BYTEA": "BLOB",
    }

    DEFAULT_REWRITES = (
        (re.compile(r"^now\(\)$", re.IGNORECASE), "CURRENT_TIMESTAMP"),
        (re.compile(r"^gen_random_uuid\(\)$", re.IGNORECASE), "(UUID())"),
    )

    def ordered_tables(self, graph: SchemaGraph) -> List[Table]:
        return sorted(graph.tables.values(), key=lambda t: (table_rank(t), t.ref.key))

    def preamble(self, graph: SchemaGraph) -> List[str]:
        databases = sorted({ref.db for ref in graph.tables if ref.db})
        return [f"CREATE DATABASE IF NOT EXISTS {db};" for db in databases]

    def map_type(self, raw_type: str) -> str:
        if not raw_type or not raw_type.strip():
            return "VARCHAR(255)"
        return self.TYPE_ALIASES.get(raw_type.strip().upper(), raw_type.strip())

    def map_default(self, default: str) -> str:
        for pattern, replacement in self.DEFAULT_REWRITES:
            if pattern.match(default.strip()):
                return replacement
        return default

    def table_name(self, table: Table) -> str:
        return ".".join(part for part in (table.db, table.name) if part)

    def reference_target(self, table: Table, fk_table: str) -> str:
        parts = fk_table.split(".")
        db = parts[0] if len(parts) >= 3 else table.db
        return ".".join(part for part in (db, parts[-1]) if part)

    def foreign_key_constraints(self, table: Table) -> List[str]:
        constraints = []
        for column in table.columns.values():
            if column.fk is None:
                continue
            # InnoDB needs an explicit referenced column; assume the same name
            referenced = column.fk.column or column.name
            reference = self.reference_target(table, column.fk.table)
            constraints.append(f"  FOREIGN KEY ({column.name}) REFERENCES {reference}({referenced})")
        return constraints

    def render_column(self, column: Column, table: Table) -> str:
        column_type = self.map_type(column.type)
        parts = [f"  {column.name}", column_type]
        if column.unique:
            parts.append("UNIQUE")
        if column.required:
            parts.append("NOT NULL")
        if column.default is not None and "AUTO_INCREMENT" not in column_type.upper():
            parts.append(f"DEFAULT {self.map_default(column.default)}")
        return " ".join(parts)

    def render_table(self, table: Table) -> str:
        definitions = [self.render_column(column, table) for column in table.columns.values()]
        if table.primary_key:
            definitions.append(f"  PRIMARY KEY ({', '.join(table.primary_key)})")
        definitions.extend(self.foreign_key_constraints(table))
        body = ",\n".join(definitions)
        return f"CREATE TABLE IF NOT EXISTS {self.table_name(table)} (\n{body}\n) ENGINE=InnoDB;"


class SnowflakeRenderer(DialectRenderer):
    """``CREATE OR REPLACE TABLE`` with Snowflake type names and a table-level primary key."""

    dialect = Dialect.SNOWFLAKE
    dialect_label = "Snowflake"

    TYPE_ALIASES: Dict[str, str] = {
        "TEXT": "STRING",
        "VARCHAR": "STRING",
        "CHARACTER VARYING": "STRING",
        "UUID": "STRING",
        "JSON": "VARIANT",
        "JSONB": "VARIANT",
        "SERIAL": "NUMBER AUTOINCREMENT",
        "BIGSERIAL": "NUMBER AUTOINCREMENT",
        "BOOL": "BOOLEAN",
        "TIMESTAMPTZ": "TIMESTAMP_TZ",
        "TIMESTAMP WITH TIME ZONE": "TIMESTAMP_TZ",
        "DOUBLE PRECISION": "DOUBLE",
        "BYTEA": "BINARY",
    }

    DEFAULT_REWRITES = (
        (re.compile(r"^now\(\)$", re.IGNORECASE), "CURRENT_TIMESTAMP()"),
        (re.compile(r"^gen_random_uuid\(\)$", re.IGNORECASE), "UUID_STRING()"),
    )

    def map_type(self, raw_type: str) -> str:
        if not raw_type or not raw_type.strip():
            return "STRING"
        # Length arguments are dropped for aliased types: VARCHAR(255) -> STRING
        base = re.sub(r"\s*\(.*\)\s*$", "", raw_type.strip()).upper()
        return self.TYPE_ALIASES.get(base, raw_type.strip())

    def map_default(self, default: str) -> str:
        for pattern, replacement in self.DEFAULT_REWRITES:
            if pattern.match(default.strip()):
                return replacement
        return default

    def render_column(self, column: Column, table: Table) -> str:
        parts = [f"  {column.name}", self.map_type(column.type)]
        if column.unique:
            parts.append("UNIQUE")
        if column.required:
            parts.append("NOT NULL")
        if column.default is not None:
            parts.append(f"DEFAULT {self.map_default(column.default)}")
        return " ".join(parts)

    def render_table(self, table: Table) -> str:
        definitions = [self.render_column(column, table) for column in table.columns.values()]
        if table.primary_key:
            definitions.append(f"  PRIMARY KEY ({', '.join(table.primary_key)})")
        # Snowflake records but does not enforce foreign keys
        definitions.extend(self.foreign_key_constraints(table))
        body = ",\n".join(definitions)
        return f"CREATE OR REPLACE TABLE {qualified_name(table)} (\n{body}\n);"


class MongoRenderer(DialectRenderer):
    """Collection creation with a ``$jsonSchema`` validator."""

    dialect = Dialect.MONGODB
    dialect_label = "MongoDB"
    template_name = "mongodb.js.j2"

    # Checked in order; the first matching fragment wins
    BSON_TYPE_RULES = (
        (("bigint", "int8", "long"), "long"),
        (("interval",), "string"),
        (("int",), "int"),
        (("bool",), "bool"),
        (("date", "time"), "date"),
        (("float", "double", "real"), "double"),
        (("decimal", "numeric", "money"), "decimal"),
        (("json",), "object"),
        (("array", "[]"), "array"),
    )

    def bson_type(self, raw_type: Optional[str]) -> str:
        lowered = (raw_type or "").lower()
        for fragments, bson_type in self.BSON_TYPE_RULES:
            if any(fragment in lowered for fragment in fragments):
                return bson_type
        return "string"

    def property_schema(self, column: Column) -> Dict[str, Any]:
        bson_type = self.bson_type(column.type)
        schema: Dict[str, Any] = {
            "bsonType": bson_type if column.required else [bson_type, "null"],
        }
        if column.description:
            schema["description"] = column.description
        return schema

    def render_column(self, column: Column, table: Table) -> str:
        """One ``"name": {...}`` entry of the ``properties`` object."""
        return f"{json.dumps(column.name)}: {json.dumps(self.property_schema(column))}"

    def required_columns(self, table: Table) -> List[str]:
        return [column.name for column in table.columns.values() if column.required]

    def json_schema(self, table: Table) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"bsonType": "object"}
        required = self.required_columns(table)
        if required:
            schema["required"] = required
        schema["properties"] = {
            column.name: self.property_schema(column) for column in table.columns.values()
        }
        return schema

    def render_table(self, table: Table) -> str:
        required = self.required_columns(table)
        lines = ["{", '  "validator": {', '    "$jsonSchema": {', '      "bsonType": "object",']
        if required:
            lines.append(f'      "required": {json.dumps(required)},')
        lines.append('      "properties": {')
        properties = [
            f"        {self.render_column(column, table)}" for column in table.columns.values()
        ]
        if properties:
            lines.append(",\n".join(properties))
        lines.extend(["      }", "    }", "  }", "}"])
        options = "\n".join(lines)
        return (
            f"db.getSiblingDB({json.dumps(table.db)})"
            f".createCollection({json.dumps(table.name)}, {options});"
        )


RENDERERS: Dict[Dialect, Type[DialectRenderer]] = {
    Dialect.POSTGRES: PostgresRenderer,
    Dialect.MYSQL: MySQLRenderer,
    Dialect.SNOWFLAKE: SnowflakeRenderer,
    Dialect.MONGODB: MongoRenderer,
}


def get_renderer(dialect: Union[Dialect, str]) -> DialectRenderer:
    """Create the renderer for a dialect name or enum member."""
    try:
        key = Dialect(str(dialect.value if isinstance(dialect, Dialect) else dialect).lower())
    except ValueError:
        available = ", ".join(d.value for d in Dialect)
        raise ValueError(f"Unsupported dialect: {dialect}. Available dialects: {available}")
    return RENDERERS[key]()


def render_ddl(graph: SchemaGraph, dialect: Union[Dialect, str]) -> str:
    return get_renderer(dialect).render(graph)


def render_all_dialects(
    graph: SchemaGraph, dialects: Optional[Sequence[Union[Dialect, str]]] = None
) -> Dict[str, str]:
    """Render every requested dialect, keyed by dialect name."""
    selected = list(dialects) if dialects is not None else list(Dialect)
    outputs: Dict[str, str] = {}
    for dialect in selected:
        renderer = get_renderer(dialect)
        outputs[renderer.dialect.value] = renderer.render(graph)
    return outputs
