"""
PostgreSQL DDL rendering for declarative table specs.

Identifiers are always double-quoted and literal defaults are escaped, so no
name or value from a spec is interpolated into SQL verbatim. The only raw
fragment is ``ColumnSpec.default_expression``, which comes from trusted spec
data.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from .spec import ColumnSpec, ColumnType, ConstraintKind, ConstraintSpec, IndexSpec, TableSpec


def quote_ident(name: str) -> str:
    """Quote an SQL identifier."""
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Quote an SQL string literal."""
    return "'" + value.replace("'", "''") + "'"


def qualified_name(table: TableSpec) -> str:
    return f"{quote_ident(table.schema_name)}.{quote_ident(table.name)}"


def render_type(column: ColumnSpec) -> str:
    """Render the engine type of a column."""
    if column.type == ColumnType.VARCHAR:
        return f"VARCHAR({column.length})"
    if column.type == ColumnType.DECIMAL:
        return f"DECIMAL({column.precision},{column.scale or 0})"
    return column.type.value.upper()


def render_literal(value: Any, column_type: ColumnType) -> str:
    """Render a Python value as a literal of the given column type."""
    if column_type in (ColumnType.JSON, ColumnType.JSONB):
        return f"{quote_literal(json.dumps(value))}::{column_type.value}"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return quote_literal(value.isoformat())
    if isinstance(value, str):
        return quote_literal(value)
    raise ValueError(f"Unsupported default value {value!r} for {column_type.value} column")


def render_column(column: ColumnSpec) -> str:
    """Render a column definition without unique/foreign-key clauses.

    Those are added afterwards as named constraints so each can fail on its
    own.
    """
    parts = [quote_ident(column.name), render_type(column)]
    if column.primary_key:
        parts.append("PRIMARY KEY")
    elif not column.nullable:
        parts.append("NOT NULL")
    if column.default_expression is not None:
        parts.append(f"DEFAULT {column.default_expression}")
    elif column.default is not None:
        parts.append(f"DEFAULT {render_literal(column.default, column.type)}")
    return " ".join(parts)


def create_table_sql(table: TableSpec) -> str:
    """CREATE TABLE IF NOT EXISTS with only the primary key column."""
    return f"CREATE TABLE IF NOT EXISTS {qualified_name(table)} ({render_column(table.primary_key)})"


def add_column_sql(table: TableSpec, column: ColumnSpec) -> str:
    return f"ALTER TABLE {qualified_name(table)} ADD COLUMN {render_column(column)}"


def add_constraint_sql(table: TableSpec, constraint: ConstraintSpec) -> str:
    columns = ", ".join(quote_ident(c) for c in constraint.columns)
    sql = f"ALTER TABLE {qualified_name(table)} ADD CONSTRAINT {quote_ident(constraint.name)} "

    if constraint.kind == ConstraintKind.UNIQUE:
        return sql + f"UNIQUE ({columns})"

    ref_columns = ", ".join(quote_ident(c) for c in constraint.ref_columns)
    sql += (
        f"FOREIGN KEY ({columns}) REFERENCES "
        f"{quote_ident(table.schema_name)}.{quote_ident(constraint.ref_table)} ({ref_columns})"
    )
    if constraint.on_delete is not None:
        sql += f" ON DELETE {constraint.on_delete.value}"
    return sql


def create_index_sql(table: TableSpec, index: IndexSpec) -> str:
    columns = ", ".join(quote_ident(c) for c in index.columns)
    unique = "UNIQUE " if index.unique else ""
    return (
        f"CREATE {unique}INDEX IF NOT EXISTS {quote_ident(index.index_name)} "
        f"ON {qualified_name(table)} ({columns})"
    )
