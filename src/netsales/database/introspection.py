"""
Live catalog lookups for netsales.

Reconciliation only ever asks "is this name already there?", so most of the
queries here return plain name sets read from information_schema and
pg_indexes.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from .connection import ConnectionPool
from ..exceptions import DatabaseConnectionError, DatabaseError, SchemaError


logger = logging.getLogger(__name__)


TABLE_EXISTS_SQL = """
    SELECT EXISTS (
        SELECT 1 FROM information_schema.tables
        WHERE table_schema = $1 AND table_name = $2
    )
"""

COLUMNS_SQL = """
    SELECT column_name, data_type, is_nullable, column_default,
           character_maximum_length, ordinal_position
    FROM information_schema.columns
    WHERE table_schema = $1 AND table_name = $2
    ORDER BY ordinal_position
"""

CONSTRAINT_NAMES_SQL = """
    SELECT constraint_name FROM information_schema.table_constraints
    WHERE table_schema = $1 AND table_name = $2
"""

INDEX_NAMES_SQL = """
    SELECT indexname FROM pg_indexes
    WHERE schemaname = $1 AND tablename = $2
"""


@dataclass
class ColumnInfo:
    """A column as the server reports it."""

    name: str
    data_type: str
    is_nullable: bool
    default_value: Optional[str] = None
    max_length: Optional[int] = None
    position: int = 0

    def __str__(self) -> str:
        parts = [self.name, self.data_type + (f"({self.max_length})" if self.max_length else "")]
        if not self.is_nullable:
            parts.append("NOT NULL")
        if self.default_value:
            parts.append(f"DEFAULT {self.default_value}")
        return " ".join(parts)


@dataclass
class TableInfo:
    """Snapshot of one live table."""

    schema: str
    name: str
    columns: Dict[str, ColumnInfo]
    constraints: Set[str] = field(default_factory=set)
    indexes: Set[str] = field(default_factory=set)

    @property
    def full_name(self) -> str:
        return f"{self.schema}.{self.name}"

    def has_column(self, name: str) -> bool:
        return name in self.columns

    def get_column(self, name: str) -> Optional[ColumnInfo]:
        return self.columns.get(name)


class SchemaIntrospector:
    """Reads what already exists in a schema."""

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    async def table_exists(self, schema: str, table: str) -> bool:
        try:
            return bool(await self.pool.fetchval(TABLE_EXISTS_SQL, schema, table))
        except DatabaseConnectionError:
            raise
        except Exception as e:
            logger.error(f"Existence check for {schema}.{table} failed: {e}")
            raise DatabaseError(f"Failed to check table existence: {e}") from e

    async def get_table_info(self, schema: str, table: str) -> Optional[TableInfo]:
        """Full snapshot of a table, or None when it does not exist."""
        if not await self.table_exists(schema, table):
            return None

        return TableInfo(
            schema=schema,
            name=table,
            columns=await self.get_columns(schema, table),
            constraints=await self.get_constraint_names(schema, table),
            indexes=await self.get_index_names(schema, table),
        )

    async def get_columns(self, schema: str, table: str) -> Dict[str, ColumnInfo]:
        rows = await self._fetch(COLUMNS_SQL, schema, table, "columns")
        return {
            row["column_name"]: ColumnInfo(
                name=row["column_name"],
                data_type=row["data_type"],
                is_nullable=row["is_nullable"] == "YES",
                default_value=row["column_default"],
                max_length=row["character_maximum_length"],
                position=row["ordinal_position"],
            )
            for row in rows
        }

    async def get_constraint_names(self, schema: str, table: str) -> Set[str]:
        """Named constraints on the table, primary key included."""
        rows = await self._fetch(CONSTRAINT_NAMES_SQL, schema, table, "constraints")
        return {row["constraint_name"] for row in rows}

    async def get_index_names(self, schema: str, table: str) -> Set[str]:
        rows = await self._fetch(INDEX_NAMES_SQL, schema, table, "indexes")
        return {row["indexname"] for row in rows}

    async def _fetch(self, query: str, schema: str, table: str, what: str):
        try:
            return await self.pool.fetch(query, schema, table)
        except DatabaseConnectionError:
            raise
        except Exception as e:
            logger.error(f"Reading {what} of {schema}.{table} failed: {e}")
            raise SchemaError(f"Failed to get {what}: {e}", table=table) from e
