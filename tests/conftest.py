"""
Pytest configuration and shared fixtures for netsales tests.

``FakeCatalog`` stands in for a connection pool: it answers the introspection
queries from in-memory state and applies the DDL statements the schema
operations issue, so whole reconciliation runs can be tested without a
database.
"""

import asyncio
import re
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

from netsales.config import NetsalesConfig
from netsales.database.connection import ConnectionPool
from netsales.exceptions import DatabaseConnectionError
from netsales.schema.spec import ColumnSpec, ColumnType, TableSpec


class FakeStatementError(Exception):
    """A statement rejected by the fake server."""


_QUALIFIED = r'"(?P<schema>[^"]+)"\."(?P<table>[^"]+)"'
_COLUMN = r'"(?P<column>[^"]+)" (?P<type>[A-Z]+)(?:\((?P<args>[0-9,]+)\))?'
_CREATE_TABLE = re.compile(rf'^CREATE TABLE IF NOT EXISTS {_QUALIFIED} \({_COLUMN}')
_ADD_COLUMN = re.compile(rf'^ALTER TABLE {_QUALIFIED} ADD COLUMN {_COLUMN}')
_ADD_CONSTRAINT = re.compile(
    rf'^ALTER TABLE {_QUALIFIED} ADD CONSTRAINT "(?P<name>[^"]+)" '
    r'(?:UNIQUE|FOREIGN KEY \([^)]*\) REFERENCES "(?P<ref_schema>[^"]+)"\."(?P<ref_table>[^"]+)")'
)
_CREATE_INDEX = re.compile(
    rf'^CREATE (?:UNIQUE )?INDEX IF NOT EXISTS "(?P<name>[^"]+)" ON {_QUALIFIED}'
)

# Rendered column types as information_schema reports them.
_CATALOG_TYPES = {
    "SERIAL": "integer",
    "TEXT": "text",
    "VARCHAR": "character varying",
    "INTEGER": "integer",
    "BIGINT": "bigint",
    "DECIMAL": "numeric",
    "DATE": "date",
    "TIMESTAMP": "timestamp without time zone",
    "TIMESTAMPTZ": "timestamp with time zone",
    "BOOLEAN": "boolean",
    "JSON": "json",
    "JSONB": "jsonb",
}


def _catalog_type(match) -> Tuple[str, Optional[int]]:
    if match["type"] == "VARCHAR":
        return "character varying", int(match["args"])
    return _CATALOG_TYPES[match["type"]], None


class FakeTable:
    def __init__(
        self,
        columns: Optional[List[str]] = None,
        types: Optional[Dict[str, Tuple[str, Optional[int]]]] = None,
    ):
        self.columns: List[str] = list(columns or [])
        # Seeded columns are integer ids and text unless typed explicitly.
        self.types: Dict[str, Tuple[str, Optional[int]]] = {
            name: ("integer", None) if name == "id" else ("text", None) for name in self.columns
        }
        self.types.update(types or {})
        self.constraints: Set[str] = set()
        self.indexes: Set[str] = set()


class FakeCatalog:
    """In-memory catalog with the subset of the pool API the reconciler uses."""

    def __init__(self):
        self.tables: Dict[tuple, FakeTable] = {}
        self.statements: List[str] = []
        self.fail_on: Dict[str, str] = {}
        self.timeout_on: Optional[str] = None
        self.disconnect_on: Optional[str] = None
        self.is_initialized = True

    def add_table(
        self,
        name: str,
        columns: List[str],
        schema: str = "public",
        types: Optional[Dict[str, Tuple[str, Optional[int]]]] = None,
    ) -> FakeTable:
        table = FakeTable(columns, types)
        self.tables[(schema, name)] = table
        return table

    def table(self, name: str, schema: str = "public") -> FakeTable:
        return self.tables[(schema, name)]

    # Pool API

    @asynccontextmanager
    async def acquire(self):
        yield self

    async def initialize(self):
        pass

    async def close(self):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass

    async def fetchrow(self, query: str, *args):
        if "version()" in query:
            return {
                "now": datetime(2024, 5, 1, 9, 0, 0),
                "version": "PostgreSQL 16.2 on x86_64-pc-linux-gnu, compiled by gcc",
                "database": "netsales",
            }
        raise AssertionError(f"Unexpected fetchrow query: {query}")

    async def fetchval(self, query: str, *args):
        if "information_schema.tables" in query:
            return tuple(args[:2]) in self.tables
        raise AssertionError(f"Unexpected fetchval query: {query}")

    async def fetch(self, query: str, *args):
        table = self.tables.get(tuple(args[:2]))
        if table is None:
            return []
        if "information_schema.columns" in query:
            return [
                {
                    "column_name": name,
                    "data_type": table.types[name][0],
                    "is_nullable": "YES",
                    "column_default": None,
                    "character_maximum_length": table.types[name][1],
                    "ordinal_position": position,
                }
                for position, name in enumerate(table.columns, start=1)
            ]
        if "information_schema.table_constraints" in query:
            return [{"constraint_name": name} for name in sorted(table.constraints)]
        if "pg_indexes" in query:
            return [{"indexname": name} for name in sorted(table.indexes)]
        raise AssertionError(f"Unexpected fetch query: {query}")

    # Connection API

    async def execute(self, sql: str):
        self.statements.append(sql)

        if self.disconnect_on and self.disconnect_on in sql:
            raise DatabaseConnectionError("connection was closed in the middle of operation")
        if self.timeout_on and self.timeout_on in sql:
            raise asyncio.TimeoutError()
        for fragment, message in self.fail_on.items():
            if fragment in sql:
                raise FakeStatementError(message)

        match = _CREATE_TABLE.match(sql)
        if match:
            key = (match["schema"], match["table"])
            if key not in self.tables:
                table = self.add_table(
                    match["table"],
                    [match["column"]],
                    match["schema"],
                    types={match["column"]: _catalog_type(match)},
                )
                table.constraints.add(f"{match['table']}_pkey")
            return "CREATE TABLE"

        match = _ADD_COLUMN.match(sql)
        if match:
            table = self._existing(match)
            if match["column"] in table.columns:
                raise FakeStatementError(
                    f'column "{match["column"]}" of relation "{match["table"]}" already exists'
                )
            table.columns.append(match["column"])
            table.types[match["column"]] = _catalog_type(match)
            return "ALTER TABLE"

        match = _ADD_CONSTRAINT.match(sql)
        if match:
            table = self._existing(match)
            if match["ref_table"] and (match["ref_schema"], match["ref_table"]) not in self.tables:
                raise FakeStatementError(f'relation "{match["ref_table"]}" does not exist')
            if match["name"] in table.constraints:
                raise FakeStatementError(f'constraint "{match["name"]}" already exists')
            table.constraints.add(match["name"])
            return "ALTER TABLE"

        match = _CREATE_INDEX.match(sql)
        if match:
            self._existing(match).indexes.add(match["name"])
            return "CREATE INDEX"

        raise AssertionError(f"Unexpected statement: {sql}")

    def _existing(self, match) -> FakeTable:
        table = self.tables.get((match["schema"], match["table"]))
        if table is None:
            raise FakeStatementError(f'relation "{match["table"]}" does not exist')
        return table


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    """Empty in-memory catalog."""
    return FakeCatalog()


@pytest.fixture
def mock_pool():
    """Mock connection pool for unit tests."""
    pool = MagicMock(spec=ConnectionPool)
    pool.fetch = AsyncMock()
    pool.fetchval = AsyncMock()
    pool.fetchrow = AsyncMock()

    conn = MagicMock()
    conn.execute = AsyncMock(return_value="OK")

    @asynccontextmanager
    async def acquire():
        yield conn

    pool.acquire = acquire
    pool.connection = conn
    return pool


@pytest.fixture
def widgets_spec() -> TableSpec:
    """Two-column table used across reconciliation tests."""
    return TableSpec(
        name="widgets",
        columns=[
            ColumnSpec(name="id", type=ColumnType.SERIAL, primary_key=True),
            ColumnSpec(name="label", type=ColumnType.TEXT),
        ],
    )


@pytest.fixture
def parent_child_specs() -> List[TableSpec]:
    """A table and a second table with a foreign key to it."""
    parent = TableSpec(
        name="parents",
        columns=[
            ColumnSpec(name="id", type=ColumnType.SERIAL, primary_key=True),
            ColumnSpec(name="name", type=ColumnType.VARCHAR, length=100, nullable=False, unique=True),
        ],
    )
    child = TableSpec(
        name="children",
        columns=[
            ColumnSpec(name="id", type=ColumnType.SERIAL, primary_key=True),
            ColumnSpec(
                name="parent_id",
                type=ColumnType.INTEGER,
                references={"table": "parents", "on_delete": "CASCADE"},
            ),
        ],
        indexes=[{"columns": ["parent_id"]}],
    )
    return [parent, child]


@pytest.fixture
def hot_news_spec() -> TableSpec:
    """Table with a defaulted varchar column."""
    return TableSpec(
        name="hot_news",
        columns=[
            ColumnSpec(name="id", type=ColumnType.SERIAL, primary_key=True),
            ColumnSpec(name="title", type=ColumnType.VARCHAR, length=255),
            ColumnSpec(name="created_by", type=ColumnType.VARCHAR, length=100, default="Admin"),
        ],
    )


@pytest.fixture
def sample_config_dict() -> dict:
    """Sample configuration dictionary for testing."""
    return {
        "service_name": "netsales-test",
        "database": {
            "host": "localhost",
            "port": 5432,
            "database": "netsales_test",
            "user": "postgres",
            "password": "secret",
        },
        "reconciliation": {"schema_name": "public", "mode": "apply"},
        "api": {"host": "127.0.0.1", "port": 3100},
        "logging": {"level": "DEBUG"},
    }


@pytest.fixture
def config_file(tmp_path, sample_config_dict):
    """Configuration file on disk."""
    path = tmp_path / "netsales-config.yaml"
    path.write_text(yaml.safe_dump(sample_config_dict))
    return path


@pytest.fixture
def sample_config(sample_config_dict) -> NetsalesConfig:
    return NetsalesConfig(**sample_config_dict)


@pytest.fixture
def spec_file(tmp_path):
    """YAML table spec file with one table."""
    path = tmp_path / "tables.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "tables": [
                    {
                        "name": "widgets",
                        "columns": [
                            {"name": "id", "type": "serial", "primary_key": True},
                            {"name": "label", "type": "varchar", "length": 100},
                        ],
                        "indexes": [{"columns": ["label"]}],
                    }
                ]
            }
        )
    )
    return path


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep database settings from the host environment out of tests."""
    for name in ("DATABASE_URL", "NETSALES_DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
