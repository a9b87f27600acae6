"""
Schema operations for netsales.

Each operation renders one additive DDL statement, runs it on its own and
records the outcome on a ``SchemaChange``. A rejected statement is recorded,
never raised; only lost connectivity propagates.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional
from enum import Enum

from ..database.connection import ConnectionPool, is_connection_error
from ..exceptions import DatabaseConnectionError
from . import ddl
from .spec import ColumnSpec, ConstraintSpec, IndexSpec, TableSpec


logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    """Types of schema changes."""

    CREATE_TABLE = "create_table"
    ADD_COLUMN = "add_column"
    ADD_CONSTRAINT = "add_constraint"
    CREATE_INDEX = "create_index"


class OperationMode(str, Enum):
    """Schema operation modes."""

    APPLY = "apply"            # Execute statements
    DRY_RUN = "dry_run"        # Generate SQL but don't execute


@dataclass
class SchemaChange:
    """Represents a schema change operation."""

    change_type: ChangeType
    schema: str
    table: str
    target: str
    description: str
    sql: str

    # Execution results
    executed: bool = False
    planned: bool = False
    execution_time_ms: Optional[float] = None
    error: Optional[str] = None

    @property
    def full_table_name(self) -> str:
        """Get fully qualified table name."""
        return f"{self.schema}.{self.table}"

    @property
    def item_name(self) -> str:
        """Name used in reports: the table, or table.object."""
        if self.change_type == ChangeType.CREATE_TABLE:
            return self.table
        return f"{self.table}.{self.target}"

    @property
    def has_error(self) -> bool:
        """Check if this change has an error."""
        return self.error is not None

    @property
    def change_id(self) -> str:
        """Get unique identifier for this change."""
        return f"{self.change_type.value}_{self.schema}_{self.table}_{self.target}"


class SchemaOperations:
    """Executes additive schema changes one statement at a time."""

    def __init__(
        self,
        pool: ConnectionPool,
        operation_mode: OperationMode = OperationMode.APPLY,
    ):
        self.pool = pool
        self.operation_mode = operation_mode
        self.statements_executed = 0

    async def create_table(self, table: TableSpec) -> SchemaChange:
        """Create the table with only its primary key column."""
        change = self._prepare(
            ChangeType.CREATE_TABLE,
            table,
            table.name,
            f"Create table {table.full_name}",
            lambda: ddl.create_table_sql(table),
        )
        return await self._execute_change(change)

    async def add_column(self, table: TableSpec, column: ColumnSpec) -> SchemaChange:
        """Add a column with its full type, default and nullability."""
        change = self._prepare(
            ChangeType.ADD_COLUMN,
            table,
            column.name,
            f"Add column {column.name} to {table.full_name}",
            lambda: ddl.add_column_sql(table, column),
        )
        return await self._execute_change(change)

    async def add_constraint(self, table: TableSpec, constraint: ConstraintSpec) -> SchemaChange:
        """Add a named unique or foreign-key constraint."""
        change = self._prepare(
            ChangeType.ADD_CONSTRAINT,
            table,
            constraint.name,
            f"Add {constraint.kind.value} constraint {constraint.name} to {table.full_name}",
            lambda: ddl.add_constraint_sql(table, constraint),
        )
        return await self._execute_change(change)

    async def create_index(self, table: TableSpec, index: IndexSpec) -> SchemaChange:
        """Create an index if it doesn't exist."""
        change = self._prepare(
            ChangeType.CREATE_INDEX,
            table,
            index.index_name,
            f"Create index {index.index_name} on {table.full_name}",
            lambda: ddl.create_index_sql(table, index),
        )
        return await self._execute_change(change)

    def _prepare(
        self,
        change_type: ChangeType,
        table: TableSpec,
        target: str,
        description: str,
        render: Callable[[], str],
    ) -> SchemaChange:
        """Build a change, recording definitions that cannot be rendered."""
        change = SchemaChange(
            change_type=change_type,
            schema=table.schema_name,
            table=table.name,
            target=target,
            description=description,
            sql="",
        )
        try:
            change.sql = render()
        except ValueError as e:
            change.error = f"Invalid definition: {e}"
            logger.warning(f"Cannot render {change.change_id}: {e}")
        return change

    async def _execute_change(self, change: SchemaChange) -> SchemaChange:
        """Run a single statement, recording any rejection on the change."""

        if change.has_error:
            return change

        if self.operation_mode == OperationMode.DRY_RUN:
            change.planned = True
            logger.info(f"DRY RUN: Would execute {change.change_id}")
            logger.debug(f"SQL: {change.sql}")
            return change

        start_time = time.time()
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(change.sql)
        except DatabaseConnectionError:
            raise
        except asyncio.TimeoutError:
            change.error = f"statement timed out after {time.time() - start_time:.1f}s"
            logger.warning(f"Timed out executing {change.change_id}")
        except Exception as e:
            if is_connection_error(e):
                raise DatabaseConnectionError(
                    f"Lost connection while executing {change.change_id}: {e}"
                ) from e
            change.error = str(e)
            logger.warning(f"Failed to execute {change.change_id}: {e}")
        else:
            change.executed = True
            logger.info(f"Successfully executed {change.change_id}")
        finally:
            self.statements_executed += 1
            change.execution_time_ms = (time.time() - start_time) * 1000

        return change

