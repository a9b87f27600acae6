"""
Schema reconciliation core logic for netsales.

Brings a live schema up to a declared set of tables without destructive
changes. Each table is processed in caller order: create a primary-key-only
skeleton when absent, add missing columns one by one, then missing named
constraints, then missing indexes. Existing columns whose live type cannot
hold the declared one are reported, never altered. A rejected statement is
recorded in the report and the run carries on; only lost connectivity aborts it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Sequence, Set
from enum import Enum

from ..database.connection import ConnectionPool
from ..database.introspection import ColumnInfo, SchemaIntrospector
from ..exceptions import DatabaseConnectionError, DatabaseError
from .operations import SchemaChange, SchemaOperations, ChangeType, OperationMode
from . import ddl
from .spec import ColumnSpec, ColumnType, TableSpec, forward_references


logger = logging.getLogger(__name__)


# information_schema data_type values that can hold each declared type
# without narrowing it.
COMPATIBLE_TYPES = {
    ColumnType.SERIAL: {"integer", "bigint"},
    ColumnType.TEXT: {"text", "character varying"},
    ColumnType.VARCHAR: {"character varying", "text"},
    ColumnType.INTEGER: {"integer", "bigint"},
    ColumnType.BIGINT: {"bigint"},
    ColumnType.DECIMAL: {"numeric"},
    ColumnType.DATE: {"date"},
    ColumnType.TIMESTAMP: {"timestamp without time zone", "timestamp with time zone"},
    ColumnType.TIMESTAMPTZ: {"timestamp with time zone"},
    ColumnType.BOOLEAN: {"boolean"},
    ColumnType.JSON: {"json", "jsonb"},
    ColumnType.JSONB: {"jsonb"},
}


def column_type_mismatch(column: ColumnSpec, live: ColumnInfo) -> Optional[str]:
    """Describe how a live column is incompatible with its declaration, or None."""
    found = live.data_type + (f"({live.max_length})" if live.max_length else "")
    reason = f"expected {ddl.render_type(column)}, found {found}"

    if live.data_type not in COMPATIBLE_TYPES[column.type]:
        return reason
    if live.max_length is not None:
        if column.type == ColumnType.TEXT:
            return reason
        if column.type == ColumnType.VARCHAR and live.max_length < column.length:
            return reason
    return None


class ReconciliationStatus(str, Enum):
    """Status of a reconciliation run."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class ItemError:
    """A single table, column, constraint or index that could not be applied."""

    kind: str
    table: str
    item: str
    reason: str

    def __str__(self) -> str:
        if self.item == self.table:
            return f"{self.table}: {self.reason}"
        return f"{self.table}.{self.item}: {self.reason}"

    def to_dict(self) -> Dict[str, str]:
        return {
            "kind": self.kind,
            "table": self.table,
            "item": self.item,
            "reason": self.reason,
        }


@dataclass
class ReconciliationReport:
    """Outcome of one reconciliation run."""

    created_tables: List[str] = field(default_factory=list)
    added_columns: List[str] = field(default_factory=list)
    added_constraints: List[str] = field(default_factory=list)
    created_indexes: List[str] = field(default_factory=list)
    errors: List[ItemError] = field(default_factory=list)
    planned_statements: List[str] = field(default_factory=list)
    tables_checked: List[str] = field(default_factory=list)
    dry_run: bool = False
    statements_executed: int = 0
    execution_time_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        """True when every declared item is present or was added."""
        return not self.errors

    @property
    def change_count(self) -> int:
        return (
            len(self.created_tables)
            + len(self.added_columns)
            + len(self.added_constraints)
            + len(self.created_indexes)
        )

    @property
    def status(self) -> ReconciliationStatus:
        if not self.errors:
            return ReconciliationStatus.SUCCESS
        if self.change_count:
            return ReconciliationStatus.PARTIAL
        return ReconciliationStatus.FAILED

    def record(self, change: SchemaChange) -> None:
        """File a change under the list matching its type and outcome."""
        if change.has_error:
            self.errors.append(
                ItemError(
                    kind=change.change_type.value,
                    table=change.table,
                    item=change.target,
                    reason=change.error,
                )
            )
            return

        if not (change.executed or change.planned):
            return

        if change.planned:
            self.planned_statements.append(change.sql)

        if change.change_type == ChangeType.CREATE_TABLE:
            self.created_tables.append(change.table)
        elif change.change_type == ChangeType.ADD_COLUMN:
            self.added_columns.append(change.item_name)
        elif change.change_type == ChangeType.ADD_CONSTRAINT:
            self.added_constraints.append(change.item_name)
        elif change.change_type == ChangeType.CREATE_INDEX:
            self.created_indexes.append(change.item_name)

    def errors_for(self, table: str) -> List[ItemError]:
        return [error for error in self.errors if error.table == table]

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "status": self.status.value,
            "dry_run": self.dry_run,
            "created_tables": list(self.created_tables),
            "added_columns": list(self.added_columns),
            "added_constraints": list(self.added_constraints),
            "created_indexes": list(self.created_indexes),
            "errors": [error.to_dict() for error in self.errors],
            "statements_executed": self.statements_executed,
            "execution_time_ms": round(self.execution_time_ms, 1),
        }
        if self.dry_run:
            result["planned_statements"] = list(self.planned_statements)
        return result


@dataclass
class VerificationReport:
    """Declared objects missing from the live schema."""

    missing_tables: List[str] = field(default_factory=list)
    missing_columns: List[str] = field(default_factory=list)
    missing_constraints: List[str] = field(default_factory=list)
    missing_indexes: List[str] = field(default_factory=list)
    mismatched_columns: List[str] = field(default_factory=list)
    tables_checked: List[str] = field(default_factory=list)

    @property
    def is_conformant(self) -> bool:
        return not (
            self.missing_tables
            or self.missing_columns
            or self.missing_constraints
            or self.missing_indexes
            or self.mismatched_columns
        )

    def missing_for(self, table: str) -> List[str]:
        """Missing columns, constraints and indexes of one table."""
        prefix = f"{table}."
        return [
            item
            for item in self.missing_columns + self.missing_constraints + self.missing_indexes
            if item.startswith(prefix)
        ]

    def mismatched_for(self, table: str) -> List[str]:
        """Columns of one table whose live type cannot hold the declared one."""
        prefix = f"{table}."
        return [item for item in self.mismatched_columns if item.startswith(prefix)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conformant": self.is_conformant,
            "missing_tables": list(self.missing_tables),
            "missing_columns": list(self.missing_columns),
            "missing_constraints": list(self.missing_constraints),
            "missing_indexes": list(self.missing_indexes),
            "mismatched_columns": list(self.mismatched_columns),
        }


@dataclass
class _LiveTable:
    """Catalog state of one table as seen during a run.

    Columns added during the run map to None.
    """

    columns: Dict[str, Optional[ColumnInfo]]
    constraints: Set[str]
    indexes: Set[str]


class SchemaReconciler:
    """
    Additive schema reconciliation engine.

    Works against an explicit connection pool. Runs are sequential and
    safe to repeat: a second run over a conformant schema issues no
    mutating statements.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        operation_mode: OperationMode = OperationMode.APPLY,
    ):
        self.pool = pool
        self.operation_mode = operation_mode

        self.introspector = SchemaIntrospector(pool)
        self.operations = SchemaOperations(pool, operation_mode)

    @property
    def dry_run(self) -> bool:
        return self.operation_mode == OperationMode.DRY_RUN

    async def reconcile(self, specs: Sequence[TableSpec]) -> ReconciliationReport:
        """
        Reconcile every table in the order given.

        Args:
            specs: Table specs, with referenced tables before the tables
                that reference them

        Returns:
            ReconciliationReport listing what was created or added and every
            item that failed

        Raises:
            DatabaseConnectionError: if the catalog becomes unreachable
        """
        start_time = asyncio.get_event_loop().time()
        report = ReconciliationReport(dry_run=self.dry_run)
        executed_before = self.operations.statements_executed

        for table, target in forward_references(specs):
            logger.warning(
                f"Table {table} references {target}, which is reconciled later; "
                f"the foreign key can only be added if {target} already exists"
            )

        logger.info(
            f"Starting reconciliation of {len(specs)} tables"
            + (" (dry run)" if self.dry_run else "")
        )

        try:
            for spec in specs:
                await self.reconcile_table(spec, report)
        except DatabaseConnectionError as e:
            logger.error(f"Reconciliation aborted, catalog unreachable: {e}")
            raise
        finally:
            report.statements_executed = self.operations.statements_executed - executed_before
            report.execution_time_ms = (
                asyncio.get_event_loop().time() - start_time
            ) * 1000

        logger.info(
            f"Reconciliation completed: {report.status.value}, "
            f"{report.change_count} changes, {len(report.errors)} errors "
            f"({report.execution_time_ms:.1f}ms)"
        )
        return report

    async def reconcile_table(self, spec: TableSpec, report: ReconciliationReport) -> None:
        """Bring a single table up to its spec, recording into ``report``."""
        report.tables_checked.append(spec.name)

        live = await self._ensure_table(spec, report)
        if live is None:
            return

        for column in spec.columns:
            if column.name in live.columns:
                self._check_column_type(spec, column, live.columns[column.name], report)
                continue
            change = await self.operations.add_column(spec, column)
            report.record(change)
            if change.executed or change.planned:
                live.columns[column.name] = None

        for constraint in spec.all_constraints():
            if constraint.name in live.constraints:
                continue
            report.record(await self.operations.add_constraint(spec, constraint))

        for index in spec.indexes:
            if index.index_name in live.indexes:
                continue
            report.record(await self.operations.create_index(spec, index))

        table_errors = report.errors_for(spec.name)
        if table_errors:
            logger.warning(f"Table {spec.full_name} reconciled with {len(table_errors)} errors")
        else:
            logger.info(f"Table {spec.full_name} is up to date")

    async def _ensure_table(
        self, spec: TableSpec, report: ReconciliationReport
    ) -> Optional[_LiveTable]:
        """Create the skeleton if needed and read the table's catalog state.

        Returns None when the table neither exists nor could be created.
        """
        try:
            exists = await self.introspector.table_exists(spec.schema_name, spec.name)
        except DatabaseConnectionError:
            raise
        except DatabaseError as e:
            self._record_catalog_error(report, spec, e)
            return None

        if not exists:
            change = await self.operations.create_table(spec)
            report.record(change)
            if change.has_error:
                return None
            if change.planned:
                return _LiveTable(
                    columns={spec.primary_key.name: None}, constraints=set(), indexes=set()
                )

        try:
            return _LiveTable(
                columns=await self.introspector.get_columns(spec.schema_name, spec.name),
                constraints=await self.introspector.get_constraint_names(spec.schema_name, spec.name),
                indexes=await self.introspector.get_index_names(spec.schema_name, spec.name),
            )
        except DatabaseConnectionError:
            raise
        except DatabaseError as e:
            self._record_catalog_error(report, spec, e)
            return None

    def _check_column_type(
        self,
        spec: TableSpec,
        column: ColumnSpec,
        live: Optional[ColumnInfo],
        report: ReconciliationReport,
    ) -> None:
        """Record an existing column whose type cannot hold the declared one; never alters it."""
        if live is None:
            return
        reason = column_type_mismatch(column, live)
        if reason is None:
            return
        logger.warning(f"Column {spec.full_name}.{column.name} has an incompatible type: {reason}")
        report.errors.append(
            ItemError(kind="column_type", table=spec.name, item=column.name, reason=reason)
        )

    def _record_catalog_error(
        self, report: ReconciliationReport, spec: TableSpec, error: Exception
    ) -> None:
        logger.error(f"Could not read catalog for {spec.full_name}: {error}")
        report.errors.append(
            ItemError(kind="catalog", table=spec.name, item=spec.name, reason=str(error))
        )

    async def verify(self, specs: Sequence[TableSpec]) -> VerificationReport:
        """
        Compare the live schema with the specs without changing anything.

        Raises:
            DatabaseConnectionError: if the catalog becomes unreachable
        """
        report = VerificationReport()

        for spec in specs:
            report.tables_checked.append(spec.name)
            table_info = await self.introspector.get_table_info(spec.schema_name, spec.name)
            if table_info is None:
                report.missing_tables.append(spec.name)
                continue

            report.missing_columns.extend(
                f"{spec.name}.{column.name}"
                for column in spec.columns
                if not table_info.has_column(column.name)
            )
            for column in spec.columns:
                live_column = table_info.get_column(column.name)
                reason = column_type_mismatch(column, live_column) if live_column else None
                if reason:
                    report.mismatched_columns.append(f"{spec.name}.{column.name}: {reason}")
            report.missing_constraints.extend(
                f"{spec.name}.{constraint.name}"
                for constraint in spec.all_constraints()
                if constraint.name not in table_info.constraints
            )
            report.missing_indexes.extend(
                f"{spec.name}.{index.index_name}"
                for index in spec.indexes
                if index.index_name not in table_info.indexes
            )

        logger.info(
            f"Verified {len(specs)} tables: "
            + ("conformant" if report.is_conformant else "drift detected")
        )
        return report
