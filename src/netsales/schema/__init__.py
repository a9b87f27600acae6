"""
Schema management package for netsales.

This package provides:
- Declarative table specs and their PostgreSQL DDL
- Additive schema operations, one statement at a time
- Schema reconciliation and drift verification
- The canonical netsales table catalog
"""

from .spec import (
    ColumnSpec,
    ColumnType,
    ConstraintKind,
    ConstraintSpec,
    ForeignKeyRef,
    IndexSpec,
    OnDelete,
    TableSpec,
    forward_references,
)
from .operations import SchemaOperations, SchemaChange, ChangeType, OperationMode
from .reconciler import (
    ItemError,
    ReconciliationReport,
    ReconciliationStatus,
    SchemaReconciler,
    VerificationReport,
)
from .catalog import NETSALES_TABLES
from .loader import load_table_specs, resolve_table_specs

__all__ = [
    "ColumnSpec",
    "ColumnType",
    "ConstraintKind",
    "ConstraintSpec",
    "ForeignKeyRef",
    "IndexSpec",
    "OnDelete",
    "TableSpec",
    "forward_references",
    "SchemaOperations",
    "SchemaChange",
    "ChangeType",
    "OperationMode",
    "ItemError",
    "ReconciliationReport",
    "ReconciliationStatus",
    "SchemaReconciler",
    "VerificationReport",
    "NETSALES_TABLES",
    "load_table_specs",
    "resolve_table_specs",
]
