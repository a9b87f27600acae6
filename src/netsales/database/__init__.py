"""
Database integration package for netsales.

This package provides:
- Async PostgreSQL connection pooling
- Database schema introspection
- Database health checks
"""

from .connection import ConnectionConfig, ConnectionPool, is_connection_error
from .introspection import SchemaIntrospector, ColumnInfo, TableInfo
from .health import DatabaseHealthChecker, HealthCheckResult, HealthStatus

__all__ = [
    "ConnectionConfig",
    "ConnectionPool",
    "is_connection_error",
    "SchemaIntrospector",
    "ColumnInfo",
    "TableInfo",
    "DatabaseHealthChecker",
    "HealthCheckResult",
    "HealthStatus",
]
