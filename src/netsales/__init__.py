"""
netsales: idempotent PostgreSQL schema reconciliation for the netsales backend.

Brings a live database up to the declared netsales tables by adding whatever
is missing, and is safe to re-run at every deploy.
"""

__version__ = "0.1.0"
__author__ = "netsales Contributors"

from .config import NetsalesConfig
from .exceptions import (
    NetsalesError,
    ConfigurationError,
    SpecError,
    DatabaseError,
    DatabaseConnectionError,
    SchemaError,
)

__all__ = [
    "__version__",
    "NetsalesConfig",
    "NetsalesError",
    "ConfigurationError",
    "SpecError",
    "DatabaseError",
    "DatabaseConnectionError",
    "SchemaError",
]
