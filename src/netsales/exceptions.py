"""
Exception hierarchy for netsales.

Only DatabaseConnectionError aborts a reconciliation run; everything else
raised while applying a single item is recorded in the report.
"""

from typing import Any, Dict, Optional


class NetsalesError(Exception):
    """Root of every error netsales raises on purpose."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        text = self.message
        if self.details:
            text += " [" + ", ".join(f"{key}={value}" for key, value in self.details.items()) + "]"
        if self.cause:
            text += f" (caused by: {self.cause})"
        return text


class ConfigurationError(NetsalesError):
    """Config file missing, unreadable or invalid."""


class SpecError(NetsalesError):
    """A declared table cannot be turned into DDL."""


class DatabaseError(NetsalesError):
    """A query against the catalog failed."""


class DatabaseConnectionError(DatabaseError):
    """The database cannot be reached; fatal for a run."""


class DatabaseConfigurationError(DatabaseError):
    """Connection settings or URL are unusable."""


class SchemaError(DatabaseError):
    """A single schema statement or lookup failed for one table."""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        item: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, details, cause)
        self.table = table
        self.item = item
