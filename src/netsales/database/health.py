"""
Database health probe for netsales.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from .connection import ConnectionPool


logger = logging.getLogger(__name__)

PROBE_QUERY = "SELECT NOW() AS now, version() AS version, current_database() AS database"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    CRITICAL = "critical"


@dataclass
class HealthCheckResult:
    """Outcome of one probe."""

    status: HealthStatus
    message: str
    duration_ms: float
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "duration_ms": round(self.duration_ms, 1),
            **self.details,
        }


class DatabaseHealthChecker:
    """Runs a round-trip query and reports server time and version."""

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    async def check_connectivity(self) -> HealthCheckResult:
        """Probe the database; never raises."""
        started = time.perf_counter()
        try:
            row = await self.pool.fetchrow(PROBE_QUERY)
        except Exception as e:
            logger.error(f"Database health probe failed: {e}")
            return HealthCheckResult(
                status=HealthStatus.CRITICAL,
                message=f"Database connection failed: {e}",
                duration_ms=(time.perf_counter() - started) * 1000,
                details={"error": str(e)},
            )

        now = row["now"]
        return HealthCheckResult(
            status=HealthStatus.HEALTHY,
            message="Database connection successful",
            duration_ms=(time.perf_counter() - started) * 1000,
            details={
                "time": now.isoformat() if now is not None else None,
                "database": row["database"],
                "version": row["version"],
            },
        )
