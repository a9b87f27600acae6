"""
PostgreSQL connection handling for netsales.

The pool is created by the caller (CLI command, API app) and handed to the
reconciler; nothing here is process-global.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import parse_qs, unquote, urlparse

import asyncpg
from pydantic import BaseModel, Field, field_validator

from ..exceptions import DatabaseConfigurationError, DatabaseConnectionError


logger = logging.getLogger(__name__)


# Failures that mean the catalog itself is unreachable, as opposed to a
# single statement being rejected by the server. A timeout only counts
# while waiting for a connection; a statement that runs past
# command_timeout is that statement's failure.
CONNECTION_ERRORS = (
    OSError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.InterfaceError,
)

URL_SCHEMES = ("postgresql", "postgres")


def is_connection_error(error: BaseException) -> bool:
    """Check whether an exception signals lost connectivity."""
    if isinstance(error, asyncio.TimeoutError):
        return False
    return isinstance(error, (DatabaseConnectionError,) + CONNECTION_ERRORS)


class ConnectionConfig(BaseModel):
    """Where and how to open the pool."""

    host: str = "localhost"
    port: int = 5432
    database: str
    user: str = "postgres"
    password: str = ""
    ssl_mode: Optional[str] = Field(None, description="libpq sslmode value")

    min_size: int = Field(1, ge=0)
    max_size: int = Field(5, ge=1)
    command_timeout: float = Field(60.0, description="Client-side timeout per call, seconds")
    statement_timeout: Optional[int] = Field(
        None, description="Server-side timeout per statement, seconds"
    )
    application_name: str = "netsales"

    @field_validator("database")
    @classmethod
    def require_database(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Database name is required")
        return v

    @classmethod
    def from_url(cls, url: str) -> "ConnectionConfig":
        """Parse a postgresql:// URL such as DATABASE_URL."""
        parsed = urlparse(url)
        if parsed.scheme not in URL_SCHEMES:
            raise DatabaseConfigurationError(
                f"Invalid database URL scheme: {parsed.scheme or '(none)'}"
            )

        database = parsed.path.lstrip("/")
        if not database:
            raise DatabaseConfigurationError("Database name is required")

        try:
            port = parsed.port or 5432
        except ValueError as e:
            raise DatabaseConfigurationError(f"Invalid database URL port: {e}") from e

        sslmode = parse_qs(parsed.query).get("sslmode", ["prefer"])[0]
        return cls(
            host=parsed.hostname or "localhost",
            port=port,
            database=database,
            user=unquote(parsed.username or "postgres"),
            password=unquote(parsed.password or ""),
            ssl_mode=sslmode,
        )

    @property
    def server_settings(self) -> Dict[str, str]:
        settings = {"application_name": self.application_name}
        if self.statement_timeout:
            settings["statement_timeout"] = str(self.statement_timeout * 1000)
        return settings

    def to_connection_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for asyncpg.create_pool."""
        kwargs: Dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.user,
            "password": self.password,
            "command_timeout": self.command_timeout,
            "server_settings": self.server_settings,
            "min_size": self.min_size,
            "max_size": self.max_size,
        }
        if self.ssl_mode:
            kwargs["ssl"] = self.ssl_mode
        return kwargs

    @property
    def display_name(self) -> str:
        """Connection target without credentials, for logs."""
        return f"{self.host}:{self.port}/{self.database}"


class ConnectionPool:
    """Thin asyncpg pool handle that turns lost connectivity into DatabaseConnectionError."""

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._pool is not None

    async def initialize(self) -> None:
        """Open the pool; a no-op when already open."""
        async with self._lock:
            if self._pool is not None:
                return

            logger.info(
                f"Connecting to {self.config.display_name} "
                f"(pool {self.config.min_size}-{self.config.max_size})"
            )
            try:
                self._pool = await asyncpg.create_pool(**self.config.to_connection_kwargs())
            except Exception as e:
                logger.error(f"Could not connect to {self.config.display_name}: {e}")
                raise DatabaseConnectionError(
                    f"Failed to initialize connection pool: {e}"
                ) from e

    async def close(self) -> None:
        async with self._lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            logger.info(f"Closing pool to {self.config.display_name}")
            await pool.close()

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Borrow a connection for the duration of the block."""
        if self._pool is None:
            raise DatabaseConnectionError("Pool is not connected")

        acquired = False
        try:
            async with self._pool.acquire() as connection:
                acquired = True
                yield connection
        except asyncio.TimeoutError as e:
            if acquired:
                raise
            raise DatabaseConnectionError(
                f"Timed out waiting for a connection to {self.config.display_name}"
            ) from e
        except CONNECTION_ERRORS as e:
            raise DatabaseConnectionError(
                f"Lost connection to {self.config.display_name}: {e}"
            ) from e

    async def fetch(self, query: str, *args) -> List[asyncpg.Record]:
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args) -> Optional[asyncpg.Record]:
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args) -> Any:
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    def get_stats(self) -> Dict[str, Any]:
        """Pool size and usage."""
        if self._pool is None:
            return {"initialized": False, "size": 0, "idle": 0, "in_use": 0}
        size, idle = self._pool.get_size(), self._pool.get_idle_size()
        return {"initialized": True, "size": size, "idle": idle, "in_use": size - idle}

    async def __aenter__(self) -> "ConnectionPool":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
