"""
HTTP API for netsales.

Endpoints:
- GET /api/health: database connectivity check
- POST /api/setup-schema: reconcile the schema (``?dry_run=true`` to plan only)
- GET /api/schema-status: read-only drift report
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from . import __version__
from .config import NetsalesConfig
from .database.connection import ConnectionPool
from .database.health import DatabaseHealthChecker
from .exceptions import DatabaseConnectionError, DatabaseError
from .schema.loader import resolve_table_specs
from .schema.operations import OperationMode
from .schema.reconciler import SchemaReconciler
from .schema.spec import TableSpec


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["schema"])


async def _get_pool(request: Request) -> ConnectionPool:
    """Return the app's pool, connecting on first use."""
    pool: ConnectionPool = request.app.state.pool
    if not pool.is_initialized:
        await pool.initialize()
    return pool


def _get_specs(request: Request) -> List[TableSpec]:
    return request.app.state.specs


@router.get("/health")
async def health(request: Request):
    """Report whether the database answers queries."""
    try:
        pool = await _get_pool(request)
    except DatabaseConnectionError as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Database connection failed", "details": str(e)},
        )

    result = await DatabaseHealthChecker(pool).check_connectivity()
    if not result.is_healthy:
        return JSONResponse(
            status_code=500,
            content={
                "error": "Database connection failed",
                "details": result.details.get("error", result.message),
            },
        )
    return {"status": "ok", "time": result.details.get("time"), "db": "connected"}


@router.post("/setup-schema")
async def setup_schema(
    request: Request,
    dry_run: bool = Query(False, description="Plan statements without executing them"),
):
    """Reconcile the schema; item failures are reported, not raised."""
    mode = OperationMode.DRY_RUN if dry_run else request.app.state.operation_mode
    try:
        pool = await _get_pool(request)
        report = await SchemaReconciler(pool, mode).reconcile(_get_specs(request))
    except DatabaseConnectionError as e:
        logger.error(f"Schema setup aborted: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Schema setup failed", "details": str(e)},
        )
    return report.to_dict()


@router.get("/schema-status")
async def schema_status(request: Request):
    """List declared tables, columns, constraints and indexes missing live."""
    try:
        pool = await _get_pool(request)
        report = await SchemaReconciler(pool).verify(_get_specs(request))
    except DatabaseError as e:
        logger.error(f"Schema status check failed: {e}")
        error = (
            "Database connection failed"
            if isinstance(e, DatabaseConnectionError)
            else "Schema status check failed"
        )
        return JSONResponse(status_code=500, content={"error": error, "details": str(e)})
    return report.to_dict()


def create_app(
    config: Optional[NetsalesConfig] = None,
    pool: Optional[ConnectionPool] = None,
    specs: Optional[List[TableSpec]] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        config: Service configuration, loaded from the environment if omitted
        pool: Connection pool to use instead of one built from ``config``
        specs: Table specs to reconcile instead of the configured ones
    """
    config = config or NetsalesConfig.load()
    if specs is None:
        specs = resolve_table_specs(
            config.reconciliation.spec_file, config.reconciliation.schema_name
        )
    if pool is None:
        pool = ConnectionPool(config.connection_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await pool.initialize()
        except DatabaseConnectionError as e:
            # Served anyway; /api/health reports the failure.
            logger.warning(f"Database not reachable at startup: {e}")
        try:
            yield
        finally:
            await pool.close()

    app = FastAPI(
        title="netsales schema API",
        description="Idempotent schema reconciliation for the netsales database",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.pool = pool
    app.state.specs = specs
    app.state.operation_mode = OperationMode(config.reconciliation.mode)
    app.include_router(router)
    return app
