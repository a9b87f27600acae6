"""
Command-line interface for netsales.
"""

import asyncio
import sys
from functools import wraps
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import NetsalesConfig
from .database.connection import ConnectionPool
from .database.health import DatabaseHealthChecker
from .exceptions import NetsalesError
from .logging_config import setup_logging
from .schema.loader import resolve_table_specs
from .schema.operations import OperationMode
from .schema.reconciler import ReconciliationReport, SchemaReconciler, VerificationReport
from .schema.spec import TableSpec


console = Console()


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except NetsalesError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(1)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {e}")
            if "--debug" in sys.argv:
                import traceback
                traceback.print_exc()
            sys.exit(1)
    return wrapper


def config_options(func):
    """Options shared by every command that talks to the database."""
    func = click.option(
        "--database-url",
        envvar="DATABASE_URL",
        help="PostgreSQL URL (overrides the configuration file)",
    )(func)
    func = click.option(
        "--config",
        "-c",
        type=click.Path(exists=True),
        help="Configuration file path",
    )(func)
    return func


def _load_config(
    ctx: click.Context, config: Optional[str], database_url: Optional[str]
) -> NetsalesConfig:
    netsales_config = NetsalesConfig.load(config)
    if database_url:
        netsales_config.database_url = database_url
    setup_logging(netsales_config.logging, debug=ctx.obj.get("debug", False))
    return netsales_config


def _load_specs(netsales_config: NetsalesConfig, spec: Optional[str]) -> List[TableSpec]:
    return resolve_table_specs(
        spec or netsales_config.reconciliation.spec_file,
        netsales_config.reconciliation.schema_name,
    )


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """netsales: idempotent schema reconciliation for the netsales database."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="netsales-config.yaml",
    help="Output configuration file path",
)
@handle_errors
def init(output: str):
    """Write a default configuration file."""
    if Path(output).exists():
        if not click.confirm(f"Configuration file {output} already exists. Overwrite?"):
            return

    _create_default_config().to_yaml(output)
    console.print(f"[green]✓[/green] Configuration file created: {output}")
    console.print("\n[yellow]Next steps:[/yellow]")
    console.print("1. Edit the database section, or export DATABASE_URL")
    console.print(f"2. Run: netsales test-connection --config {output}")
    console.print(f"3. Run: netsales reconcile --config {output} --dry-run")


@main.command()
@config_options
@click.option(
    "--spec",
    type=click.Path(exists=True),
    help="YAML table spec file (defaults to the netsales catalog)",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be done without making changes",
)
@click.pass_context
@handle_errors
def reconcile(ctx, config: Optional[str], database_url: Optional[str], spec: Optional[str], dry_run: bool):
    """Create missing tables, columns, constraints and indexes."""
    netsales_config = _load_config(ctx, config, database_url)
    specs = _load_specs(netsales_config, spec)

    if dry_run or netsales_config.reconciliation.mode == "dry_run":
        mode = OperationMode.DRY_RUN
        console.print("[yellow]Dry run mode - no changes will be made[/yellow]")
    else:
        mode = OperationMode.APPLY

    console.print(f"[blue]Reconciling {len(specs)} tables...[/blue]")

    async def run_reconcile() -> ReconciliationReport:
        async with ConnectionPool(netsales_config.connection_config()) as pool:
            return await SchemaReconciler(pool, mode).reconcile(specs)

    report = asyncio.run(run_reconcile())
    _display_report(report)
    sys.exit(0 if report.succeeded else 1)


@main.command()
@config_options
@click.option(
    "--spec",
    type=click.Path(exists=True),
    help="YAML table spec file (defaults to the netsales catalog)",
)
@click.pass_context
@handle_errors
def verify(ctx, config: Optional[str], database_url: Optional[str], spec: Optional[str]):
    """Show schema drift without changing anything."""
    netsales_config = _load_config(ctx, config, database_url)
    specs = _load_specs(netsales_config, spec)

    async def run_verify() -> VerificationReport:
        async with ConnectionPool(netsales_config.connection_config()) as pool:
            return await SchemaReconciler(pool).verify(specs)

    report = asyncio.run(run_verify())
    _display_verification(report)
    sys.exit(0 if report.is_conformant else 1)


@main.command()
@config_options
@click.pass_context
@handle_errors
def test_connection(ctx, config: Optional[str], database_url: Optional[str]):
    """Test the database connection."""
    netsales_config = _load_config(ctx, config, database_url)
    connection_config = netsales_config.connection_config()
    console.print(f"[blue]Testing connection to {connection_config.display_name}...[/blue]")

    async def run_connection_test():
        async with ConnectionPool(connection_config) as pool:
            return await DatabaseHealthChecker(pool).check_connectivity()

    result = asyncio.run(run_connection_test())
    if result.is_healthy:
        console.print(f"  [green]✓ Connected successfully[/green] ({result.duration_ms:.1f}ms)")
        console.print(f"     Database: {result.details['database']}")
        console.print(f"     PostgreSQL version: {result.details['version'].split(',')[0]}")
        sys.exit(0)

    console.print(f"  [red]✗ {result.message}[/red]")
    sys.exit(1)


@main.command()
@config_options
@click.option("--host", help="Bind address (overrides config)")
@click.option("--port", type=int, help="Bind port (overrides config)")
@click.pass_context
@handle_errors
def serve(ctx, config: Optional[str], database_url: Optional[str], host: Optional[str], port: Optional[int]):
    """Run the HTTP API."""
    import uvicorn

    from .api import create_app

    netsales_config = _load_config(ctx, config, database_url)
    host = host or netsales_config.api.host
    port = port or netsales_config.api.port

    console.print(f"[blue]Starting netsales API on {host}:{port}[/blue]")
    uvicorn.run(create_app(netsales_config), host=host, port=port, log_config=None)


def _create_default_config() -> NetsalesConfig:
    """Create a default configuration with placeholders."""
    from .config import DatabaseConnection

    return NetsalesConfig(
        database=DatabaseConnection(
            host="${POSTGRES_HOST}",
            database="${POSTGRES_DB}",
            user="${POSTGRES_USER}",
            password="${POSTGRES_PASSWORD}",
        ),
    )


def _display_report(report: ReconciliationReport) -> None:
    """Print one line per table and item, then a summary."""
    for table in report.tables_checked:
        prefix = f"{table}."
        errors = report.errors_for(table)
        if table in report.created_tables:
            action = "would be created" if report.dry_run else "created"
            console.print(f"[green]✓[/green] Table {table} {action}")
        elif not any(e.item == table for e in errors):
            console.print(f"[green]✓[/green] Table {table} exists")

        for label, items in (
            ("Added column", report.added_columns),
            ("Added constraint", report.added_constraints),
            ("Created index", report.created_indexes),
        ):
            for item in items:
                if item.startswith(prefix):
                    suffix = " (planned)" if report.dry_run else ""
                    console.print(f"  [green]✓[/green] {label} {item}{suffix}")

        for error in errors:
            console.print(f"  [red]✗[/red] {error}")

    if report.dry_run and report.planned_statements:
        console.print("\n[yellow]Planned statements:[/yellow]")
        for sql in report.planned_statements:
            console.print(f"  {sql};", markup=False, highlight=False)

    summary = Table(title="Reconciliation Summary")
    summary.add_column("Result", style="cyan")
    summary.add_column("Count", style="yellow")
    summary.add_row("Tables created", str(len(report.created_tables)))
    summary.add_row("Columns added", str(len(report.added_columns)))
    summary.add_row("Constraints added", str(len(report.added_constraints)))
    summary.add_row("Indexes created", str(len(report.created_indexes)))
    summary.add_row("Errors", str(len(report.errors)))
    console.print(summary)

    if report.succeeded:
        console.print(f"[bold green]✓ Schema reconciliation passed[/bold green] ({report.execution_time_ms:.1f}ms)")
    else:
        console.print(
            f"[bold red]✗ Schema reconciliation finished with {len(report.errors)} errors[/bold red]"
        )


def _display_verification(report: VerificationReport) -> None:
    """Print drift per table."""
    for table in report.tables_checked:
        if table in report.missing_tables:
            console.print(f"[red]✗[/red] Table {table} is missing")
            continue
        missing = report.missing_for(table)
        mismatched = report.mismatched_for(table)
        if not (missing or mismatched):
            console.print(f"[green]✓[/green] Table {table}")
            continue
        console.print(f"[red]✗[/red] Table {table}")
        for item in missing:
            console.print(f"  [red]✗[/red] missing {item}")
        for item in mismatched:
            console.print(f"  [red]✗[/red] type mismatch {item}")

    if report.is_conformant:
        console.print("[bold green]✓ Schema matches the declared tables[/bold green]")
    else:
        console.print("[bold red]✗ Schema drift detected[/bold red]")


if __name__ == "__main__":
    main()
