"""CLI module for streaming MySQL backups to Google Cloud Storage.

Usage:
    mysql-gcs-backup run --config backup.toml
    mysql-gcs-backup run --db-user backup --db-pass secret --bucket my-backups
    mysql-gcs-backup --env-prefix BACKUP_ run --db-limit 4 --table-limit 2
    mysql-gcs-backup plan --config backup.toml --skip-dbs information_schema,mysql

Commands:
    run   - Dump every table of every database and upload it gzip-compressed
    plan  - Show the databases, tables and object keys a run would produce
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from mysql_gcs_backup.config.loader import load_backup_config
from mysql_gcs_backup.config.models import BackupConfig
from mysql_gcs_backup.errors import BackupError, ConfigError
from mysql_gcs_backup.factory import plan_backup, resolve_host_id, run_backup
from mysql_gcs_backup.models import RunOutcome, Status, format_run_timestamp, object_key

console = Console()

_STATUS_STYLES = {
    Status.SUCCEEDED: "green",
    Status.FAILED: "bold red",
    Status.CANCELLED: "yellow",
    Status.PENDING: "dim",
}


# ============================================================================
# Helpers
# ============================================================================


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _load_config(args: argparse.Namespace, require_storage: bool = True) -> BackupConfig:
    """Build the config from ``--config``, environment and flags.

    ``plan`` passes ``require_storage=False``; it never touches the bucket.

    Raises:
        ConfigError: If the resulting configuration is invalid.
    """
    overrides = {
        "db_user": args.db_user,
        "db_pass": args.db_pass,
        "db_host": args.db_host,
        "db_port": args.db_port,
        "bucket": args.bucket,
        "db_limit": args.db_limit,
        "table_limit": args.table_limit,
        "skip_dbs": args.skip_dbs,
        "host_id": args.host_id,
    }
    return load_backup_config(
        args.config,
        env_prefix=getattr(args, "env_prefix", ""),
        overrides=overrides,
        require_storage=require_storage,
    )


def _render_outcome(outcome: RunOutcome) -> None:
    table = Table(
        title=f"Backup {outcome.host}/{format_run_timestamp(outcome.run_timestamp)}",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Database")
    table.add_column("Status")
    table.add_column("Tables", justify="right")
    table.add_column("Error")

    for name, schema in outcome.schemas.items():
        style = _STATUS_STYLES[schema.status]
        done = len(schema.succeeded_tables)
        table.add_row(
            name,
            f"[{style}]{schema.status.value}[/{style}]",
            f"{done}/{len(schema.tables)}",
            schema.error or "",
        )

    if outcome.schemas:
        console.print(table)

    console.print()
    if outcome.success:
        console.print(f"[bold green]v[/bold green] {outcome.format_report()}")
    else:
        console.print(f"[bold red]x[/bold red] {outcome.format_report()}")


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_run(args: argparse.Namespace) -> int:
    """Async implementation for run command.

    Returns:
        0 if every table was backed up, 1 otherwise.
    """
    try:
        config = _load_config(args)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    console.print(
        f"Backing up [bold cyan]{config.mysql.host}:{config.mysql.port}[/bold cyan] "
        f"to [bold cyan]gs://{config.storage.bucket}[/bold cyan] "
        f"(db_limit={config.db_limit}, table_limit={config.table_limit})",
        style="dim",
    )

    try:
        outcome = await run_backup(config)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] Backup could not start: {e}")
        return 1

    _render_outcome(outcome)
    return 0 if outcome.success else 1


async def _async_plan(args: argparse.Namespace) -> int:
    """Async implementation for plan command.

    Returns:
        0 on success, 1 on configuration or listing failure.
    """
    try:
        config = _load_config(args, require_storage=False)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        plan = await plan_backup(config)
    except BackupError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    host = resolve_host_id(config)
    run_timestamp = datetime.now(timezone.utc)

    table = Table(title="Backup Plan", show_header=True, header_style="bold")
    table.add_column("Database")
    table.add_column("Table")
    table.add_column("Object key", style="dim")

    for schema, tables in plan.items():
        for name in tables:
            table.add_row(schema, name, object_key(host, run_timestamp, schema, name))

    console.print(table)
    total = sum(len(t) for t in plan.values())
    console.print(f"\n{len(plan)} databases, {total} tables")
    return 0


# ============================================================================
# Sync command wrappers
# ============================================================================


def cmd_run(args: argparse.Namespace) -> int:
    """Perform a backup.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_run(args))


def cmd_plan(args: argparse.Namespace) -> int:
    """Show what a backup would do without dumping anything.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_plan(args))


# ============================================================================
# Main entry point
# ============================================================================


def _add_backup_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", "-c", help="Path to a TOML config file")
    parser.add_argument("--db-user", help="Database user")
    parser.add_argument("--db-pass", help="Database password")
    parser.add_argument("--db-host", help="Database host (default: localhost)")
    parser.add_argument("--db-port", type=int, help="Database port (default: 3306)")
    parser.add_argument(
        "--bucket", help="Destination GCS bucket name (required for run)"
    )
    parser.add_argument(
        "--db-limit",
        type=int,
        help="Maximum databases backed up concurrently (default: 2)",
    )
    parser.add_argument(
        "--table-limit",
        type=int,
        help="Maximum tables backed up concurrently per database (default: 2)",
    )
    parser.add_argument(
        "--skip-dbs",
        help=(
            "Comma-separated databases to skip "
            "(default: information_schema,performance_schema,test)"
        ),
    )
    parser.add_argument(
        "--host-id",
        help="Host identifier used as the object key prefix (default: hostname)",
    )


def main() -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="mysql-gcs-backup",
        description="Streaming MySQL backups to Google Cloud Storage",
    )

    # Global options
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix BACKUP_ reads BACKUP_DB_USER)"
        ),
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # run command
    p_run = subparsers.add_parser(
        "run",
        help="Back up every table of every database",
    )
    _add_backup_options(p_run)
    p_run.set_defaults(func=cmd_run)

    # plan command
    p_plan = subparsers.add_parser(
        "plan",
        help="List the databases, tables and object keys a run would produce",
    )
    _add_backup_options(p_plan)
    p_plan.set_defaults(func=cmd_plan)

    args = parser.parse_args()
    _setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
