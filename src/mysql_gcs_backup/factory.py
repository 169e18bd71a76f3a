"""Backup pipeline factory.

Turns a validated ``BackupConfig`` into a ready-to-run
``BackupOrchestrator`` and owns the lifecycle of the resources it creates
(database engine, storage client).

Usage:
    from mysql_gcs_backup.config import load_backup_config
    from mysql_gcs_backup.factory import run_backup

    config = load_backup_config("backup.toml", env_prefix="BACKUP_")
    outcome = await run_backup(config)
"""

import socket

from mysql_gcs_backup.backup.orchestrator import BackupOrchestrator
from mysql_gcs_backup.catalog.base import Catalog
from mysql_gcs_backup.catalog.mysql import MySQLCatalog
from mysql_gcs_backup.config.models import BackupConfig
from mysql_gcs_backup.dump.base import DumpSource
from mysql_gcs_backup.dump.source import MysqlDumpSource
from mysql_gcs_backup.errors import ConfigError
from mysql_gcs_backup.models import RunOutcome
from mysql_gcs_backup.storage.base import ObjectStore
from mysql_gcs_backup.storage.gcs import GCSObjectStore


def resolve_host_id(config: BackupConfig) -> str:
    """Configured host identifier, or the machine's hostname."""
    return config.host_id or socket.gethostname()


def _require_bucket(config: BackupConfig) -> str:
    if config.storage is None:
        raise ConfigError("Invalid backup configuration: storage.bucket: Field required")
    return config.storage.bucket


def build_orchestrator(
    config: BackupConfig,
    catalog: Catalog,
    store: ObjectStore,
    source: DumpSource | None = None,
) -> BackupOrchestrator:
    """Wire an orchestrator for ``config``.

    Args:
        config: Validated configuration.
        catalog: Schema/table lister.
        store: Destination object store.
        source: Dump source; defaults to ``mysqldump`` with
            ``config.mysql`` credentials.

    Returns:
        Configured ``BackupOrchestrator``.
    """
    if source is None:
        source = MysqlDumpSource(config.mysql, executable=config.mysqldump)

    return BackupOrchestrator(
        catalog,
        source,
        store,
        host=resolve_host_id(config),
        bucket=_require_bucket(config),
    )


async def run_backup(
    config: BackupConfig,
    catalog: Catalog | None = None,
    store: ObjectStore | None = None,
    source: DumpSource | None = None,
) -> RunOutcome:
    """Run one complete backup described by ``config``.

    Resources created here (MySQL engine, GCS client) are closed before
    returning; injected ones are left to the caller, except that the
    catalog is always closed.

    Returns:
        The run's ``RunOutcome``.

    Raises:
        ConfigError: If ``config`` has no storage bucket.
    """
    bucket = _require_bucket(config)

    if catalog is None:
        # One connection per concurrent table listing, plus one spare
        catalog = MySQLCatalog(config.mysql, pool_size=config.db_limit + 1)

    owned_store: GCSObjectStore | None = None
    try:
        if store is None:
            store = owned_store = GCSObjectStore(bucket)

        orchestrator = build_orchestrator(config, catalog, store, source)
        return await orchestrator.run(
            excluded=config.excluded_schemas,
            db_limit=config.db_limit,
            table_limit=config.table_limit,
        )
    finally:
        await catalog.close()
        if owned_store is not None:
            owned_store.close()


async def plan_backup(
    config: BackupConfig,
    catalog: Catalog | None = None,
) -> dict[str, list[str]]:
    """List what a run would back up, without dumping anything.

    Returns:
        Mapping of schema name to its table names.

    Raises:
        BackupError: If listing schemas or tables fails.
    """
    if catalog is None:
        catalog = MySQLCatalog(config.mysql)

    try:
        plan: dict[str, list[str]] = {}
        for schema in await catalog.list_schemas(config.excluded_schemas):
            if schema in config.excluded_schemas:
                continue
            plan[schema] = await catalog.list_tables(schema)
        return plan
    finally:
        await catalog.close()
