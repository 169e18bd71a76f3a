"""mysql-gcs-backup: streaming MySQL backups into Google Cloud Storage.

Dumps every table of every database with ``mysqldump``, gzip-compresses the
output on the fly and uploads it as ``<host>/<YYYY-MM-DD-HH>/<db>/<table>.sql.gz``
without touching local disk.  Databases and tables are processed under two
independent concurrency limits; the first failure cancels the run.

Usage:
    from mysql_gcs_backup import load_backup_config, run_backup

    config = load_backup_config("backup.toml")
    outcome = await run_backup(config)
    print(outcome.format_report())
"""

__version__ = "0.1.0"

# Pipeline
from mysql_gcs_backup.backup.job import DatabaseBackupJob
from mysql_gcs_backup.backup.orchestrator import BackupOrchestrator
from mysql_gcs_backup.backup.table import TableBackupTask

# Building blocks
from mysql_gcs_backup.catalog.mysql import MySQLCatalog
from mysql_gcs_backup.concurrency import BoundedGroup, CancellationToken
from mysql_gcs_backup.dump.source import MysqlDumpSource
from mysql_gcs_backup.storage.gcs import GCSObjectStore
from mysql_gcs_backup.storage.sink import CompressUploadSink

# Config
from mysql_gcs_backup.config.loader import load_backup_config
from mysql_gcs_backup.config.models import BackupConfig, ConnectionParams, StorageConfig

# Errors
from mysql_gcs_backup.errors import (
    BackupError,
    ConfigError,
    DatabaseConnectionError,
    DumpProcessError,
    QueryError,
    TransferError,
)

# Factory
from mysql_gcs_backup.factory import build_orchestrator, plan_backup, run_backup

# Models
from mysql_gcs_backup.models import (
    BackupTarget,
    ObjectInfo,
    RunOutcome,
    SchemaOutcome,
    Status,
    object_key,
)

__all__ = [
    # Pipeline
    "BackupOrchestrator",
    "DatabaseBackupJob",
    "TableBackupTask",
    # Building blocks
    "MySQLCatalog",
    "BoundedGroup",
    "CancellationToken",
    "MysqlDumpSource",
    "GCSObjectStore",
    "CompressUploadSink",
    # Config
    "load_backup_config",
    "BackupConfig",
    "ConnectionParams",
    "StorageConfig",
    # Errors
    "BackupError",
    "ConfigError",
    "DatabaseConnectionError",
    "DumpProcessError",
    "QueryError",
    "TransferError",
    # Factory
    "build_orchestrator",
    "plan_backup",
    "run_backup",
    # Models
    "BackupTarget",
    "ObjectInfo",
    "RunOutcome",
    "SchemaOutcome",
    "Status",
    "object_key",
]
