"""Configuration management: TOML loading, environment overrides, models.

Usage:
    >>> from mysql_gcs_backup.config import load_backup_config, BackupConfig
"""

from mysql_gcs_backup.config.loader import load_backup_config
from mysql_gcs_backup.config.models import (
    DEFAULT_SKIP_DBS,
    BackupConfig,
    ConnectionParams,
    StorageConfig,
)

__all__ = [
    "load_backup_config",
    "BackupConfig",
    "ConnectionParams",
    "StorageConfig",
    "DEFAULT_SKIP_DBS",
]
