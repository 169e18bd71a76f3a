"""Backup pipeline: table tasks, per-schema jobs and the run orchestrator.

Usage:
    from mysql_gcs_backup.backup import BackupOrchestrator
    from mysql_gcs_backup.backup import DatabaseBackupJob, TableBackupTask
"""

from mysql_gcs_backup.backup.job import DatabaseBackupJob
from mysql_gcs_backup.backup.orchestrator import BackupOrchestrator
from mysql_gcs_backup.backup.table import TableBackupTask

__all__ = [
    "BackupOrchestrator",
    "DatabaseBackupJob",
    "TableBackupTask",
]
