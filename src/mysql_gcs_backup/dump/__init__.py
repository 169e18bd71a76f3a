"""Table dump sources.

Usage:
    from mysql_gcs_backup.dump import MysqlDumpSource, DumpProcess
"""

from mysql_gcs_backup.dump.base import DumpHandle, DumpSource
from mysql_gcs_backup.dump.source import DUMP_OPTIONS, DumpProcess, MysqlDumpSource

__all__ = [
    "DumpHandle",
    "DumpSource",
    "DUMP_OPTIONS",
    "DumpProcess",
    "MysqlDumpSource",
]
