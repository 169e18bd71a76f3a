"""Exception hierarchy for backup runs.

Every error raised by the backup pipeline derives from ``BackupError`` and
carries the schema (and, where relevant, table) it relates to, so a failing
run can always report which unit of work failed.

Usage:
    from mysql_gcs_backup.errors import BackupError, DumpProcessError

    try:
        await task.run(target)
    except BackupError as e:
        print(e.schema, e.table, e)
"""


class BackupError(Exception):
    """Base class for backup failures.

    Args:
        message: Human-readable description.
        schema: Schema the failure belongs to, if any.
        table: Table the failure belongs to, if any.
    """

    def __init__(
        self,
        message: str,
        schema: str | None = None,
        table: str | None = None,
    ) -> None:
        super().__init__(message)
        self.schema = schema
        self.table = table

    @property
    def location(self) -> str:
        """``schema.table``, ``schema`` or ``""`` depending on context."""
        if self.schema and self.table:
            return f"{self.schema}.{self.table}"
        return self.schema or ""


class ConfigError(BackupError):
    """Raised when configuration is missing or invalid."""

    pass


class DatabaseConnectionError(BackupError, ConnectionError):
    """Raised when the MySQL server cannot be reached or rejects credentials."""

    pass


class QueryError(BackupError):
    """Raised when a listing query fails after connecting."""

    pass


class DumpProcessError(BackupError):
    """Raised when the dump process cannot start or exits non-zero.

    Attributes:
        returncode: Exit status of the process (``None`` if it never started).
        stderr: Tail of the process's stderr output.
    """

    def __init__(
        self,
        message: str,
        schema: str | None = None,
        table: str | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message, schema=schema, table=table)
        self.returncode = returncode
        self.stderr = stderr


class TransferError(BackupError):
    """Raised when compressing, uploading, finalizing or verifying fails.

    The underlying cause is chained (``raise ... from``).

    Attributes:
        key: Destination object key.
    """

    def __init__(
        self,
        message: str,
        schema: str | None = None,
        table: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, schema=schema, table=table)
        self.key = key
