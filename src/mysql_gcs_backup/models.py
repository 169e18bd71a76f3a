"""Pydantic models for backup targets, object keys and run outcomes.

Usage:
    from mysql_gcs_backup.models import BackupTarget, object_key

    target = BackupTarget(schema_name="appdb", table_name="users")
    key = object_key("db-01", run_timestamp, target.schema_name, target.table_name)
    # "db-01/2026-10-19-14/appdb/users.sql.gz"
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

OBJECT_SUFFIX = ".sql.gz"
TIMESTAMP_FORMAT = "%Y-%m-%d-%H"


# ============================================================================
# Targets and keys
# ============================================================================


class BackupTarget(BaseModel):
    """One table to back up."""

    schema_name: str = Field(min_length=1)
    table_name: str = Field(min_length=1)

    def __str__(self) -> str:
        return f"{self.schema_name}.{self.table_name}"


def _escape(component: str) -> str:
    # "%" first so the mapping stays reversible
    return component.replace("%", "%25").replace("/", "%2F")


def format_run_timestamp(run_timestamp: datetime) -> str:
    """Format a run timestamp to hour granularity (``YYYY-MM-DD-HH``)."""
    return run_timestamp.strftime(TIMESTAMP_FORMAT)


def object_key(host: str, run_timestamp: datetime, schema: str, table: str) -> str:
    """Derive the object key for one table's dump.

    Format: ``<host>/<YYYY-MM-DD-HH>/<schema>/<table>.sql.gz``.  ``%`` and
    ``/`` inside components are percent-escaped, so two different inputs
    never produce the same key.
    """
    return "/".join(
        [
            _escape(host),
            format_run_timestamp(run_timestamp),
            _escape(schema),
            _escape(table) + OBJECT_SUFFIX,
        ]
    )


# ============================================================================
# Remote objects
# ============================================================================


class ObjectInfo(BaseModel):
    """Metadata of a stored object, as returned by ``ObjectStore.stat()``."""

    key: str
    size: int | None = None
    generation: int | None = None
    updated: datetime | None = None


# ============================================================================
# Outcomes
# ============================================================================


class Status(str, Enum):
    """Terminal (or pending) state of a table or schema."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SchemaOutcome(BaseModel):
    """Outcome of one schema's backup job."""

    schema_name: str
    status: Status = Status.PENDING
    tables: dict[str, Status] = Field(default_factory=dict)
    error: str | None = None
    failed_table: str | None = None

    @property
    def succeeded_tables(self) -> list[str]:
        return [t for t, s in self.tables.items() if s is Status.SUCCEEDED]


class RunOutcome(BaseModel):
    """Aggregate result of one orchestrator run."""

    host: str
    bucket: str = ""
    run_timestamp: datetime
    schemas: dict[str, SchemaOutcome] = Field(default_factory=dict)
    error: str | None = None

    @property
    def success(self) -> bool:
        """True iff nothing failed at run level and every schema succeeded."""
        if self.error is not None:
            return False
        return all(o.status is Status.SUCCEEDED for o in self.schemas.values())

    @property
    def failed_schemas(self) -> list[str]:
        return [n for n, o in self.schemas.items() if o.status is Status.FAILED]

    def format_report(self) -> str:
        """Format the run outcome as a human-readable report."""
        stamp = format_run_timestamp(self.run_timestamp)
        if self.success:
            tables = sum(len(o.tables) for o in self.schemas.values())
            return (
                f"Backup {self.host}/{stamp} succeeded: "
                f"{len(self.schemas)} schemas, {tables} tables"
            )

        lines = [f"Backup {self.host}/{stamp} failed:"]
        if self.error:
            lines.append(f"  {self.error}")

        for name, outcome in self.schemas.items():
            if outcome.status is Status.FAILED:
                where = f"{name}.{outcome.failed_table}" if outcome.failed_table else name
                lines.append(f"    - {where}: {outcome.error}")

        cancelled = [
            n for n, o in self.schemas.items() if o.status is Status.CANCELLED
        ]
        if cancelled:
            lines.append(f"\n  Cancelled schemas: {', '.join(cancelled)}")

        return "\n".join(lines)
