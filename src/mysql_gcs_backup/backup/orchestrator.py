"""Top-level backup run: every schema, every table, two levels of limits.

``BackupOrchestrator.run()`` lists schemas, then runs one
``DatabaseBackupJob`` per schema with at most ``db_limit`` jobs at a time,
each running at most ``table_limit`` tables at a time.  The first failing
job cancels the whole run.  The run timestamp is captured once, before any
job starts, so every object of a run shares one time bucket.

Usage:
    from mysql_gcs_backup.backup.orchestrator import BackupOrchestrator

    orchestrator = BackupOrchestrator(catalog, source, store, host="db-01")
    outcome = await orchestrator.run(
        excluded={"information_schema", "performance_schema", "test"},
        db_limit=2,
        table_limit=2,
    )
    if not outcome.success:
        print(outcome.format_report())
"""

import logging
import socket
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from mysql_gcs_backup.backup.job import DatabaseBackupJob
from mysql_gcs_backup.backup.table import TableBackupTask
from mysql_gcs_backup.catalog.base import Catalog
from mysql_gcs_backup.concurrency import BoundedGroup, CancellationToken
from mysql_gcs_backup.config.models import DEFAULT_SKIP_DBS
from mysql_gcs_backup.dump.base import DumpSource
from mysql_gcs_backup.errors import BackupError
from mysql_gcs_backup.models import RunOutcome, SchemaOutcome, Status
from mysql_gcs_backup.storage.base import ObjectStore
from mysql_gcs_backup.storage.sink import CompressUploadSink

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BackupOrchestrator:
    """Runs a full backup of a MySQL server into an object store.

    Args:
        catalog: Lists schemas and tables.
        source: Produces table dumps.
        store: Receives compressed dumps.
        host: Host identifier for object keys (defaults to the hostname).
        bucket: Bucket name, recorded in the outcome for reporting.
        sink: Custom sink; defaults to ``CompressUploadSink(store)``.
        clock: Returns the run timestamp (tests pin it).
    """

    def __init__(
        self,
        catalog: Catalog,
        source: DumpSource,
        store: ObjectStore,
        host: str | None = None,
        bucket: str = "",
        sink: CompressUploadSink | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._catalog = catalog
        self._source = source
        self._sink = sink or CompressUploadSink(store)
        self.host = host or socket.gethostname()
        self.bucket = bucket
        self._clock = clock

    async def run(
        self,
        excluded: Iterable[str] = DEFAULT_SKIP_DBS,
        db_limit: int = 2,
        table_limit: int = 2,
    ) -> RunOutcome:
        """Back up every non-excluded schema.

        Args:
            excluded: Schema names never backed up.
            db_limit: Maximum concurrent schemas (``>= 1``).
            table_limit: Maximum concurrent tables per schema (``>= 1``).

        Returns:
            ``RunOutcome``; ``success`` is true iff every schema succeeded.
            Failures are reported in the outcome, not raised.

        Raises:
            ValueError: If a limit is below 1.
        """
        if db_limit < 1:
            raise ValueError(f"db_limit must be >= 1, got {db_limit}")
        if table_limit < 1:
            raise ValueError(f"table_limit must be >= 1, got {table_limit}")

        run_timestamp = self._clock()
        outcome = RunOutcome(host=self.host, bucket=self.bucket, run_timestamp=run_timestamp)
        skip = set(excluded)

        try:
            schemas = await self._catalog.list_schemas(skip)
        except BackupError as e:
            outcome.error = f"Failed to retrieve list of databases: {e}"
            logger.error(outcome.error)
            return outcome

        # Catalog implementations filter too; this keeps the guarantee local
        schemas = [schema for schema in schemas if schema not in skip]
        for schema in schemas:
            outcome.schemas[schema] = SchemaOutcome(schema_name=schema)

        logger.info(
            f"Backing up {len(schemas)} databases "
            f"(db_limit={db_limit}, table_limit={table_limit})"
        )

        task = TableBackupTask(self._source, self._sink, self.host, run_timestamp)
        job = DatabaseBackupJob(self._catalog, task, table_limit=table_limit)

        try:
            async with BoundedGroup(
                db_limit, token=CancellationToken(), name="databases"
            ) as group:
                for schema in schemas:
                    started = await group.spawn(
                        job.run, schema, group.token, outcome.schemas[schema], name=schema
                    )
                    if not started:
                        break
        except Exception as e:
            outcome.error = f"Database backup failed: {e}"
            if not isinstance(e, BackupError):
                logger.exception("Unexpected error during backup")

        for schema_outcome in outcome.schemas.values():
            if schema_outcome.status is Status.PENDING:
                schema_outcome.status = Status.CANCELLED

        if outcome.success:
            logger.info("Database backup completed")
        else:
            logger.error(outcome.error or "Database backup failed")
        return outcome
