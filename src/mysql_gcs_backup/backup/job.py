"""Per-schema backup job: every table of one schema under a concurrency limit."""

import asyncio
import logging

from mysql_gcs_backup.backup.table import TableBackupTask
from mysql_gcs_backup.catalog.base import Catalog
from mysql_gcs_backup.concurrency import BoundedGroup, CancellationToken
from mysql_gcs_backup.models import BackupTarget, SchemaOutcome, Status

logger = logging.getLogger(__name__)


class DatabaseBackupJob:
    """Back up all tables of a schema, at most ``table_limit`` at a time.

    The first failing table cancels the rest of the schema and becomes the
    job's error.  Tables that fail while cancellation is already under way
    are logged, not reported.

    Args:
        catalog: Used to list the schema's tables.
        task: Runs a single table.
        table_limit: Maximum number of tables dumped concurrently (``>= 1``).
    """

    def __init__(
        self,
        catalog: Catalog,
        task: TableBackupTask,
        table_limit: int = 2,
    ) -> None:
        if table_limit < 1:
            raise ValueError(f"table_limit must be >= 1, got {table_limit}")
        self._catalog = catalog
        self._task = task
        self.table_limit = table_limit

    async def run(
        self,
        schema: str,
        token: CancellationToken | None = None,
        outcome: SchemaOutcome | None = None,
    ) -> SchemaOutcome:
        """Back up every table of ``schema``.

        Args:
            schema: Schema name.
            token: Parent cancellation token (the run's).
            outcome: Outcome to fill in; a new one is created when ``None``.

        Returns:
            The completed outcome.

        Raises:
            BackupError: The first table failure, or a table listing failure
                (in which case no table is started).  ``outcome`` is marked
                failed before raising.
        """
        if outcome is None:
            outcome = SchemaOutcome(schema_name=schema)

        logger.info(f"Backing up database: {schema}")

        try:
            tables = await self._catalog.list_tables(schema)
        except Exception as e:
            self._fail(outcome, e)
            raise

        outcome.tables = {table: Status.PENDING for table in tables}

        try:
            async with BoundedGroup(
                self.table_limit, token=token, name=f"tables:{schema}"
            ) as group:
                for table in tables:
                    target = BackupTarget(schema_name=schema, table_name=table)
                    if not await group.spawn(
                        self._run_table, target, outcome, name=str(target)
                    ):
                        break
            unfinished = [t for t, s in outcome.tables.items() if s is not Status.SUCCEEDED]
            if group.cancelled and unfinished:
                raise asyncio.CancelledError()
        except asyncio.CancelledError:
            outcome.status = Status.CANCELLED
            self._cancel_pending(outcome)
            logger.info(f"Backup for database {schema} cancelled")
            raise
        except Exception as e:
            self._fail(outcome, e)
            raise

        outcome.status = Status.SUCCEEDED
        logger.info(f"Backup for database {schema} completed ({len(tables)} tables)")
        return outcome

    async def _run_table(self, target: BackupTarget, outcome: SchemaOutcome) -> None:
        table = target.table_name
        try:
            await self._task.run(target)
        except asyncio.CancelledError:
            outcome.tables[table] = Status.CANCELLED
            raise
        except Exception:
            outcome.tables[table] = Status.FAILED
            raise
        outcome.tables[table] = Status.SUCCEEDED

    @staticmethod
    def _cancel_pending(outcome: SchemaOutcome) -> None:
        for table, status in outcome.tables.items():
            if status is Status.PENDING:
                outcome.tables[table] = Status.CANCELLED

    def _fail(self, outcome: SchemaOutcome, error: Exception) -> None:
        outcome.status = Status.FAILED
        outcome.error = str(error)
        outcome.failed_table = getattr(error, "table", None)
        self._cancel_pending(outcome)
        logger.error(f"Backup for database {outcome.schema_name} failed: {error}")
