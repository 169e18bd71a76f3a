"""Tests for the per-schema backup job."""

import asyncio

import pytest

from mysql_gcs_backup.backup.job import DatabaseBackupJob
from mysql_gcs_backup.concurrency import CancellationToken
from mysql_gcs_backup.errors import DumpProcessError, QueryError
from mysql_gcs_backup.models import BackupTarget, SchemaOutcome, Status

from conftest import FakeCatalog


class _RecordingTask:
    """Stands in for ``TableBackupTask``; tracks concurrency, fails on demand."""

    def __init__(self, failures: dict[str, Exception] | None = None, delay: float = 0.01) -> None:
        self.failures = failures or {}
        self.delay = delay
        self.started: list[str] = []
        self.active = 0
        self.peak = 0

    async def run(self, target: BackupTarget) -> None:
        self.started.append(target.table_name)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
            if target.table_name in self.failures:
                raise self.failures[target.table_name]
        finally:
            self.active -= 1


def _tables(n: int) -> list[str]:
    return [f"t{i}" for i in range(n)]


class TestDatabaseBackupJob:
    """Verify table fan-out, limits and failure reporting."""

    def test_rejects_zero_limit(self) -> None:
        with pytest.raises(ValueError):
            DatabaseBackupJob(FakeCatalog({}), _RecordingTask(), table_limit=0)

    @pytest.mark.asyncio
    async def test_all_tables_succeed(self) -> None:
        task = _RecordingTask()
        job = DatabaseBackupJob(FakeCatalog({"appdb": _tables(5)}), task, table_limit=2)

        outcome = await job.run("appdb")

        assert outcome.status is Status.SUCCEEDED
        assert outcome.tables == {t: Status.SUCCEEDED for t in _tables(5)}
        assert sorted(task.started) == _tables(5)
        assert outcome.error is None

    @pytest.mark.asyncio
    async def test_table_limit_respected(self) -> None:
        task = _RecordingTask()
        job = DatabaseBackupJob(FakeCatalog({"appdb": _tables(8)}), task, table_limit=3)

        await job.run("appdb")

        assert task.peak == 3

    @pytest.mark.asyncio
    async def test_empty_schema_succeeds(self) -> None:
        job = DatabaseBackupJob(FakeCatalog({"empty": []}), _RecordingTask())

        outcome = await job.run("empty")

        assert outcome.status is Status.SUCCEEDED
        assert outcome.tables == {}

    @pytest.mark.asyncio
    async def test_first_failure_reported(self) -> None:
        failure = DumpProcessError("exited with status 2", schema="appdb", table="t0", returncode=2)
        task = _RecordingTask(failures={"t0": failure})
        job = DatabaseBackupJob(FakeCatalog({"appdb": _tables(6)}), task, table_limit=2)
        outcome = SchemaOutcome(schema_name="appdb")

        with pytest.raises(DumpProcessError) as exc_info:
            await job.run("appdb", outcome=outcome)

        assert exc_info.value is failure
        assert outcome.status is Status.FAILED
        assert outcome.failed_table == "t0"
        assert "status 2" in outcome.error
        assert outcome.tables["t0"] is Status.FAILED
        # Tables after the failure were never started
        assert len(task.started) < 6
        assert Status.PENDING not in outcome.tables.values()

    @pytest.mark.asyncio
    async def test_listing_failure_starts_nothing(self) -> None:
        error = QueryError("Listing query failed for schema appdb", schema="appdb")
        task = _RecordingTask()
        job = DatabaseBackupJob(FakeCatalog({"appdb": ["t"]}, table_errors={"appdb": error}), task)
        outcome = SchemaOutcome(schema_name="appdb")

        with pytest.raises(QueryError):
            await job.run("appdb", outcome=outcome)

        assert task.started == []
        assert outcome.status is Status.FAILED
        assert outcome.failed_table is None

    @pytest.mark.asyncio
    async def test_cancelled_parent_starts_nothing(self) -> None:
        parent = CancellationToken()
        parent.cancel()
        task = _RecordingTask()
        job = DatabaseBackupJob(FakeCatalog({"appdb": _tables(3)}), task)
        outcome = SchemaOutcome(schema_name="appdb")

        with pytest.raises(asyncio.CancelledError):
            await job.run("appdb", token=parent, outcome=outcome)

        assert task.started == []
        assert outcome.status is Status.CANCELLED
        assert set(outcome.tables.values()) == {Status.CANCELLED}

    @pytest.mark.asyncio
    async def test_parent_cancellation_stops_running_tables(self) -> None:
        parent = CancellationToken()
        task = _RecordingTask(delay=10)
        job = DatabaseBackupJob(FakeCatalog({"appdb": _tables(4)}), task, table_limit=2)
        outcome = SchemaOutcome(schema_name="appdb")

        run = asyncio.create_task(job.run("appdb", token=parent, outcome=outcome))
        await asyncio.sleep(0.05)
        parent.cancel()

        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(run, timeout=5)

        assert outcome.status is Status.CANCELLED
        assert task.active == 0
        assert set(outcome.tables.values()) == {Status.CANCELLED}
