"""Tests for backup targets, object keys and run outcomes."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from mysql_gcs_backup.models import (
    BackupTarget,
    RunOutcome,
    SchemaOutcome,
    Status,
    format_run_timestamp,
    object_key,
)

TS = datetime(2026, 10, 19, 14, 37, 5, tzinfo=timezone.utc)


# ============================================================================
# Test: BackupTarget
# ============================================================================


class TestBackupTarget:
    """Verify target validation and display."""

    def test_str_is_dotted_name(self) -> None:
        assert str(BackupTarget(schema_name="appdb", table_name="users")) == "appdb.users"

    @pytest.mark.parametrize(
        "schema,table",
        [("", "users"), ("appdb", "")],
    )
    def test_empty_names_rejected(self, schema: str, table: str) -> None:
        with pytest.raises(ValidationError):
            BackupTarget(schema_name=schema, table_name=table)


# ============================================================================
# Test: object_key()
# ============================================================================


class TestObjectKey:
    """Verify key layout, determinism and injectivity."""

    def test_layout(self) -> None:
        key = object_key("db-01", TS, "appdb", "users")
        assert key == "db-01/2026-10-19-14/appdb/users.sql.gz"

    def test_timestamp_truncated_to_hour(self) -> None:
        later = TS.replace(minute=59, second=59)
        assert object_key("h", TS, "s", "t") == object_key("h", later, "s", "t")
        assert format_run_timestamp(TS) == "2026-10-19-14"

    def test_deterministic(self) -> None:
        assert object_key("h", TS, "s", "t") == object_key("h", TS, "s", "t")

    def test_slash_in_component_is_escaped(self) -> None:
        key = object_key("h", TS, "a/b", "c")
        assert key == "h/2026-10-19-14/a%2Fb/c.sql.gz"
        assert key.count("/") == 3

    def test_percent_is_escaped_first(self) -> None:
        key = object_key("h", TS, "a%2Fb", "c")
        assert key == "h/2026-10-19-14/a%252Fb/c.sql.gz"

    @pytest.mark.parametrize(
        "left,right",
        [
            (("a/b", "c"), ("a", "b/c")),
            (("a%2Fb", "c"), ("a/b", "c")),
            (("a", "b.sql.gz"), ("a", "b")),
            (("appdb", "users"), ("appdb", "Users")),
        ],
    )
    def test_distinct_targets_never_collide(self, left, right) -> None:
        assert object_key("h", TS, *left) != object_key("h", TS, *right)


# ============================================================================
# Test: outcomes
# ============================================================================


class TestRunOutcome:
    """Verify success aggregation and the human-readable report."""

    def _outcome(self, **statuses: Status) -> RunOutcome:
        outcome = RunOutcome(host="db-01", bucket="bkt", run_timestamp=TS)
        for name, status in statuses.items():
            outcome.schemas[name] = SchemaOutcome(schema_name=name, status=status)
        return outcome

    def test_success_requires_every_schema(self) -> None:
        assert self._outcome(a=Status.SUCCEEDED, b=Status.SUCCEEDED).success is True
        assert self._outcome(a=Status.SUCCEEDED, b=Status.CANCELLED).success is False
        assert self._outcome(a=Status.FAILED).success is False

    def test_empty_run_succeeds(self) -> None:
        assert self._outcome().success is True

    def test_run_error_is_failure(self) -> None:
        outcome = self._outcome(a=Status.SUCCEEDED)
        outcome.error = "Failed to retrieve list of databases: refused"
        assert outcome.success is False

    def test_failed_schemas(self) -> None:
        outcome = self._outcome(a=Status.SUCCEEDED, b=Status.FAILED, c=Status.CANCELLED)
        assert outcome.failed_schemas == ["b"]

    def test_report_success(self) -> None:
        outcome = self._outcome(a=Status.SUCCEEDED)
        outcome.schemas["a"].tables = {"t1": Status.SUCCEEDED, "t2": Status.SUCCEEDED}

        report = outcome.format_report()

        assert "succeeded" in report
        assert "1 schemas, 2 tables" in report

    def test_report_names_failing_table(self) -> None:
        outcome = self._outcome(a=Status.FAILED, b=Status.CANCELLED)
        outcome.error = "Database backup failed: exited with status 2"
        outcome.schemas["a"].failed_table = "orders"
        outcome.schemas["a"].error = "exited with status 2"

        report = outcome.format_report()

        assert "failed" in report
        assert "a.orders: exited with status 2" in report
        assert "Cancelled schemas: b" in report

    def test_succeeded_tables(self) -> None:
        outcome = SchemaOutcome(
            schema_name="a",
            tables={"t1": Status.SUCCEEDED, "t2": Status.FAILED, "t3": Status.CANCELLED},
        )
        assert outcome.succeeded_tables == ["t1"]
