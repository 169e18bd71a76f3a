"""Shared fakes for backup pipeline tests.

``FakeStore`` keeps finalized objects in memory, ``FakeCatalog`` serves a
fixed schema/table layout, and ``FakeDumpSource`` hands out in-memory dump
streams while tracking how many are open at once.  ``ScriptedDumpSource``
runs real child processes (``sys.executable -c``) in place of ``mysqldump``.
"""

import asyncio
import sys
import threading
from collections import Counter
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest

from mysql_gcs_backup.config.models import ConnectionParams
from mysql_gcs_backup.dump.source import MysqlDumpSource
from mysql_gcs_backup.errors import DumpProcessError, QueryError
from mysql_gcs_backup.models import BackupTarget, ObjectInfo

RUN_TIMESTAMP = datetime(2026, 10, 19, 14, 37, 5, tzinfo=timezone.utc)


# ============================================================================
# Object store
# ============================================================================


class FakeWriter:
    """In-memory ``RemoteWriter``; the object appears in the store on close."""

    def __init__(self, store: "FakeStore", key: str) -> None:
        self.store = store
        self.key = key
        self.data = bytearray()
        self.closed = False
        self.aborted = False

    def write(self, data: bytes) -> int:
        if self.aborted:
            return len(data)
        if self.store.fail_write:
            raise OSError(f"write to {self.key} refused")
        self.data += data
        return len(data)

    def close(self) -> None:
        if self.aborted:
            raise ValueError("Cannot finalize an aborted upload")
        if self.store.fail_close:
            raise OSError(f"finalize of {self.key} refused")
        self.closed = True
        with self.store.lock:
            self.store.objects[self.key] = bytes(self.data)

    def abort(self) -> None:
        self.aborted = True
        with self.store.lock:
            self.store.aborted.append(self.key)


class FakeStore:
    """In-memory ``ObjectStore`` with failure switches."""

    def __init__(
        self,
        fail_write: bool = False,
        fail_close: bool = False,
        hide_objects: bool = False,
    ) -> None:
        self.fail_write = fail_write
        self.fail_close = fail_close
        self.hide_objects = hide_objects
        self.objects: dict[str, bytes] = {}
        self.writers: dict[str, FakeWriter] = {}
        self.aborted: list[str] = []
        self.lock = threading.Lock()

    def open_writer(self, key: str) -> FakeWriter:
        writer = FakeWriter(self, key)
        with self.lock:
            self.writers[key] = writer
        return writer

    def stat(self, key: str) -> ObjectInfo:
        if self.hide_objects or key not in self.objects:
            raise FileNotFoundError(key)
        return ObjectInfo(key=key, size=len(self.objects[key]), generation=1)

    def uri(self, key: str) -> str:
        return f"mem://test-bucket/{key}"


# ============================================================================
# Catalog
# ============================================================================


class FakeCatalog:
    """``Catalog`` over a fixed ``{schema: [tables]}`` layout."""

    def __init__(
        self,
        layout: dict[str, list[str]],
        schema_error: Exception | None = None,
        table_errors: dict[str, Exception] | None = None,
        honor_excluded: bool = True,
    ) -> None:
        self.layout = layout
        self.schema_error = schema_error
        self.table_errors = table_errors or {}
        self.honor_excluded = honor_excluded
        self.listed_tables: list[str] = []
        self.closed = False

    async def list_schemas(self, excluded=()) -> list[str]:
        if self.schema_error is not None:
            raise self.schema_error
        skip = set(excluded) if self.honor_excluded else set()
        return [schema for schema in self.layout if schema not in skip]

    async def list_tables(self, schema: str) -> list[str]:
        self.listed_tables.append(schema)
        if schema in self.table_errors:
            raise self.table_errors[schema]
        if schema not in self.layout:
            raise QueryError(f"Unknown schema {schema}", schema=schema)
        return list(self.layout[schema])

    async def close(self) -> None:
        self.closed = True


# ============================================================================
# Dump sources
# ============================================================================


class FakeDump:
    """In-memory dump handle."""

    def __init__(self, target: BackupTarget, payload: bytes, returncode: int, hang: bool) -> None:
        self.target = target
        self.returncode = returncode
        self.stream = asyncio.StreamReader()
        self.stream.feed_data(payload)
        if not hang:
            self.stream.feed_eof()
        self.finish_calls = 0

    async def finish(self) -> None:
        self.finish_calls += 1
        if self.returncode != 0:
            raise DumpProcessError(
                f"mysqldump for {self.target} exited with status {self.returncode}",
                schema=self.target.schema_name,
                table=self.target.table_name,
                returncode=self.returncode,
            )


class FakeDumpSource:
    """``DumpSource`` yielding in-memory dumps.

    Args:
        exit_codes: ``"schema.table"`` -> non-zero exit status.
        hang: ``"schema.table"`` names whose stream never reaches EOF.
        start_errors: ``"schema.table"`` names that fail to start.
        delay: Seconds each dump stays open before its stream is handed out.
    """

    def __init__(
        self,
        exit_codes: dict[str, int] | None = None,
        hang: set[str] | None = None,
        start_errors: set[str] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.exit_codes = exit_codes or {}
        self.hang = hang or set()
        self.start_errors = start_errors or set()
        self.delay = delay
        self.opened: list[str] = []
        self.closed: list[str] = []
        self.active = 0
        self.peak = 0
        self.active_by_schema: Counter[str] = Counter()
        self.peak_by_schema: Counter[str] = Counter()

    @staticmethod
    def payload_for(target: BackupTarget) -> bytes:
        return f"-- MySQL dump of {target}\nINSERT INTO x VALUES (1);\n".encode() * 50

    @asynccontextmanager
    async def open(self, target: BackupTarget):
        name = str(target)
        if name in self.start_errors:
            raise DumpProcessError(
                f"Failed to start mysqldump for {name}",
                schema=target.schema_name,
                table=target.table_name,
            )

        self.opened.append(name)
        self.active += 1
        self.peak = max(self.peak, self.active)
        schema = target.schema_name
        self.active_by_schema[schema] += 1
        self.peak_by_schema[schema] = max(
            self.peak_by_schema[schema], self.active_by_schema[schema]
        )
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            yield FakeDump(
                target,
                self.payload_for(target),
                self.exit_codes.get(name, 0),
                hang=name in self.hang,
            )
        finally:
            self.active -= 1
            self.active_by_schema[schema] -= 1
            self.closed.append(name)


class ScriptedDumpSource(MysqlDumpSource):
    """``MysqlDumpSource`` running a Python one-liner instead of ``mysqldump``."""

    def __init__(self, script: str, params: ConnectionParams | None = None) -> None:
        super().__init__(params or ConnectionParams(user="backup", password="s3cret"))
        self.script = script

    def build_command(self, target: BackupTarget) -> list[str]:
        return [sys.executable, "-c", self.script, target.schema_name, target.table_name]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def target() -> BackupTarget:
    return BackupTarget(schema_name="appdb", table_name="users")


@pytest.fixture
def params() -> ConnectionParams:
    return ConnectionParams(user="backup", password="s3cret", host="db.internal", port=3307)
