"""Streaming ``mysqldump`` source.

``MysqlDumpSource.open()`` starts one ``mysqldump`` process per table and
yields a ``DumpProcess`` whose ``stream`` is the dump's stdout.  The pipe is
bounded: when the consumer stops reading, the transport pauses and
``mysqldump`` blocks on write, so upload speed throttles dump production.

Usage:
    from mysql_gcs_backup.dump.source import MysqlDumpSource

    source = MysqlDumpSource(params)
    async with source.open(target) as dump:
        while chunk := await dump.stream.read(16384):
            ...
        await dump.finish()   # raises DumpProcessError on non-zero exit
    # leaving the block always reaps the process (killing it if needed)
"""

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mysql_gcs_backup.config.models import ConnectionParams
from mysql_gcs_backup.errors import DumpProcessError
from mysql_gcs_backup.models import BackupTarget

logger = logging.getLogger(__name__)

DUMP_OPTIONS: tuple[str, ...] = (
    "--routines",
    "--triggers",
    "--dump-date",
    "--quick",
    "--create-options",
    "--skip-extended-insert",
    "--hex-blob",
    "--default-character-set=utf8mb4",
    "--skip-lock-tables",
)

# StreamReader buffer limit for the dump's stdout
STREAM_LIMIT = 64 * 1024
# Bytes of stderr kept for error reports
STDERR_TAIL = 4 * 1024

_DRAIN_CHUNK = 64 * 1024


async def _read_tail(reader: asyncio.StreamReader, limit: int = STDERR_TAIL) -> bytes:
    """Read ``reader`` to EOF, keeping only the last ``limit`` bytes."""
    tail = bytearray()
    while chunk := await reader.read(4096):
        tail += chunk
        if len(tail) > limit:
            del tail[:-limit]
    return bytes(tail)


class DumpProcess:
    """A running dump: its output stream plus a completion handle.

    Drain ``stream`` completely before calling ``finish()``.
    """

    def __init__(
        self,
        target: BackupTarget,
        process: asyncio.subprocess.Process,
    ) -> None:
        self.target = target
        self._process = process
        self._stderr_task = asyncio.create_task(
            _read_tail(process.stderr), name=f"stderr:{target}"
        )

    @property
    def stream(self) -> asyncio.StreamReader:
        return self._process.stdout

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    async def finish(self) -> None:
        """Wait for the process to exit and check its status.

        Safe to call more than once.

        Raises:
            DumpProcessError: If the process exited non-zero, even if every
                byte of output was read successfully.
        """
        returncode = await self._process.wait()
        stderr = (await self._stderr_task).decode("utf-8", errors="replace").strip()
        if returncode != 0:
            detail = f": {stderr}" if stderr else ""
            raise DumpProcessError(
                f"mysqldump for {self.target} exited with status {returncode}{detail}",
                schema=self.target.schema_name,
                table=self.target.table_name,
                returncode=returncode,
                stderr=stderr,
            )

    async def close(self) -> None:
        """Kill the process if it is still running, drain its pipes, reap it."""
        if self._process.returncode is None:
            try:
                self._process.kill()
                logger.warning(f"Killed unfinished mysqldump for {self.target}")
            except ProcessLookupError:
                pass

        # A paused pipe never sees EOF, so drain what is left before waiting
        while await self.stream.read(_DRAIN_CHUNK):
            pass
        await self._process.wait()
        await self._stderr_task


class MysqlDumpSource:
    """Opens ``mysqldump`` streams for single tables.

    The password is handed over in the ``MYSQL_PWD`` environment variable so
    it does not show up in the process list.

    Args:
        params: Connection parameters.
        executable: ``mysqldump`` binary name or path.
        options: Dump options placed before the schema and table names.
    """

    def __init__(
        self,
        params: ConnectionParams,
        executable: str = "mysqldump",
        options: tuple[str, ...] = DUMP_OPTIONS,
    ) -> None:
        self._params = params
        self._executable = executable
        self._options = options

    def build_command(self, target: BackupTarget) -> list[str]:
        """Full argv for dumping ``target``."""
        return [
            self._executable,
            f"--user={self._params.user}",
            f"--host={self._params.host}",
            f"--port={self._params.port}",
            *self._options,
            target.schema_name,
            target.table_name,
        ]

    def build_env(self) -> dict[str, str]:
        """Process environment: the current one plus ``MYSQL_PWD``."""
        return {**os.environ, "MYSQL_PWD": self._params.password}

    @asynccontextmanager
    async def open(self, target: BackupTarget) -> AsyncIterator[DumpProcess]:
        """Start a dump of ``target`` and yield its ``DumpProcess``.

        Raises:
            DumpProcessError: If the executable cannot be started.
        """
        command = self.build_command(target)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.build_env(),
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            raise DumpProcessError(
                f"Failed to start {command[0]} for {target}: {e}",
                schema=target.schema_name,
                table=target.table_name,
            ) from e

        logger.debug(f"Started mysqldump for {target} (pid {process.pid})")
        dump = DumpProcess(target, process)
        try:
            yield dump
        finally:
            await dump.close()
