"""Dump source protocol definitions.

Usage:
    from mysql_gcs_backup.dump.base import DumpSource

    async def copy(source: DumpSource, target, sink) -> None:
        async with source.open(target) as dump:
            await sink.transfer(dump.stream, key)
            await dump.finish()
"""

import asyncio
from contextlib import AbstractAsyncContextManager
from typing import Protocol

from mysql_gcs_backup.models import BackupTarget


class DumpHandle(Protocol):
    """A running dump: readable stream plus completion handle."""

    @property
    def stream(self) -> asyncio.StreamReader:
        """The dump's bytes, read until EOF."""
        ...

    async def finish(self) -> None:
        """Wait for the producer to exit.

        Raises:
            DumpProcessError: If the producer exited with a failure status.
        """
        ...


class DumpSource(Protocol):
    """Opens one dump per table.

    Leaving the context returned by ``open()`` must reap the producer on
    every exit path, killing it first if it is still running.
    """

    def open(self, target: BackupTarget) -> AbstractAsyncContextManager[DumpHandle]:
        ...
