"""Compress-and-upload sink.

Streams bytes from an async reader through a buffered writer and a gzip
compressor into a remote object, without holding the whole payload in
memory.  The object is finalized only when every stage succeeded, and its
existence is verified afterwards.

Writer chain (outermost first)::

    io.BufferedWriter(CHUNK_SIZE) -> gzip.GzipFile -> RemoteWriter

Blocking calls run on a single worker thread per transfer, so they execute
in order and cleanup never races an in-flight write.

Usage:
    from mysql_gcs_backup.storage.sink import CompressUploadSink

    sink = CompressUploadSink(store)
    info = await sink.transfer(dump.stream, key, commit_check=dump.finish)
"""

import asyncio
import gzip
import io
import logging
from collections.abc import Awaitable, Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Protocol

from mysql_gcs_backup.errors import TransferError
from mysql_gcs_backup.models import BackupTarget, ObjectInfo
from mysql_gcs_backup.storage.base import ObjectStore, RemoteWriter

logger = logging.getLogger(__name__)

CHUNK_SIZE = 16 * 1024
COMPRESS_LEVEL = 6


class ByteStream(Protocol):
    """Anything with ``asyncio.StreamReader``-style ``read``."""

    async def read(self, n: int = -1) -> bytes: ...


class _WriterChain:
    """Buffer, compressor and remote writer for one object.

    Every method runs on the transfer's worker thread.
    """

    def __init__(self, store: ObjectStore, key: str, buffer_size: int) -> None:
        self.store = store
        self.key = key
        self.buffer_size = buffer_size
        self.writer: RemoteWriter | None = None
        self.compressor: gzip.GzipFile | None = None
        self.buffer: io.BufferedWriter | None = None

    def open(self) -> None:
        self.writer = self.store.open_writer(self.key)
        self.compressor = gzip.GzipFile(
            filename=self.key.rsplit("/", 1)[-1],
            mode="wb",
            compresslevel=COMPRESS_LEVEL,
            fileobj=self.writer,
        )
        self.buffer = io.BufferedWriter(self.compressor, buffer_size=self.buffer_size)

    def write(self, data: bytes) -> None:
        self.buffer.write(data)

    def finish_compression(self) -> None:
        """Flush the buffer and write the gzip trailer."""
        self.buffer.flush()
        # Closes the GzipFile too; the remote writer stays open
        self.buffer.close()

    def finalize(self) -> None:
        self.writer.close()

    def abort(self) -> None:
        """Release every layer without finalizing the remote object."""
        if self.writer is None:
            return
        self.writer.abort()
        for layer in (self.buffer, self.compressor):
            if layer is None:
                continue
            try:
                layer.close()
            except (OSError, ValueError) as e:
                logger.debug(f"Ignoring error while releasing {type(layer).__name__}: {e}")


class CompressUploadSink:
    """Gzip-compress a byte stream into an ``ObjectStore``.

    Args:
        store: Destination object store.
        chunk_size: Read size and write-buffer size in bytes.
    """

    def __init__(self, store: ObjectStore, chunk_size: int = CHUNK_SIZE) -> None:
        self._store = store
        self._chunk_size = chunk_size

    @property
    def store(self) -> ObjectStore:
        return self._store

    async def transfer(
        self,
        stream: ByteStream,
        key: str,
        target: BackupTarget | None = None,
        commit_check: Callable[[], Awaitable[Any]] | None = None,
    ) -> ObjectInfo:
        """Copy ``stream`` to the object ``key``, gzip-compressed.

        Args:
            stream: Source of bytes, read until EOF.
            key: Destination object key.
            target: Table being transferred (error context only).
            commit_check: Awaited after all bytes are compressed and before
                the object is finalized; if it raises, the upload is aborted
                and its exception propagates unchanged.

        Returns:
            Metadata of the stored object.

        Raises:
            TransferError: If reading, compressing, uploading, finalizing or
                verifying fails.
        """
        schema = target.schema_name if target else None
        table = target.table_name if target else None
        location = self._store.uri(key)

        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="upload")

        def call(fn: Callable[..., Any], *args: Any) -> Awaitable[Any]:
            return loop.run_in_executor(executor, fn, *args)

        chain = _WriterChain(self._store, key, buffer_size=self._chunk_size)
        finalized = False
        try:
            total = 0
            try:
                await call(chain.open)
                while chunk := await stream.read(self._chunk_size):
                    await call(chain.write, chunk)
                    total += len(chunk)
                await call(chain.finish_compression)
            except Exception as e:
                raise TransferError(
                    f"Upload to {location} failed: {e}",
                    schema=schema,
                    table=table,
                    key=key,
                ) from e

            if commit_check is not None:
                await commit_check()

            try:
                await call(chain.finalize)
                finalized = True
            except Exception as e:
                raise TransferError(
                    f"Finalizing {location} failed: {e}",
                    schema=schema,
                    table=table,
                    key=key,
                ) from e

            try:
                info = await call(self._store.stat, key)
            except Exception as e:
                raise TransferError(
                    f"Uploaded object {location} is not visible: {e}",
                    schema=schema,
                    table=table,
                    key=key,
                ) from e
        finally:
            if not finalized:
                # Queued behind any in-flight open or write on the same worker
                await call(chain.abort)
            executor.shutdown(wait=False)

        logger.debug(f"Uploaded {location} ({total} bytes before compression)")
        return info
