"""Object store protocol definitions.

Defines the ``ObjectStore`` and ``RemoteWriter`` Protocols the upload sink
writes through.  Methods are blocking; the sink calls them from a worker
thread.

Usage:
    from mysql_gcs_backup.storage.base import ObjectStore

    def put(store: ObjectStore, key: str, data: bytes) -> None:
        writer = store.open_writer(key)
        try:
            writer.write(data)
        except Exception:
            writer.abort()
            raise
        writer.close()
        store.stat(key)
"""

from typing import Protocol

from mysql_gcs_backup.models import ObjectInfo


class RemoteWriter(Protocol):
    """Writable handle for one remote object.

    The object only becomes visible once ``close()`` succeeds.
    """

    def write(self, data: bytes) -> int:
        """Write bytes; returns the number of bytes accepted."""
        ...

    def close(self) -> None:
        """Finalize the object, making it durable and visible.

        Raises:
            Exception: If finalization fails; the transfer must then be
                treated as failed.
        """
        ...

    def abort(self) -> None:
        """Release the handle without finalizing.

        Later ``write()`` calls are accepted and discarded so that
        compression layers stacked on top can still be closed.
        """
        ...


class ObjectStore(Protocol):
    """Remote object store interface."""

    def open_writer(self, key: str) -> RemoteWriter:
        """Open a writer for ``key``."""
        ...

    def stat(self, key: str) -> ObjectInfo:
        """Fetch object metadata.

        Raises:
            FileNotFoundError: If the object does not exist.
        """
        ...

    def uri(self, key: str) -> str:
        """Human-readable location of ``key`` (for log messages)."""
        ...
