"""Google Cloud Storage implementation of ``ObjectStore``.

Uses ``google-cloud-storage`` resumable uploads through ``Blob.open("wb")``.
Credentials come from Application Default Credentials
(``GOOGLE_APPLICATION_CREDENTIALS`` or the metadata server).

Usage:
    from mysql_gcs_backup.storage.gcs import GCSObjectStore

    store = GCSObjectStore("my-backups")
    writer = store.open_writer("db-01/2026-10-19-14/appdb/users.sql.gz")
    writer.write(b"...")
    writer.close()
    info = store.stat("db-01/2026-10-19-14/appdb/users.sql.gz")
"""

import logging

from google.cloud import storage

from mysql_gcs_backup.models import ObjectInfo

# Resumable upload chunk size; must be a multiple of 256 KiB
UPLOAD_CHUNK_SIZE = 8 * 1024 * 1024
CONTENT_TYPE = "application/gzip"

logger = logging.getLogger(__name__)


class GCSObjectWriter:
    """``RemoteWriter`` over a ``google.cloud.storage`` ``BlobWriter``.

    ``abort()`` cancels the resumable upload session and closes the
    ``BlobWriter``'s buffer without uploading the final chunk, so neither a
    later ``close()`` nor garbage collection of the writer can commit the
    object.  Writes after ``abort()`` are discarded.
    """

    def __init__(self, blob: storage.Blob, chunk_size: int = UPLOAD_CHUNK_SIZE) -> None:
        self._writer = blob.open(
            "wb",
            chunk_size=chunk_size,
            ignore_flush=True,
            content_type=CONTENT_TYPE,
        )
        self._key = blob.name
        self._aborted = False

    @property
    def aborted(self) -> bool:
        return self._aborted

    def write(self, data: bytes) -> int:
        if self._aborted:
            return len(data)
        return self._writer.write(data)

    def close(self) -> None:
        if self._aborted:
            raise ValueError("Cannot finalize an aborted upload")
        self._writer.close()

    def abort(self) -> None:
        if self._aborted:
            return
        self._aborted = True
        try:
            self._writer.terminate()
        except Exception as e:
            logger.warning(f"Failed to cancel upload session for {self._key}: {e}")
        finally:
            if not self._writer.closed:
                # terminate() failed before releasing the buffer
                self._writer._buffer.close()


class GCSObjectStore:
    """``ObjectStore`` for one GCS bucket.

    Args:
        bucket: Bucket name.
        client: Optional ``storage.Client``; created from ADC when ``None``.
        chunk_size: Resumable upload chunk size.
    """

    def __init__(
        self,
        bucket: str,
        client: storage.Client | None = None,
        chunk_size: int = UPLOAD_CHUNK_SIZE,
    ) -> None:
        self.bucket_name = bucket
        self._client = client or storage.Client()
        self._bucket = self._client.bucket(bucket)
        self._chunk_size = chunk_size

    def open_writer(self, key: str) -> GCSObjectWriter:
        return GCSObjectWriter(self._bucket.blob(key), chunk_size=self._chunk_size)

    def stat(self, key: str) -> ObjectInfo:
        blob = self._bucket.get_blob(key)
        if blob is None:
            raise FileNotFoundError(f"Object not found after upload: {self.uri(key)}")
        return ObjectInfo(
            key=key,
            size=blob.size,
            generation=blob.generation,
            updated=blob.updated,
        )

    def uri(self, key: str) -> str:
        return f"gs://{self.bucket_name}/{key}"

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._client.close()
