"""Object storage: protocols, the GCS adapter and the compress-upload sink.

``GCSObjectStore`` needs ``google-cloud-storage`` and credentials only when
instantiated.

Usage:
    from mysql_gcs_backup.storage import CompressUploadSink, GCSObjectStore
"""

from mysql_gcs_backup.storage.base import ObjectStore, RemoteWriter
from mysql_gcs_backup.storage.gcs import GCSObjectStore, GCSObjectWriter
from mysql_gcs_backup.storage.sink import CHUNK_SIZE, CompressUploadSink

__all__ = [
    "ObjectStore",
    "RemoteWriter",
    "GCSObjectStore",
    "GCSObjectWriter",
    "CompressUploadSink",
    "CHUNK_SIZE",
]
