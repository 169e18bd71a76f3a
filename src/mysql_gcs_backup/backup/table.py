"""Single-table backup: one dump streamed into one compressed object."""

import logging
from datetime import datetime

from mysql_gcs_backup.dump.base import DumpSource
from mysql_gcs_backup.models import BackupTarget, ObjectInfo, object_key
from mysql_gcs_backup.storage.sink import CompressUploadSink

logger = logging.getLogger(__name__)


class TableBackupTask:
    """Dump one table and upload it as ``<host>/<ts>/<schema>/<table>.sql.gz``.

    The dump's exit status is checked before the object is finalized, and the
    dump process is reaped on every exit path, including sink failure and
    cancellation.

    Args:
        source: Where dumps come from.
        sink: Where compressed dumps go.
        host: Host identifier used as the first key component.
        run_timestamp: Timestamp shared by every table of the run.
    """

    def __init__(
        self,
        source: DumpSource,
        sink: CompressUploadSink,
        host: str,
        run_timestamp: datetime,
    ) -> None:
        self._source = source
        self._sink = sink
        self.host = host
        self.run_timestamp = run_timestamp

    def key_for(self, target: BackupTarget) -> str:
        return object_key(
            self.host, self.run_timestamp, target.schema_name, target.table_name
        )

    async def run(self, target: BackupTarget) -> ObjectInfo:
        """Back up ``target``.

        Returns:
            Metadata of the uploaded object.

        Raises:
            DumpProcessError: If ``mysqldump`` could not start or failed.
            TransferError: If compression, upload or verification failed.
        """
        key = self.key_for(target)
        logger.info(f"Backing up table: {target}")

        async with self._source.open(target) as dump:
            info = await self._sink.transfer(
                dump.stream, key, target=target, commit_check=dump.finish
            )
            await dump.finish()

        logger.info(f"Backup for table {target} completed: {self._sink.store.uri(key)}")
        return info
