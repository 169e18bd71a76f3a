"""Catalog protocol definition.

Defines the ``Catalog`` Protocol the backup pipeline uses to discover what
to back up.  All methods are ``async def``.

Usage:
    from mysql_gcs_backup.catalog.base import Catalog

    async def show(catalog: Catalog) -> None:
        for schema in await catalog.list_schemas({"information_schema"}):
            print(schema, await catalog.list_tables(schema))
        await catalog.close()
"""

from collections.abc import Iterable
from typing import Protocol


class Catalog(Protocol):
    """Schema and table listing interface.

    Implementations raise ``DatabaseConnectionError`` when the server is
    unreachable or rejects the credentials, and ``QueryError`` when a
    listing query fails after connecting.
    """

    async def list_schemas(self, excluded: Iterable[str] = ()) -> list[str]:
        """List schema names, dropping those in ``excluded``.

        Args:
            excluded: Schema names that must never be returned.

        Returns:
            Schema names in server order.
        """
        ...

    async def list_tables(self, schema: str) -> list[str]:
        """List table names of one schema.

        Args:
            schema: Schema name.

        Returns:
            Table names in server order (not guaranteed stable).
        """
        ...

    async def close(self) -> None:
        """Release connections held by the catalog."""
        ...
