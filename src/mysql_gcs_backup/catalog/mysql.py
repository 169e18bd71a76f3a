"""MySQL catalog backed by SQLAlchemy's async engine.

Provides ``MySQLCatalog``, an implementation of the ``Catalog`` protocol
using the ``aiomysql`` driver.

Usage:
    from mysql_gcs_backup.catalog.mysql import MySQLCatalog
    from mysql_gcs_backup.config.models import ConnectionParams

    catalog = MySQLCatalog(ConnectionParams(user="backup", password="..."))
    schemas = await catalog.list_schemas({"information_schema", "test"})
    tables = await catalog.list_tables("appdb")
    await catalog.close()
"""

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import URL, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from mysql_gcs_backup.config.models import ConnectionParams
from mysql_gcs_backup.errors import DatabaseConnectionError, QueryError

logger = logging.getLogger(__name__)

_LIST_SCHEMAS = "SHOW DATABASES"
_LIST_TABLES = (
    "SELECT TABLE_NAME FROM information_schema.TABLES "
    "WHERE TABLE_SCHEMA = :schema"
)


def build_url(params: ConnectionParams) -> URL:
    """Build a ``mysql+aiomysql`` URL without a default database.

    ``URL.create`` escapes the credentials, so passwords containing ``@``
    or ``/`` are safe.
    """
    return URL.create(
        "mysql+aiomysql",
        username=params.user,
        password=params.password,
        host=params.host,
        port=params.port,
    )


def create_async_engine_pooled(url: URL | str, **kwargs: Any) -> AsyncEngine:
    """Create an async SQLAlchemy engine with connection pooling.

    Default pool settings:

    - ``pool_size=5``: Enough for a few concurrent table listings.
    - ``max_overflow=10``: Allow burst connections.
    - ``pool_pre_ping=True``: Validate connections before checkout.
    - ``pool_recycle=300``: Recycle connections every 5 minutes.
    - ``connect_timeout=10`` passed to the driver.

    Args:
        url: MySQL URL with the ``mysql+aiomysql://`` scheme.
        **kwargs: Additional keyword arguments forwarded to
            ``create_async_engine``.

    Returns:
        Configured ``AsyncEngine``.
    """
    defaults: dict[str, Any] = {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "connect_args": {"connect_timeout": 10},
        "echo": False,
    }
    # Caller kwargs override defaults
    merged = {**defaults, **kwargs}

    return create_async_engine(url, **merged)


class MySQLCatalog:
    """Async MySQL implementation of the ``Catalog`` protocol.

    Connection failures (unreachable host, rejected credentials) surface as
    ``DatabaseConnectionError``; failures of the listing query itself as
    ``QueryError``.

    Args:
        params: Connection parameters.
        engine: Pre-built engine (tests inject one); when ``None`` a pooled
            engine is created from ``params``.
        **engine_kwargs: Forwarded to ``create_async_engine_pooled``.
    """

    def __init__(
        self,
        params: ConnectionParams,
        engine: AsyncEngine | None = None,
        **engine_kwargs: Any,
    ) -> None:
        self._params = params
        self._engine: AsyncEngine = engine or create_async_engine_pooled(
            build_url(params), **engine_kwargs
        )

    async def list_schemas(self, excluded: Iterable[str] = ()) -> list[str]:
        """List schemas with ``SHOW DATABASES``, dropping ``excluded`` ones."""
        skip = set(excluded)
        names = await self._fetch_names(_LIST_SCHEMAS, {})
        schemas = [name for name in names if name not in skip]
        logger.debug(
            f"Found {len(names)} schemas, {len(names) - len(schemas)} excluded"
        )
        return schemas

    async def list_tables(self, schema: str) -> list[str]:
        """List tables (and views) of ``schema``."""
        return await self._fetch_names(_LIST_TABLES, {"schema": schema}, schema=schema)

    async def close(self) -> None:
        """Dispose of the engine's connection pool."""
        if self._engine:
            await self._engine.dispose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _connect(self, schema: str | None) -> AsyncConnection:
        try:
            return await self._engine.connect()
        except (SQLAlchemyError, OSError) as e:
            raise DatabaseConnectionError(
                f"Failed to connect to MySQL at "
                f"{self._params.host}:{self._params.port}: {e}",
                schema=schema,
            ) from e

    async def _fetch_names(
        self,
        sql: str,
        params: dict[str, Any],
        schema: str | None = None,
    ) -> list[str]:
        conn = await self._connect(schema)
        try:
            result = await conn.execute(text(sql), params)
            return [_as_str(row[0]) for row in result.fetchall()]
        except SQLAlchemyError as e:
            target = f" for schema {schema}" if schema else ""
            raise QueryError(f"Listing query failed{target}: {e}", schema=schema) from e
        finally:
            await conn.close()


def _as_str(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)
