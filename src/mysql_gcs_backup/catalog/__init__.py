"""Schema and table discovery.

Provides the ``Catalog`` Protocol and the SQLAlchemy-backed
``MySQLCatalog``.

Usage:
    from mysql_gcs_backup.catalog import Catalog, MySQLCatalog
"""

from mysql_gcs_backup.catalog.base import Catalog
from mysql_gcs_backup.catalog.mysql import MySQLCatalog

__all__ = [
    "Catalog",
    "MySQLCatalog",
]
