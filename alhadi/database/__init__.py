"""Site content tables."""

from alhadi.database.rest_client import TABLES, TableClient

__all__ = ["TABLES", "TableClient"]
