"""Persistence layer: configuration, table schema and engine wrapper."""

from mundobebe.persistence.config import DatabaseConfig
from mundobebe.persistence.database import Database, new_id, row_to_dict, utcnow
from mundobebe.persistence.schema import metadata

__all__ = [
    "Database",
    "DatabaseConfig",
    "metadata",
    "new_id",
    "row_to_dict",
    "utcnow",
]
