"""SQLAlchemy adapter package for acvpmeta."""

from __future__ import annotations

from .identifier_store import (
    SqlAlchemyIdentifierStore,
    create_all_tables,
    create_database_engine,
    identifier_table,
    metadata,
    startup,
)

__all__ = [
    "SqlAlchemyIdentifierStore",
    "create_all_tables",
    "create_database_engine",
    "identifier_table",
    "metadata",
    "startup",
]
