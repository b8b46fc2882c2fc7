"""SQLAlchemy-backed identifier store."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    select,
)
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

metadata = MetaData()

identifier_table = Table(
    "entity_identifiers",
    metadata,
    Column("record_key", String(255), primary_key=True),
    Column("field", String(64), primary_key=True),
    Column("raw_value", Integer, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)


def create_all_tables(engine: Engine) -> None:
    metadata.create_all(engine)


def create_database_engine(database_uri: str) -> Engine:
    """Create an engine usable from worker threads.

    In-memory SQLite databases exist per connection, so they share a single
    connection across threads.
    """

    if database_uri.startswith("sqlite") and (
        ":memory:" in database_uri or database_uri.rstrip("/").endswith("sqlite:")
    ):
        return create_engine(
            database_uri,
            future=True,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_engine(database_uri, future=True)


class SqlAlchemyIdentifierStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def load(self, record_key: str) -> dict[str, int]:
        statement = select(identifier_table.c.field, identifier_table.c.raw_value).where(
            identifier_table.c.record_key == record_key
        )
        with self.engine.connect() as connection:
            rows = connection.execute(statement).all()
        return {row.field: row.raw_value for row in rows}

    def save(self, record_key: str, values: Mapping[str, int]) -> None:
        now = datetime.now(UTC)
        rows = [
            {"record_key": record_key, "field": field, "raw_value": raw, "updated_at": now}
            for field, raw in values.items()
        ]
        with self.engine.begin() as connection:
            connection.execute(
                delete(identifier_table).where(identifier_table.c.record_key == record_key)
            )
            if rows:
                connection.execute(identifier_table.insert(), rows)
        log.debug("Stored identifiers of %s: %s", record_key, dict(values))


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
) -> SqlAlchemyIdentifierStore:
    """Create the schema if needed and return a store bound to it."""

    if engine is None:
        if database_uri is None:
            raise ValueError("startup() needs an engine or a database URI")
        engine = create_database_engine(database_uri)
    create_all_tables(engine)
    return SqlAlchemyIdentifierStore(engine)
