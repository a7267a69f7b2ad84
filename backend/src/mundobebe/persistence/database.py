"""Engine wrapper shared by every service.

The wrapper accepts a :class:`DatabaseConfig` and builds a SQLAlchemy
engine, which keeps it dialect-neutral (SQLite and PostgreSQL).
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, Iterator

from sqlalchemy import Connection, create_engine, event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from mundobebe.errors import ConflictError
from mundobebe.messages import ERRORS
from mundobebe.persistence.config import DatabaseConfig
from mundobebe.persistence.schema import metadata

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Current time as naive UTC, the representation stored in every table."""
    return datetime.now(UTC).replace(tzinfo=None)


def row_to_dict(row: Any) -> dict[str, Any]:
    """Convert a result row into a JSON-friendly dict."""
    result = dict(row._mapping)
    for key, value in result.items():
        if isinstance(value, (datetime, date)):
            result[key] = value.isoformat()
    return result


class Database:
    """Owns the engine and hands out connections and transactions."""

    def __init__(self, config: DatabaseConfig, echo: bool = False):
        self.config = config
        kwargs: dict[str, Any] = {"echo": echo}
        if config.is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
            if config.is_memory:
                # A single shared connection keeps the in-memory database alive
                kwargs["poolclass"] = StaticPool
            else:
                Path(config.sqlite_path).parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(config.sqlalchemy_url, **kwargs)

        if config.is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

    def create_all(self) -> None:
        metadata.create_all(self.engine)

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """Read-only style connection; nothing is committed."""
        with self.engine.connect() as conn:
            yield conn

    @contextmanager
    def transaction(
        self,
        conflict_message: str | None = None,
        conflict_code: str | None = None,
    ) -> Iterator[Connection]:
        """Run a block in a transaction, committing on success.

        Unique-constraint violations roll back and surface as
        :class:`ConflictError`. Any other integrity error (NOT NULL, foreign
        key) rolls back and propagates unchanged.

        Args:
            conflict_message: User-facing message for duplicate values
            conflict_code: Stable code for duplicate values
        """
        try:
            with self.engine.begin() as conn:
                yield conn
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                logger.warning("Integrity violation rolled back: %s", exc.orig)
                raise
            logger.info("Unique violation rolled back: %s", exc.orig)
            raise ConflictError(
                conflict_message or ERRORS["CONFLICT"],
                code=conflict_code,
                context={"error": str(exc.orig)},
            ) from exc

    def dispose(self) -> None:
        self.engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def is_unique_violation(exc: IntegrityError) -> bool:
    # psycopg reports SQLSTATE 23505; sqlite3 only exposes the message
    if getattr(exc.orig, "sqlstate", None) == "23505":
        return True
    return "UNIQUE constraint failed" in str(exc.orig)
