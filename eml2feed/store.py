"""
Store boundary for the feed reader database.

Wraps the SQLAlchemy session factory and exposes the handful of
operations the importer needs: user and feed lookups, batched entry
refresh and delete-by-hash, plus connectivity and schema checks.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from sqlalchemy import delete, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from . import orm_models as orm
from .db import create_db_engine, make_session_factory, session_scope
from .errors import SchemaError, StoreError, UserNotFoundError
from .models import Entry, Feed, User

logger = logging.getLogger(__name__)


class Store:
    """Persistent store backed by a SQLAlchemy engine."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._sessions = make_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "Store":
        try:
            return cls(create_db_engine(database_url))
        except (SQLAlchemyError, ImportError, ValueError) as e:
            raise StoreError(
                f"unable to initialize database connection pool: {e}"
            ) from e

    def close(self) -> None:
        self.engine.dispose()

    def ping(self) -> None:
        """Raise StoreError unless the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StoreError(f"unable to connect to the database: {e}") from e

    def check_schema(self) -> int:
        """
        Verify the database schema matches SCHEMA_VERSION.

        Returns:
            The schema version found in the database

        Raises:
            SchemaError: If the version table is missing or holds another version
        """
        try:
            with session_scope(self._sessions) as s:
                current = s.execute(select(func.max(orm.SchemaVersion.version))).scalar()
        except SQLAlchemyError as e:
            raise SchemaError(f"you must run the SQL migrations, {e}") from e

        if current != orm.SCHEMA_VERSION:
            raise SchemaError(
                "you must run the SQL migrations, "
                f"current schema version is {current}, expected {orm.SCHEMA_VERSION}"
            )
        return current

    def user_by_username(self, username: str) -> User:
        try:
            with session_scope(self._sessions) as s:
                row = s.execute(
                    select(orm.User).where(orm.User.username == username)
                ).scalar_one_or_none()
                if row is None:
                    raise UserNotFoundError(f"unable to find user '{username}'")
                return User(
                    id=row.id,
                    username=row.username,
                    default_reading_speed=row.default_reading_speed,
                    cjk_reading_speed=row.cjk_reading_speed,
                )
        except SQLAlchemyError as e:
            raise StoreError(f"unable to fetch user '{username}': {e}") from e

    def feeds(self, user_id: int) -> List[Feed]:
        with session_scope(self._sessions) as s:
            rows = s.execute(
                select(orm.Feed).where(orm.Feed.user_id == user_id).order_by(orm.Feed.id)
            ).scalars()
            return [
                Feed(
                    id=row.id,
                    user_id=row.user_id,
                    feed_url=row.feed_url,
                    title=row.title or "",
                    rewrite_rules=row.rewrite_rules or "",
                )
                for row in rows
            ]

    def refresh_feed_entries(
        self, user_id: int, feed_id: int, entries: Sequence[Entry], overwrite: bool
    ) -> None:
        """
        Insert new entries and optionally update existing ones, in one transaction.

        Entries are matched on (feed_id, hash). Existing rows are only
        touched when overwrite is set. Stored entries get their id assigned
        once the transaction has committed.
        """
        stored: list[tuple[Entry, int]] = []

        with session_scope(self._sessions) as s:
            hashes = [entry.hash for entry in entries]
            rows = s.execute(
                select(orm.Entry).where(
                    orm.Entry.feed_id == feed_id, orm.Entry.hash.in_(hashes)
                )
            ).scalars()
            existing = {row.hash: row for row in rows}

            for entry in entries:
                row = existing.get(entry.hash)
                if row is None:
                    row = orm.Entry(
                        user_id=user_id,
                        feed_id=feed_id,
                        hash=entry.hash,
                        title=entry.title,
                        url=entry.url,
                        author=entry.author,
                        content=entry.content,
                        published_at=entry.published_at,
                        created_at=entry.created_at,
                        changed_at=entry.changed_at,
                        status=entry.status.value,
                        reading_time=entry.reading_time,
                        tags=list(entry.tags),
                    )
                    s.add(row)
                    s.flush()
                    existing[entry.hash] = row
                elif overwrite:
                    row.title = entry.title
                    row.url = entry.url
                    row.author = entry.author
                    row.content = entry.content
                    row.reading_time = entry.reading_time
                    row.tags = list(entry.tags)
                else:
                    continue
                stored.append((entry, row.id))

        for entry, row_id in stored:
            entry.id = row_id

    def delete_entries_by_hash(self, user_id: int, hashes: Sequence[str]) -> int:
        """Delete the user's entries whose hash is in hashes. Returns rows removed."""
        if not hashes:
            return 0
        with session_scope(self._sessions) as s:
            result = s.execute(
                delete(orm.Entry).where(
                    orm.Entry.user_id == user_id, orm.Entry.hash.in_(list(hashes))
                )
            )
            return result.rowcount or 0
