"""Tests for the database store."""

import pytest
from sqlalchemy import delete, select

from eml2feed import orm_models as orm
from eml2feed.db import init_db, make_session_factory, normalize_database_url, session_scope
from eml2feed.errors import SchemaError, StoreError, UserNotFoundError
from eml2feed.store import Store

from conftest import XKCD_FEED


def stored_rows(store):
    with session_scope(make_session_factory(store.engine)) as s:
        return [
            (row.feed_id, row.hash, row.title, row.status)
            for row in s.execute(select(orm.Entry).order_by(orm.Entry.id)).scalars()
        ]


class TestDatabaseUrl:
    """URL normalization."""

    def test_postgres_urls_use_psycopg(self):
        """PostgreSQL URLs select the psycopg driver."""
        assert normalize_database_url("postgresql://u@h/db") == "postgresql+psycopg://u@h/db"
        assert normalize_database_url("postgres://u@h/db") == "postgresql+psycopg://u@h/db"

    def test_other_urls_unchanged(self):
        """Other URLs pass through."""
        assert normalize_database_url("sqlite:///x.db") == "sqlite:///x.db"

    def test_bad_url_is_store_error(self):
        """Unparseable URLs raise StoreError."""
        with pytest.raises(StoreError):
            Store.from_url("not a url")


class TestSchema:
    """Connectivity and schema checks."""

    def test_ping_and_schema_ok(self, store):
        """An initialized database passes both checks."""
        store.ping()

        assert store.check_schema() == orm.SCHEMA_VERSION

    def test_uninitialized_database(self, database_url):
        """A missing schema asks for migrations."""
        st = Store.from_url(database_url)
        try:
            with pytest.raises(SchemaError, match="SQL migrations"):
                st.check_schema()
        finally:
            st.close()

    def test_version_mismatch(self, store):
        """A different schema version is rejected."""
        with session_scope(make_session_factory(store.engine)) as s:
            s.execute(delete(orm.SchemaVersion))
            s.add(orm.SchemaVersion(version=orm.SCHEMA_VERSION + 1))

        with pytest.raises(SchemaError, match="expected"):
            store.check_schema()

    def test_init_db_is_idempotent(self, store):
        """Initializing twice is harmless."""
        init_db(store.engine)

        assert store.check_schema() == orm.SCHEMA_VERSION


class TestLookups:
    """User and feed lookups."""

    def test_user_by_username(self, store):
        """Users are found by name."""
        user = store.user_by_username("alice")

        assert user.username == "alice"
        assert user.default_reading_speed == 265

    def test_unknown_user(self, store):
        """Unknown names raise UserNotFoundError."""
        with pytest.raises(UserNotFoundError, match="bob"):
            store.user_by_username("bob")

    def test_feeds(self, store):
        """Feeds are scoped to their user."""
        user = store.user_by_username("alice")
        feeds = store.feeds(user.id)

        assert [f.feed_url for f in feeds][0] == XKCD_FEED
        assert len(feeds) == 2
        assert store.feeds(user.id + 100) == []


class TestRefreshEntries:
    """Insert, overwrite and delete."""

    def test_insert_assigns_ids(self, store, entry_factory):
        """Inserted entries get their row ids."""
        entries = [entry_factory("a"), entry_factory("b")]

        store.refresh_feed_entries(1, 1, entries, overwrite=False)

        assert all(e.id for e in entries)
        assert len(stored_rows(store)) == 2

    def test_reimport_with_overwrite_is_idempotent(self, store, entry_factory):
        """Overwriting twice leaves one updated row."""
        store.refresh_feed_entries(1, 1, [entry_factory("a", title="Old")], overwrite=False)
        updated = entry_factory("a", title="New")

        store.refresh_feed_entries(1, 1, [updated], overwrite=True)
        store.refresh_feed_entries(1, 1, [entry_factory("a", title="New")], overwrite=True)

        rows = stored_rows(store)
        assert rows == [(1, "a", "New", "unread")]
        assert updated.id is not None

    def test_without_overwrite_existing_row_kept(self, store, entry_factory):
        """Without overwrite the stored row wins."""
        store.refresh_feed_entries(1, 1, [entry_factory("a", title="Old")], overwrite=False)
        again = entry_factory("a", title="New")

        store.refresh_feed_entries(1, 1, [again], overwrite=False)

        assert stored_rows(store) == [(1, "a", "Old", "unread")]
        assert again.id is None

    def test_same_hash_in_other_feed_is_distinct(self, store, entry_factory):
        """Identity is per feed."""
        store.refresh_feed_entries(1, 1, [entry_factory("a", feed_id=1)], overwrite=False)
        store.refresh_feed_entries(1, 2, [entry_factory("a", feed_id=2)], overwrite=False)

        assert len(stored_rows(store)) == 2

    def test_duplicate_hash_in_batch_inserted_once(self, store, entry_factory):
        """Repeated hashes in a batch insert once."""
        entries = [entry_factory("a"), entry_factory("a")]

        store.refresh_feed_entries(1, 1, entries, overwrite=False)

        assert len(stored_rows(store)) == 1

    def test_delete_by_hash(self, store, entry_factory):
        """Deletion returns the rows removed."""
        store.refresh_feed_entries(
            1, 1, [entry_factory("a"), entry_factory("b"), entry_factory("c")], overwrite=False
        )

        removed = store.delete_entries_by_hash(1, ["a", "c", "missing"])

        assert removed == 2
        assert [row[1] for row in stored_rows(store)] == ["b"]

    def test_delete_scoped_to_user(self, store, entry_factory):
        """Other users' entries are untouched."""
        store.refresh_feed_entries(1, 1, [entry_factory("a")], overwrite=False)

        assert store.delete_entries_by_hash(2, ["a"]) == 0
        assert store.delete_entries_by_hash(1, []) == 0
        assert len(stored_rows(store)) == 1
