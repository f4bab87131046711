"""Shared fixtures: a throwaway SQLite database with one user and two feeds."""

from datetime import UTC, datetime

import pytest

from eml2feed import orm_models as orm
from eml2feed.db import init_db, make_session_factory, session_scope
from eml2feed.models import Entry, Feed, User
from eml2feed.store import Store

XKCD_FEED = "https://xkcd.com/rss.xml"
BLOG_FEED = "https://blog.example.com/feed"


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'reader.db'}"


@pytest.fixture
def store(database_url):
    """Initialized store seeded with user 'alice' and her feeds."""
    st = Store.from_url(database_url)
    init_db(st.engine)
    with session_scope(make_session_factory(st.engine)) as s:
        user = orm.User(username="alice", default_reading_speed=265, cjk_reading_speed=500)
        s.add(user)
        s.flush()
        s.add(orm.Feed(user_id=user.id, feed_url=XKCD_FEED, title="xkcd"))
        s.add(orm.Feed(user_id=user.id, feed_url=BLOG_FEED, title="Blog"))
    yield st
    st.close()


@pytest.fixture
def user():
    return User(id=1, username="alice")


@pytest.fixture
def feeds():
    return [
        Feed(id=1, user_id=1, feed_url=XKCD_FEED, title="xkcd"),
        Feed(id=2, user_id=1, feed_url=BLOG_FEED, title="Blog"),
    ]


def make_entry(hash_="h1", feed_id=1, user_id=1, **kwargs) -> Entry:
    now = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
    data = dict(
        user_id=user_id,
        feed_id=feed_id,
        hash=hash_,
        title=f"Entry {hash_}",
        url=f"https://example.com/{hash_}",
        content="<p>Body</p>",
        published_at=now,
        created_at=now,
        changed_at=now,
    )
    data.update(kwargs)
    return Entry(**data)


@pytest.fixture
def entry_factory():
    return make_entry
