"""Tests for the per-user feed index."""

from unittest.mock import MagicMock

import pytest

from eml2feed.errors import LoadError
from eml2feed.feed_index import IGNORE_TOKEN, FeedIndex

from conftest import BLOG_FEED, XKCD_FEED


class TestFeedIndex:
    """Lookup behaviour."""

    def test_lookup_by_url_and_id(self, feeds):
        """Feeds are found by URL and id."""
        index = FeedIndex(feeds)

        assert index.feed_by_url(XKCD_FEED).id == 1
        assert index.feed_by_id(2).feed_url == BLOG_FEED
        assert index.feed_by_url("https://unknown.example/rss") is None
        assert index.feed_by_id(99) is None

    def test_ignore_token_always_present(self, feeds):
        """The ignore target is a known key mapping to no feed."""
        index = FeedIndex(feeds)

        assert IGNORE_TOKEN in index
        assert index.by_url[IGNORE_TOKEN] is None

    def test_empty_index_still_knows_ignore_token(self):
        """An empty index still has the ignore key."""
        index = FeedIndex([])

        assert len(index) == 0
        assert IGNORE_TOKEN in index

    def test_len_counts_real_feeds(self, feeds):
        """The ignore key is not counted."""
        assert len(FeedIndex(feeds)) == 2

    def test_index_is_read_only(self, feeds):
        """The URL map cannot be modified."""
        index = FeedIndex(feeds)

        with pytest.raises(TypeError):
            index.by_url["x"] = None


class TestFeedIndexLoad:
    """Loading from a store."""

    def test_load_from_store(self, store):
        """Feeds of a user load from the database."""
        user = store.user_by_username("alice")
        index = FeedIndex.load(store, user.id)

        assert len(index) == 2
        assert XKCD_FEED in index

    def test_load_wraps_store_errors(self):
        """Store failures become LoadError."""
        store = MagicMock()
        store.feeds.side_effect = RuntimeError("connection reset")

        with pytest.raises(LoadError, match="connection reset"):
            FeedIndex.load(store, 1)
