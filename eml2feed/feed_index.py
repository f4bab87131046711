"""Lookup of a user's feeds by URL and by id."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from .errors import LoadError
from .models import Feed

logger = logging.getLogger(__name__)

# Feed map target meaning "drop matching messages silently"
IGNORE_TOKEN = "none"


class FeedIndex:
    """
    Read-only index over all feeds owned by one user.

    by_url always holds the synthetic key IGNORE_TOKEN mapped to None, so
    the feed map can name it like any other feed URL.
    """

    def __init__(self, feeds: Iterable[Feed]):
        by_url: dict[str, Optional[Feed]] = {}
        by_id: dict[int, Feed] = {}
        for feed in feeds:
            by_url[feed.feed_url] = feed
            by_id[feed.id] = feed
        by_url[IGNORE_TOKEN] = None

        self.by_url: Mapping[str, Optional[Feed]] = MappingProxyType(by_url)
        self.by_id: Mapping[int, Feed] = MappingProxyType(by_id)

    @classmethod
    def load(cls, store, user_id: int) -> "FeedIndex":
        """
        Load every feed of a user from the store.

        Raises:
            LoadError: If the store cannot be queried
        """
        try:
            feeds = store.feeds(user_id)
        except Exception as e:
            raise LoadError(f"cannot load feeds from DB: {e}") from e

        index = cls(feeds)
        logger.info(f"Loaded {len(index)} feeds for user {user_id}")
        return index

    def __contains__(self, feed_url: str) -> bool:
        return feed_url in self.by_url

    def __len__(self) -> int:
        return len(self.by_id)

    def feed_by_url(self, feed_url: str) -> Optional[Feed]:
        return self.by_url.get(feed_url)

    def feed_by_id(self, feed_id: int) -> Optional[Feed]:
        return self.by_id.get(feed_id)
