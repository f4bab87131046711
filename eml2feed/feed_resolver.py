"""
Feed map: route messages to feeds by URL substring.

A feed map file holds one rule per line:

    # comment
    xkcd.com => https://xkcd.com/rss.xml
    http://blogs.technet.com => none

Rules are evaluated in file order and the first pattern contained in the
entry URL wins, so more specific patterns belong above broader ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

from .errors import RuleParseError
from .feed_index import FeedIndex
from .models import Feed, Resolution

logger = logging.getLogger(__name__)

RULE_SEPARATOR = "=>"


@dataclass(frozen=True)
class FeedRule:
    """Substring pattern and its target feed (None means ignore)."""

    pattern: str
    feed: Optional[Feed]

    def matches(self, entry_url: str) -> bool:
        return self.pattern in entry_url


def parse_rule_line(line: str, index: FeedIndex) -> Optional[FeedRule]:
    """
    Parse one feed map line.

    Returns:
        The rule, or None for blank and comment lines

    Raises:
        ValueError: With the reason the line is invalid
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    parts = line.split(RULE_SEPARATOR)
    if len(parts) != 2:
        raise ValueError(f"separator {RULE_SEPARATOR} is missing")

    pattern = parts[0].strip()
    if not pattern:
        raise ValueError("entry URL is missing")

    feed_url = parts[1].strip()
    if not feed_url:
        raise ValueError("feed URL is missing")

    if feed_url not in index:
        raise ValueError(f"cannot find feed with URL: {feed_url}")

    return FeedRule(pattern=pattern, feed=index.feed_by_url(feed_url))


class FeedResolver:
    """Ordered feed map, or a single default feed that bypasses matching."""

    def __init__(
        self, rules: Iterable[FeedRule] = (), default_feed: Optional[Feed] = None
    ):
        self.rules: Tuple[FeedRule, ...] = tuple(rules)
        self.default_feed = default_feed

    @classmethod
    def for_feed(cls, feed: Feed) -> "FeedResolver":
        return cls(default_feed=feed)

    @classmethod
    def from_lines(cls, lines: Iterable[str], index: FeedIndex) -> "FeedResolver":
        rules = []
        for line_number, line in enumerate(lines, start=1):
            line = line.rstrip("\r\n")
            try:
                rule = parse_rule_line(line, index)
            except ValueError as e:
                raise RuleParseError(line_number, line, str(e)) from None
            if rule is not None:
                rules.append(rule)
        return cls(rules)

    @classmethod
    def load_rules(cls, path: Union[str, Path], index: FeedIndex) -> "FeedResolver":
        """
        Load a feed map file.

        Raises:
            RuleParseError: On the first invalid line, or if the file is unreadable
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                resolver = cls.from_lines(f, index)
        except OSError as e:
            raise RuleParseError(0, "", str(e)) from e
        except UnicodeDecodeError as e:
            raise RuleParseError(0, "", f"file is not valid UTF-8: {e}") from e

        logger.info(f"Loaded {len(resolver.rules)} feed map rules from {path}")
        return resolver

    def resolve(self, entry_url: str) -> Resolution:
        if self.default_feed is not None:
            return Resolution.found(self.default_feed)

        for rule in self.rules:
            if rule.matches(entry_url):
                if rule.feed is None:
                    return Resolution.ignore()
                return Resolution.found(rule.feed)

        return Resolution.not_found()
