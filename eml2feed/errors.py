"""
Fatal error types for eml2feed.

Everything here aborts the import run. Per-message problems are not
exceptions: they are reported through BuildResult outcomes instead.
"""

from __future__ import annotations

from typing import Optional


class Eml2FeedError(Exception):
    """Base class for run-aborting errors."""


class ConfigError(Eml2FeedError):
    """Invalid or incomplete run configuration."""


class StoreError(Eml2FeedError):
    """The database is unreachable or a query failed."""


class SchemaError(Eml2FeedError):
    """The database schema version does not match this tool."""


class UserNotFoundError(Eml2FeedError):
    """No user with the requested username."""


class LoadError(Eml2FeedError):
    """Feeds could not be loaded from the store."""


class MessageError(Eml2FeedError):
    """A message file could not be read or parsed."""


class DumpError(Eml2FeedError):
    """An entry dump could not be written or read back."""


class RuleParseError(Eml2FeedError):
    """A feed map file is malformed.

    line_number is 1-based; 0 means the file itself could not be read.
    """

    def __init__(self, line_number: int, line: str, reason: str):
        self.line_number = line_number
        self.line = line
        self.reason = reason
        if line_number:
            message = f"wrong feed map line #{line_number}: {reason}: {line}"
        else:
            message = f"cannot read feed map file: {reason}"
        super().__init__(message)


class SyncError(Eml2FeedError):
    """A batch kept failing after all retry attempts."""

    def __init__(self, message: str, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.last_error = last_error
