"""
Run configuration for eml2feed.

Values come from the command line; a few operational knobs fall back to
environment variables so batch imports can be tuned without editing
scripts.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import ConfigError
from .synchronizer import RetryConfig

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    EML = "eml"
    JSON = "json"
    DIRECTORY = "directory"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def default_database_url() -> str:
    return os.getenv("DATABASE_URL", "")


def default_batch_size() -> int:
    return _env_int("EML2FEED_BATCH_SIZE", 1000)


def default_retries() -> int:
    return _env_int("EML2FEED_RETRIES", 10)


def default_retry_delay() -> float:
    return _env_float("EML2FEED_RETRY_DELAY", 10.0)


def detect_message_type(path: str) -> MessageType:
    """Classify the input path as a directory, an EML file or a JSON dump."""
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"unable to get file info for '{path}'")
    if p.is_dir():
        return MessageType.DIRECTORY
    suffix = p.suffix.lower()
    if suffix == ".eml":
        return MessageType.EML
    if suffix == ".json":
        return MessageType.JSON
    raise ConfigError(
        "program argument should be a directory or file with extension "
        f"'.eml' or '.json': '{path}'"
    )


@dataclass
class ImportConfig:
    """Everything one import run needs to know."""

    database_url: str
    message_path: str
    message_type: Optional[MessageType] = None
    username: str = ""
    feed_url: str = ""
    feed_map_file: str = ""
    mark_read: bool = False
    update: bool = False
    remove: bool = False
    dry_run: bool = False
    quiet: bool = False
    dump_file: str = ""
    batch_size: int = 1000
    retries: int = 10
    retry_delay: float = 10.0
    log_level: str = "INFO"
    json_logs: bool = False

    @property
    def reads_messages(self) -> bool:
        """True when input is EML (file or directory) rather than a dump."""
        return self.message_type in (MessageType.EML, MessageType.DIRECTORY)

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.retries,
            base_delay_seconds=self.retry_delay,
            exponential_backoff=False,
        )

    def validate(self) -> "ImportConfig":
        """
        Check option consistency and detect the input type.

        Raises:
            ConfigError: Describing the first problem found
        """
        if not self.message_path:
            raise ConfigError("EML file is not specified")

        self.message_type = detect_message_type(self.message_path)

        if not self.database_url:
            raise ConfigError("database URL is not specified")
        if self.batch_size < 1:
            raise ConfigError("batch size must be positive")
        if self.retries < 1:
            raise ConfigError("retries amount must be positive")
        if self.retry_delay < 0:
            raise ConfigError("retry delay must not be negative")

        if self.dry_run and (self.update or self.remove):
            logger.info(
                "Options '--update' and '--remove' do not have effect when '--dry' is specified."
            )

        if self.reads_messages:
            if not self.username:
                raise ConfigError("user must be specified")
            if not self.feed_url and not self.feed_map_file:
                raise ConfigError("feed URL or feed map file should be specified")
            if self.feed_url and self.feed_map_file:
                raise ConfigError(
                    "feed URL and feed map file cannot be specified together"
                )

        return self
