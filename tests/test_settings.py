"""Tests for run configuration."""

from unittest.mock import patch

import pytest

from eml2feed.errors import ConfigError
from eml2feed.settings import (
    ImportConfig,
    MessageType,
    default_batch_size,
    detect_message_type,
)


@pytest.fixture
def eml_file(tmp_path):
    path = tmp_path / "one.eml"
    path.write_bytes(b"Subject: x\n\nbody\n")
    return path


class TestDetectMessageType:
    """Input type detection."""

    def test_types(self, tmp_path, eml_file):
        """Directory, EML and JSON inputs are recognized."""
        dump = tmp_path / "dump.JSON"
        dump.write_text("[]")

        assert detect_message_type(str(tmp_path)) == MessageType.DIRECTORY
        assert detect_message_type(str(eml_file)) == MessageType.EML
        assert detect_message_type(str(dump)) == MessageType.JSON

    def test_missing_path(self, tmp_path):
        """Nonexistent paths are rejected."""
        with pytest.raises(ConfigError, match="unable to get file info"):
            detect_message_type(str(tmp_path / "nope.eml"))

    def test_unsupported_extension(self, tmp_path):
        """Other extensions are rejected."""
        path = tmp_path / "notes.txt"
        path.write_text("x")

        with pytest.raises(ConfigError, match="extension"):
            detect_message_type(str(path))


class TestValidate:
    """Option consistency checks."""

    def config(self, path, **kwargs):
        data = dict(
            database_url="sqlite://",
            message_path=str(path),
            username="alice",
            feed_url="https://xkcd.com/rss.xml",
        )
        data.update(kwargs)
        return ImportConfig(**data)

    def test_valid(self, eml_file):
        """A complete config validates."""
        config = self.config(eml_file).validate()

        assert config.message_type == MessageType.EML
        assert config.reads_messages

    def test_requires_path(self):
        """A message path is mandatory."""
        with pytest.raises(ConfigError, match="not specified"):
            self.config("").validate()

    def test_requires_database_url(self, eml_file):
        """A database URL is mandatory."""
        with pytest.raises(ConfigError, match="database URL"):
            self.config(eml_file, database_url="").validate()

    def test_requires_user_for_eml(self, eml_file):
        """EML input needs a user."""
        with pytest.raises(ConfigError, match="user"):
            self.config(eml_file, username="").validate()

    def test_requires_feed_or_feedmap(self, eml_file):
        """EML input needs a feed or a feed map."""
        with pytest.raises(ConfigError, match="should be specified"):
            self.config(eml_file, feed_url="").validate()

    def test_feed_and_feedmap_exclusive(self, eml_file):
        """Feed and feed map cannot be combined."""
        with pytest.raises(ConfigError, match="together"):
            self.config(eml_file, feed_map_file="feeds.map").validate()

    def test_json_input_needs_no_user(self, tmp_path):
        """Dumps carry their own user and feed."""
        dump = tmp_path / "dump.json"
        dump.write_text("[]")

        config = self.config(dump, username="", feed_url="").validate()

        assert config.message_type == MessageType.JSON
        assert not config.reads_messages

    @pytest.mark.parametrize(
        "field,value", [("batch_size", 0), ("retries", 0), ("retry_delay", -1.0)]
    )
    def test_numeric_bounds(self, eml_file, field, value):
        """Numeric options reject out-of-range values."""
        with pytest.raises(ConfigError):
            self.config(eml_file, **{field: value}).validate()

    def test_retry_config(self, eml_file):
        """Retry settings use a fixed delay."""
        retry = self.config(eml_file, retries=3, retry_delay=0.5).retry_config()

        assert retry.max_attempts == 3
        assert retry.base_delay_seconds == 0.5
        assert retry.exponential_backoff is False


class TestEnvironmentDefaults:
    """Environment variable fallbacks."""

    def test_default_batch_size(self):
        """Batch size defaults to 1000."""
        with patch.dict("os.environ", {}, clear=True):
            assert default_batch_size() == 1000

    def test_batch_size_from_env(self):
        """The environment overrides the batch size."""
        with patch.dict("os.environ", {"EML2FEED_BATCH_SIZE": "50"}):
            assert default_batch_size() == 50

    def test_invalid_env_value(self):
        """Non-numeric environment values are rejected."""
        with patch.dict("os.environ", {"EML2FEED_BATCH_SIZE": "lots"}):
            with pytest.raises(ConfigError, match="EML2FEED_BATCH_SIZE"):
                default_batch_size()
