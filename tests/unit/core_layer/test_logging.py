"""
Unit Tests for Logging Module

Tests logger configuration, PII redaction processors, and logging utilities.
"""

from unittest.mock import MagicMock, patch

import pytest

from tiercache.core.config.constants import Stage
from tiercache.core.logging.logger import (
    add_log_level_name,
    add_timestamp,
    get_logger,
    log_stage,
    redact_pii,
    setup_logging,
)


@pytest.mark.unit
class TestLoggerCreation:
    """Test logger creation and configuration."""

    def test_get_logger_returns_logger_instance(self):
        """Test that get_logger returns a logger instance."""
        logger = get_logger(__name__)
        # structlog logger is not a standard logging.Logger
        assert logger is not None
        assert hasattr(logger, "info")

    def test_get_logger_with_different_names(self):
        logger1 = get_logger("module1")
        logger2 = get_logger("module2")

        assert logger1 is not logger2

    @pytest.mark.parametrize("log_format", ["json", "console"])
    def test_setup_logging_configures_structlog(self, log_format):
        """Test that setup_logging passes a renderer for each format."""
        with patch("tiercache.core.logging.logger.structlog.configure") as mock_configure:
            setup_logging(log_level="DEBUG", log_format=log_format)

        mock_configure.assert_called_once()
        processors = mock_configure.call_args.kwargs["processors"]
        assert redact_pii in processors
        assert add_timestamp in processors


@pytest.mark.unit
class TestProcessors:
    """Test custom structlog processors."""

    def test_add_timestamp_is_iso_utc(self):
        event = add_timestamp(None, "info", {"event": "x"})
        assert event["timestamp"].endswith("Z")
        assert "T" in event["timestamp"]

    def test_add_log_level_name_uppercases(self):
        assert add_log_level_name(None, "info", {"level": "warning"})["level"] == "WARNING"

    def test_redact_email_in_event_and_key(self):
        event = redact_pii(
            None,
            "info",
            {"event": "miss for alice@example.com", "cache_key": "user:bob@example.org:profile"},
        )

        assert "alice@example.com" not in event["event"]
        assert "[EMAIL]" in event["event"]
        assert event["cache_key"] == "user:[EMAIL]:profile"

    def test_redact_tokens(self):
        event = redact_pii(None, "info", {"event": "api key sk-abcdef123456 rejected"})
        assert "sk-abcdef123456" not in event["event"]
        assert "[REDACTED]" in event["event"]

    def test_non_string_fields_untouched(self):
        event = redact_pii(None, "info", {"event": "ok", "cache_key": 42})
        assert event["cache_key"] == 42


@pytest.mark.unit
class TestLogStage:
    """Test stage-tagged logging helper."""

    def test_log_stage_uses_enum_value(self):
        logger = MagicMock()

        log_stage(logger, Stage.CACHE_HIT, "Cache hit", cache_key="k")

        logger.info.assert_called_once_with("Cache hit", stage="C.1_CACHE_HIT", cache_key="k")

    def test_log_stage_respects_level(self):
        logger = MagicMock()

        log_stage(logger, Stage.REDIS_UNAVAILABLE, "down", level="WARNING")

        logger.warning.assert_called_once_with("down", stage="R.3_REDIS_UNAVAILABLE")
        logger.info.assert_not_called()

    def test_log_stage_accepts_plain_string(self):
        logger = MagicMock()

        log_stage(logger, "custom", "message")

        logger.info.assert_called_once_with("message", stage="custom")
