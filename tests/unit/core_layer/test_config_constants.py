"""
Unit Tests for Configuration Constants

Tests the configuration constants, stage identifiers and key formats.
"""

import pytest

from tiercache.core.config.constants import (
    CLEANUP_INTERVAL_SECONDS,
    CONNECT_RETRY_BASE_DELAY,
    CONNECT_RETRY_MAX_DELAY,
    DATA_TYPE_TAG_FORMAT,
    DEFAULT_TTL_SECONDS,
    REFRESH_THRESHOLD,
    TAG_KEY_PREFIX,
    USER_KEY_FORMAT,
    USER_TAG_FORMAT,
    CacheMode,
    Stage,
)


@pytest.mark.unit
class TestStageIdentifiers:
    def test_stage_values_are_unique(self):
        values = [stage.value for stage in Stage]
        assert len(set(values)) == len(values)

    def test_stage_values_follow_format(self):
        for stage in Stage:
            prefix, _, name = stage.value.partition(".")
            assert prefix in {"C", "R", "T", "S", "H"}
            assert name.split("_", 1)[1].isupper()


@pytest.mark.unit
class TestDefaults:
    def test_cache_defaults(self):
        assert DEFAULT_TTL_SECONDS == 3600
        assert CLEANUP_INTERVAL_SECONDS == 300
        assert REFRESH_THRESHOLD == 0.8

    def test_retry_delays_are_ordered(self):
        assert 0 < CONNECT_RETRY_BASE_DELAY < CONNECT_RETRY_MAX_DELAY

    def test_cache_modes(self):
        assert CacheMode("memory") is CacheMode.MEMORY
        assert CacheMode("tiered") is CacheMode.TIERED


@pytest.mark.unit
class TestKeyFormats:
    def test_tag_prefix(self):
        assert TAG_KEY_PREFIX == "tag:"

    def test_user_formats(self):
        assert USER_KEY_FORMAT.format(user_id=42, data_type="profile") == "user:42:profile"
        assert USER_TAG_FORMAT.format(user_id=42) == "user:42"
        assert DATA_TYPE_TAG_FORMAT.format(data_type="profile") == "dataType:profile"
