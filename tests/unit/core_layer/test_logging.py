"""
Unit Tests for Logging Module

Tests processors, request context and the stage logging helper.
"""

from unittest.mock import MagicMock

import pytest

from block_explorer.core.logging.logger import (
    add_log_level_name,
    add_request_id,
    add_timestamp,
    clear_request_id,
    get_logger,
    get_request_id,
    log_stage,
    set_request_id,
    setup_logging,
)


@pytest.mark.unit
class TestRequestContext:

    def test_set_and_clear_request_id(self):
        set_request_id("req-123")
        assert get_request_id() == "req-123"

        clear_request_id()
        assert get_request_id() is None

    def test_processor_injects_request_id(self):
        set_request_id("req-9")
        try:
            event = add_request_id(None, "info", {"event": "x"})
        finally:
            clear_request_id()

        assert event["request_id"] == "req-9"

    def test_processor_skips_missing_request_id(self):
        clear_request_id()

        assert "request_id" not in add_request_id(None, "info", {"event": "x"})


@pytest.mark.unit
class TestProcessors:

    def test_timestamp_is_utc_iso(self):
        event = add_timestamp(None, "info", {})

        assert event["timestamp"].endswith("Z")
        assert "T" in event["timestamp"]

    def test_level_is_upper_cased(self):
        assert add_log_level_name(None, "info", {"level": "warning"})["level"] == "WARNING"


@pytest.mark.unit
class TestLogStage:

    def test_log_stage_passes_stage_and_fields(self):
        logger = MagicMock()

        log_stage(logger, "LOCK.ACQUIRE", "Lock acquired", lock_key="tari:lock:x")

        logger.info.assert_called_once_with("Lock acquired", stage="LOCK.ACQUIRE", lock_key="tari:lock:x")

    def test_log_stage_honours_level(self):
        logger = MagicMock()

        log_stage(logger, "UPD.RETRY", "Update attempt failed", level="warning", attempt=2)

        logger.warning.assert_called_once_with("Update attempt failed", stage="UPD.RETRY", attempt=2)
        logger.info.assert_not_called()

    @pytest.mark.parametrize("log_format", ["json", "console"])
    def test_setup_logging_accepts_both_formats(self, log_format):
        setup_logging(log_level="DEBUG", log_format=log_format)

        get_logger("test").info("configured", stage="TEST")
