"""
Unit Tests for the Exception Hierarchy
"""

import pytest

from block_explorer.core.exceptions import (
    BaseNodeNotConfiguredError,
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    ConfigurationError,
    ExplorerError,
    InvalidBlockError,
    SnapshotUnavailableError,
    UpstreamError,
)


@pytest.mark.unit
class TestExceptionHierarchy:

    @pytest.mark.parametrize(
        "exc_type, parent",
        [
            (ConfigurationError, ExplorerError),
            (BaseNodeNotConfiguredError, ConfigurationError),
            (CacheError, ExplorerError),
            (CacheConnectionError, CacheError),
            (CacheKeyError, CacheError),
            (UpstreamError, ExplorerError),
            (SnapshotUnavailableError, UpstreamError),
            (InvalidBlockError, UpstreamError),
        ],
    )
    def test_inheritance(self, exc_type, parent):
        assert issubclass(exc_type, parent)

    def test_invalid_block_is_a_value_error(self):
        with pytest.raises(ValueError):
            raise InvalidBlockError("Invalid block data")

    def test_status_codes(self):
        assert ExplorerError("x").status_code == 500
        assert BaseNodeNotConfiguredError("x").status_code == 503


@pytest.mark.unit
class TestExplorerError:

    def test_to_dict(self):
        error = CacheKeyError("Redis GET failed", request_id="req-1", details={"key": "k"})

        assert error.to_dict() == {
            "error_type": "CacheKeyError",
            "message": "Redis GET failed",
            "request_id": "req-1",
            "details": {"key": "k"},
        }

    def test_details_are_copied(self):
        details = {"key": "k"}
        error = ExplorerError("boom", details=details)
        error.with_context(extra=1)

        assert details == {"key": "k"}
        assert error.details == {"key": "k", "extra": 1}

    def test_with_suggestion_chains(self):
        error = ConfigurationError("missing").with_suggestion("set it")

        assert isinstance(error, ConfigurationError)
        assert error.details["suggestion"] == "set it"

    def test_from_exception_keeps_original(self):
        original = TimeoutError("timed out")

        error = CacheConnectionError.from_exception(original, host="localhost")

        assert isinstance(error, CacheConnectionError)
        assert error.message == "timed out"
        assert error.details["original_error"] == "TimeoutError"
        assert error.details["host"] == "localhost"

    def test_repr_includes_context(self):
        error = SnapshotUnavailableError("Received null data", details={"from": 0})

        assert repr(error) == "SnapshotUnavailableError(message='Received null data', details={'from': 0})"
