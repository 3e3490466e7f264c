"""
Upstream (base node) Exceptions
"""

from block_explorer.core.exceptions.base import ExplorerError


class UpstreamError(ExplorerError):
    """Base exception for failures talking to the base node."""
    pass


class SnapshotUnavailableError(UpstreamError):
    """
    Raised when the index snapshot could not be produced.

    The snapshot builder returns None when the node has no blocks for the
    requested window; the updater turns that into this error so it counts as
    a failed attempt.
    """
    pass


class InvalidBlockError(UpstreamError, ValueError):
    """Raised when a block is missing the fields needed for statistics."""
    pass
