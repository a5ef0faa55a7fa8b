"""
Error taxonomy for the sweep engine.

Input errors (InvalidTarget, InvalidRequest) are raised before any probe is
launched. ScanAborted is the expected outcome of a cancelled session and is
not a crash. Per-probe failures never appear here: an unreachable host is an
inactive outcome, not an error.
"""

from typing import Optional


class SweepError(Exception):
    """Base class for all engine errors."""


class InvalidTarget(SweepError, ValueError):
    """Malformed address, range or prefix notation."""

    def __init__(self, message: str, target: Optional[str] = None):
        super().__init__(message)
        self.target = target


class InvalidRequest(SweepError, ValueError):
    """Missing or out-of-bounds scan options."""


class ScanAborted(SweepError):
    """
    Raised when a scan session observes cancellation.

    Carries how far the session got so a controller can report it.
    """

    def __init__(self, reason: str = "cancelled", completed: int = 0, total: int = 0):
        super().__init__(f"Scan aborted after {completed}/{total} results: {reason}")
        self.reason = reason
        self.completed = completed
        self.total = total


class StreamClosed(SweepError):
    """Emit attempted on an event stream whose consumer has detached."""
