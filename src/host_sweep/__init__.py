"""
Host Sweep - IPv4 reachability sweeps with live progress.

Expands a target (single address, inclusive range or /24-/32 prefix),
probes every address with bounded concurrency using ICMP echo or TCP
connect, and streams progress, per-address results and a final summary to
the caller.

Architecture:
    targets        target notation -> ordered address list
    probes         one reachability check per address (ICMP / TCP)
    scheduler      windowed, cancellable probing that emits events
    events         FIFO event channel and SSE encoding
    aggregator     outcome counts and summary
    scanner_service  aiohttp API: /scan/stream, /scan, /health
"""

__version__ = "1.0.0"

from ._types import (
    ProbeMethod,
    ProbeStatus,
    ProbeOutcome,
    ScanOptions,
    ScanSummary,
    SingleTarget,
    RangeTarget,
    PrefixTarget,
    ProgressEvent,
    ResultEvent,
    CompleteEvent,
)
from .exceptions import (
    SweepError,
    InvalidTarget,
    InvalidRequest,
    ScanAborted,
    StreamClosed,
)
from .engine import ScanSession, open_session, run_to_completion, stream_session
from .scheduler import BatchScheduler, CancelToken
from .targets import expand, expand_target, parse_target

__all__ = [
    "__version__",
    "ProbeMethod",
    "ProbeStatus",
    "ProbeOutcome",
    "ScanOptions",
    "ScanSummary",
    "SingleTarget",
    "RangeTarget",
    "PrefixTarget",
    "ProgressEvent",
    "ResultEvent",
    "CompleteEvent",
    "SweepError",
    "InvalidTarget",
    "InvalidRequest",
    "ScanAborted",
    "StreamClosed",
    "ScanSession",
    "open_session",
    "run_to_completion",
    "stream_session",
    "BatchScheduler",
    "CancelToken",
    "expand",
    "expand_target",
    "parse_target",
]
