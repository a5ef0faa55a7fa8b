"""
Scan engine entry points.

Wires target expansion, the batch scheduler and an event sink together for
the two request modes:

- streaming: stream_session() feeds an EventStream that a transport drains
- synchronous: run_to_completion() discards intermediate events and returns
  the summary with outcomes in ascending address order

All input validation happens in open_session(), before any probe is
launched, so an invalid request never produces a partial event stream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from ._types import ScanOptions, ScanSummary, TargetSpec, now_utc
from .events import DiscardingSink, EventSink, EventStream, TeeSink
from .exceptions import InvalidRequest, ScanAborted
from .probes import Prober
from .scheduler import BatchScheduler, CancelToken
from .targets import count_addresses, expand, int_to_address, parse_target

logger = logging.getLogger(__name__)


@dataclass
class ScanSession:
    """Everything one scan invocation owns. Never shared between scans."""
    target: str
    spec: TargetSpec
    options: ScanOptions
    addresses: list[str]
    prober: Prober
    cancel_token: CancelToken = field(default_factory=CancelToken)
    started_at: datetime = field(default_factory=now_utc)

    def cancel(self, reason: str = "cancelled") -> None:
        self.cancel_token.cancel(reason)

    def scheduler(self) -> BatchScheduler:
        return BatchScheduler(
            prober=self.prober,
            options=self.options,
            cancel_token=self.cancel_token,
            target=self.target,
        )


def open_session(
    target: str,
    options: ScanOptions,
    prober: Prober,
    max_addresses: Optional[int] = None,
    cancel_token: Optional[CancelToken] = None,
) -> ScanSession:
    """
    Validate the request and expand the target.

    Raises InvalidTarget for bad notation and InvalidRequest when the target
    resolves to more than `max_addresses` addresses.
    """
    if not isinstance(target, str):
        raise InvalidRequest(f"Target must be a string, got {type(target).__name__}")
    if not target.strip():
        raise InvalidRequest("Target required")

    spec = parse_target(target)
    size = count_addresses(spec)
    if max_addresses is not None and size > max_addresses:
        raise InvalidRequest(
            f"Target {target!r} resolves to {size} addresses, limit is {max_addresses}"
        )

    return ScanSession(
        target=target.strip(),
        spec=spec,
        options=options,
        addresses=[int_to_address(a) for a in expand(spec)],
        prober=prober,
        cancel_token=cancel_token or CancelToken(),
    )


async def run_session(session: ScanSession, sink: EventSink) -> ScanSummary:
    """Run a session, emitting every event to `sink`."""
    return await session.scheduler().run(session.addresses, sink)


async def stream_session(
    session: ScanSession,
    stream: EventStream,
    observers: Sequence[EventSink] = (),
) -> ScanSummary:
    """
    Streaming mode: run a session into `stream` and close it.

    On success the stream ends right after the Complete event. On abort or
    failure it ends without one, and the exception propagates. Observers see
    each event after the stream has accepted it.
    """
    sink = TeeSink(stream, *observers) if observers else stream
    try:
        return await run_session(session, sink)
    finally:
        await stream.close()


async def run_to_completion(
    target: str,
    options: ScanOptions,
    prober: Prober,
    max_addresses: Optional[int] = None,
    observers: Sequence[EventSink] = (),
    cancel_token: Optional[CancelToken] = None,
) -> ScanSummary:
    """
    Synchronous mode: scan and return the address-ordered summary.

    Intermediate events are discarded unless observers are given.
    """
    session = open_session(
        target, options, prober,
        max_addresses=max_addresses,
        cancel_token=cancel_token,
    )
    sink: EventSink = DiscardingSink()
    if observers:
        sink = TeeSink(sink, *observers)

    try:
        summary = await run_session(session, sink)
    except ScanAborted:
        logger.info(f"Synchronous scan of {session.target} aborted")
        raise
    return summary.sorted_by_address()
