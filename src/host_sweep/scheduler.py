"""
Bounded-concurrency scan scheduler.

Addresses are probed in fixed-size windows. Within a window every probe runs
concurrently; the scheduler waits for the whole window to drain before
launching the next one, which caps outstanding probes (and the sockets or
subprocesses behind them) at the concurrency limit.

Event order for a window:
    Progress(a1), Progress(a2), ... Progress(aN)   launch order
    Result(...), Result(...), ...                  completion order
and after the last window a single Complete.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional, Sequence

from ._types import (
    CompleteEvent,
    ProgressEvent,
    ResultEvent,
    ScanEvent,
    ScanOptions,
    ScanSummary,
)
from .aggregator import ResultAggregator
from .events import EventSink
from .exceptions import ScanAborted, StreamClosed
from .probes import Prober

logger = logging.getLogger(__name__)


class CancelToken:
    """
    Cancellation handle owned by one scan session.

    Any controller holding the token (the HTTP handler watching for a client
    disconnect, a CLI signal handler) may call cancel(). The scheduler checks
    it before each launch and between windows, and wakes on it while waiting
    for a window to drain.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class BatchScheduler:
    """
    Drives addresses through a prober in windows of `concurrency_limit`.

    One scheduler instance runs one session; it keeps no state that outlives
    run().
    """

    def __init__(
        self,
        prober: Prober,
        options: ScanOptions,
        cancel_token: Optional[CancelToken] = None,
        target: str = "",
    ):
        """
        Initialize scheduler.

        Args:
            prober: Probe strategy used for every address in the scan
            options: Per-probe timeout and window size
            cancel_token: Token a controller uses to stop the scan
            target: Target notation, reported in the summary
        """
        self.prober = prober
        self.options = options
        self.cancel_token = cancel_token or CancelToken()
        self.target = target
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        """Probes launched but not yet resulted."""
        return self._in_flight

    async def run(self, addresses: Sequence[str], sink: EventSink) -> ScanSummary:
        """
        Probe every address, emitting events to `sink`.

        Returns the summary also carried by the Complete event.
        Raises ScanAborted if the cancel token fires before completion.
        """
        total = len(addresses)
        aggregator = ResultAggregator(self.target, self.prober.method, total)
        limit = self.options.concurrency_limit

        if total == 0:
            summary = aggregator.summarize(duration_ms=0)
            await self._emit(sink, CompleteEvent(summary), aggregator)
            return summary

        logger.info(
            f"Scan start: target={self.target or '-'} addresses={total} "
            f"method={self.prober.method.value} window={limit} "
            f"timeout={self.options.timeout}s"
        )
        started = time.monotonic()

        for offset in range(0, total, limit):
            self._raise_if_cancelled(aggregator)
            await self._run_window(addresses[offset:offset + limit], sink, aggregator)

        self._raise_if_cancelled(aggregator)
        duration_ms = round((time.monotonic() - started) * 1000, 2)
        summary = aggregator.summarize(duration_ms=duration_ms)
        await self._emit(sink, CompleteEvent(summary), aggregator)

        logger.info(
            f"Scan complete: target={self.target or '-'} "
            f"active={summary.active_hosts}/{summary.total_hosts} "
            f"duration={duration_ms}ms"
        )
        return summary

    async def _run_window(
        self,
        window: Sequence[str],
        sink: EventSink,
        aggregator: ResultAggregator,
    ) -> None:
        """Launch every probe in the window and emit results as they land."""
        pending: set[asyncio.Task] = set()
        cancel_waiter = asyncio.ensure_future(self.cancel_token.wait())

        try:
            for address in window:
                self._raise_if_cancelled(aggregator)
                await self._emit(
                    sink,
                    ProgressEvent(
                        address=address,
                        completed=aggregator.completed,
                        total=aggregator.total,
                    ),
                    aggregator,
                )
                pending.add(asyncio.create_task(
                    self.prober.probe(address, self.options.timeout),
                    name=f"probe:{address}",
                ))
                self._in_flight = len(pending)

            while pending:
                done, _ = await asyncio.wait(
                    pending | {cancel_waiter},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                for task in done:
                    if task is cancel_waiter:
                        continue
                    pending.discard(task)
                    self._in_flight = len(pending)
                    self._raise_if_cancelled(aggregator)
                    outcome = task.result()
                    aggregator.add(outcome)
                    await self._emit(sink, ResultEvent(outcome), aggregator)
                self._raise_if_cancelled(aggregator)

        finally:
            # Abandon whatever is still running; probes clean up their own
            # sockets and subprocesses on cancellation.
            cancel_waiter.cancel()
            for task in pending:
                task.cancel()
            await asyncio.gather(cancel_waiter, *pending, return_exceptions=True)
            self._in_flight = 0

    async def _emit(
        self,
        sink: EventSink,
        event: ScanEvent,
        aggregator: ResultAggregator,
    ) -> None:
        try:
            await sink.emit(event)
        except StreamClosed as e:
            self.cancel_token.cancel("event stream closed")
            raise ScanAborted(
                reason=self.cancel_token.reason or "event stream closed",
                completed=aggregator.completed,
                total=aggregator.total,
            ) from e

    def _raise_if_cancelled(self, aggregator: ResultAggregator) -> None:
        if self.cancel_token.cancelled:
            logger.info(
                f"Scan aborted: target={self.target or '-'} "
                f"after {aggregator.completed}/{aggregator.total} results "
                f"({self.cancel_token.reason})"
            )
            raise ScanAborted(
                reason=self.cancel_token.reason or "cancelled",
                completed=aggregator.completed,
                total=aggregator.total,
            )
