"""
Result aggregation for one scan session.
"""

from __future__ import annotations

from ._types import ProbeMethod, ProbeOutcome, ScanSummary, now_utc


class ResultAggregator:
    """
    Accumulates probe outcomes into summary statistics.

    Outcomes are kept in the order they were added (completion order).
    Use ScanSummary.sorted_by_address() for a reproducible order.
    """

    def __init__(self, target: str, method: ProbeMethod, total: int):
        self.target = target
        self.method = method
        self.total = total
        self.started_at = now_utc()
        self._outcomes: list[ProbeOutcome] = []
        self._seen: set[str] = set()
        self._active = 0

    def add(self, outcome: ProbeOutcome) -> None:
        """Record one outcome. Each address may be recorded once."""
        if outcome.address in self._seen:
            raise ValueError(f"Duplicate outcome for {outcome.address}")
        self._seen.add(outcome.address)
        self._outcomes.append(outcome)
        if outcome.is_active:
            self._active += 1

    @property
    def completed(self) -> int:
        return len(self._outcomes)

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def outcomes(self) -> list[ProbeOutcome]:
        return list(self._outcomes)

    def summarize(self, duration_ms: float) -> ScanSummary:
        """Build the summary emitted with the Complete event."""
        return ScanSummary(
            target=self.target,
            method=self.method,
            total_hosts=len(self._outcomes),
            active_hosts=self._active,
            duration_ms=duration_ms,
            outcomes=tuple(self._outcomes),
            started_at=self.started_at,
        )
