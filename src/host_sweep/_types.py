"""
Type definitions for the sweep engine.

These dataclasses define the core domain model: what to scan (TargetSpec),
how to scan it (ScanOptions), what a probe yields (ProbeOutcome), and the
events a scan session emits while it runs.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from .exceptions import InvalidRequest


def now_utc() -> datetime:
    """Get current UTC timestamp (replaces deprecated datetime.utcnow())."""
    return datetime.now(timezone.utc)


class ProbeStatus(str, Enum):
    """Terminal status of one probe."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class ProbeMethod(str, Enum):
    """Reachability check strategy."""
    ICMP = "icmp"  # echo request via system ping
    TCP = "tcp"    # TCP handshake to a well-known port


# Human-readable method names reported by the health endpoint
METHOD_LABELS = {
    ProbeMethod.ICMP: "icmp-ping",
    ProbeMethod.TCP: "tcp-connect",
}


# -----------------------------------------------------------------------------
# Target specifications
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class SingleTarget:
    """One address."""
    address: int


@dataclass(frozen=True)
class RangeTarget:
    """Inclusive address range, start <= end."""
    start: int
    end: int


@dataclass(frozen=True)
class PrefixTarget:
    """Prefix notation, prefix_length in [24, 32]."""
    base: int
    prefix_length: int


TargetSpec = Union[SingleTarget, RangeTarget, PrefixTarget]


# -----------------------------------------------------------------------------
# Options and outcomes
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ScanOptions:
    """
    Per-scan engine options.

    timeout is per probe, in seconds. concurrency_limit is the window size
    (`batchSize` in the HTTP API).
    """
    timeout: float = 2.0
    concurrency_limit: int = 10

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise InvalidRequest(f"timeout must be positive, got {self.timeout}")
        if self.concurrency_limit <= 0:
            raise InvalidRequest(
                f"concurrency_limit must be positive, got {self.concurrency_limit}"
            )


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of probing one address. latency_ms is set only when active."""
    address: str
    status: ProbeStatus
    method: ProbeMethod
    latency_ms: Optional[float] = None

    @property
    def is_active(self) -> bool:
        return self.status == ProbeStatus.ACTIVE

    @property
    def sort_key(self) -> int:
        """Full numeric address value."""
        return int(ipaddress.IPv4Address(self.address))

    def to_dict(self) -> dict:
        data = {
            "address": self.address,
            "status": self.status.value,
            "method": self.method.value,
        }
        if self.latency_ms is not None:
            data["latencyMs"] = self.latency_ms
        return data


@dataclass(frozen=True)
class ScanSummary:
    """Aggregate of a finished scan session."""
    target: str
    method: ProbeMethod
    total_hosts: int
    active_hosts: int
    duration_ms: float
    outcomes: tuple[ProbeOutcome, ...] = ()
    started_at: datetime = field(default_factory=now_utc)

    def sorted_by_address(self) -> ScanSummary:
        """Copy with outcomes in ascending numeric address order."""
        return replace(
            self,
            outcomes=tuple(sorted(self.outcomes, key=lambda o: o.sort_key)),
        )

    def to_dict(self) -> dict:
        return {
            "success": True,
            "target": self.target,
            "method": self.method.value,
            "totalHosts": self.total_hosts,
            "activeHosts": self.active_hosts,
            "durationMs": self.duration_ms,
            "startedAt": self.started_at.isoformat(),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


# -----------------------------------------------------------------------------
# Scan events
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ProgressEvent:
    """Emitted immediately before the probe for `address` is launched."""
    address: str
    completed: int
    total: int

    type = "progress"

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "address": self.address,
            "completed": self.completed,
            "total": self.total,
        }


@dataclass(frozen=True)
class ResultEvent:
    """Emitted as soon as one probe finishes."""
    outcome: ProbeOutcome

    type = "result"

    def to_dict(self) -> dict:
        return {"type": self.type, "outcome": self.outcome.to_dict()}


@dataclass(frozen=True)
class CompleteEvent:
    """Terminal event of a successful session."""
    summary: ScanSummary

    type = "complete"

    def to_dict(self) -> dict:
        return {"type": self.type, **self.summary.to_dict()}


ScanEvent = Union[ProgressEvent, ResultEvent, CompleteEvent]
