"""Shared fixtures for host sweep tests."""

import asyncio
from typing import Optional

import pytest

from host_sweep._types import ProbeMethod, ProbeOutcome, ProbeStatus
from host_sweep.events import EventSink
from host_sweep.probes import Prober


class FakeProber(Prober):
    """
    Network-free prober.

    Addresses in `active` come back active with the latency from
    `latencies` (default 1.0ms). `delays` controls how long each probe
    takes, which in turn controls completion order. Tracks how many probes
    are outstanding at once and which ones were cancelled.
    """

    def __init__(
        self,
        active: Optional[set] = None,
        latencies: Optional[dict] = None,
        delays: Optional[dict] = None,
        default_delay: float = 0.0,
        method: ProbeMethod = ProbeMethod.ICMP,
    ):
        self.active = set(active or ())
        self.latencies = latencies or {}
        self.delays = delays or {}
        self.default_delay = default_delay
        self._method = method

        self.launched: list[str] = []
        self.cancelled: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def method(self) -> ProbeMethod:
        return self._method

    async def _check(self, address: str, timeout: float) -> bool:
        return address in self.active

    async def probe(self, address: str, timeout: float) -> ProbeOutcome:
        self.launched.append(address)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(address, self.default_delay))
        except asyncio.CancelledError:
            self.cancelled.append(address)
            raise
        finally:
            self.in_flight -= 1

        if address in self.active:
            return ProbeOutcome(
                address=address,
                status=ProbeStatus.ACTIVE,
                method=self._method,
                latency_ms=self.latencies.get(address, 1.0),
            )
        return ProbeOutcome(address=address, status=ProbeStatus.INACTIVE, method=self._method)


class RecordingSink(EventSink):
    """Collects every event it receives."""

    def __init__(self):
        self.events = []

    async def emit(self, event) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list:
        return [e for e in self.events if e.type == event_type]


@pytest.fixture
def fake_prober():
    """Prober where nothing answers."""
    return FakeProber()


@pytest.fixture
def recording_sink():
    return RecordingSink()
