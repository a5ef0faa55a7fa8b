"""
Base class for probe strategies.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod

from .._types import ProbeMethod, ProbeOutcome, ProbeStatus

logger = logging.getLogger(__name__)


class Prober(ABC):
    """
    One reachability check against one address.

    Subclasses implement `_check`, which returns True only on a confirmed
    reachability signal. `probe` wraps it with timing and collapses every
    failure mode to an inactive outcome. asyncio.CancelledError is the one
    exception that propagates, so a scheduler can abandon a probe mid-flight.
    """

    @property
    @abstractmethod
    def method(self) -> ProbeMethod:
        """Strategy implemented by this prober."""
        pass

    @abstractmethod
    async def _check(self, address: str, timeout: float) -> bool:
        """Run the check. May raise; probe() handles it."""
        pass

    async def is_available(self) -> bool:
        """Check if this probe mechanism can run on this host."""
        return True

    async def probe(self, address: str, timeout: float) -> ProbeOutcome:
        """Probe `address`, waiting at most `timeout` seconds."""
        started = time.monotonic()
        try:
            reachable = await asyncio.wait_for(self._check(address, timeout), timeout=timeout)
        except asyncio.TimeoutError:
            reachable = False
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"{self.method.value} probe of {address} failed: {e}")
            reachable = False

        if not reachable:
            logger.debug(f"{address} inactive ({self.method.value})")
            return ProbeOutcome(
                address=address,
                status=ProbeStatus.INACTIVE,
                method=self.method,
            )

        latency_ms = round((time.monotonic() - started) * 1000, 2)
        logger.debug(f"{address} active ({self.method.value}, {latency_ms}ms)")
        return ProbeOutcome(
            address=address,
            status=ProbeStatus.ACTIVE,
            method=self.method,
            latency_ms=latency_ms,
        )
