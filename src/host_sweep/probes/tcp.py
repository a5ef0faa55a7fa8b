"""
TCP connect probe.

Attempts one handshake to a well-known port. Needs no privileges and works
where ICMP is filtered. A refused connection still proves the host is up,
since something on the far side answered with a RST.
"""

from __future__ import annotations

import asyncio
import logging

from .._types import ProbeMethod
from .base import Prober

logger = logging.getLogger(__name__)


class TcpConnectProber(Prober):
    """Probe hosts with a single TCP handshake."""

    def __init__(self, port: int = 80, refused_is_active: bool = True):
        """
        Initialize TCP connect prober.

        Args:
            port: Destination port for the handshake
            refused_is_active: Count a RST as proof of life
        """
        if not 1 <= port <= 65535:
            raise ValueError(f"Invalid TCP port: {port}")
        self.port = port
        self.refused_is_active = refused_is_active

    @property
    def method(self) -> ProbeMethod:
        return ProbeMethod.TCP

    async def _check(self, address: str, timeout: float) -> bool:
        try:
            _, writer = await asyncio.open_connection(address, self.port)
        except ConnectionRefusedError:
            return self.refused_is_active
        except OSError as e:
            logger.debug(f"TCP connect to {address}:{self.port} failed: {e}")
            return False

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True
