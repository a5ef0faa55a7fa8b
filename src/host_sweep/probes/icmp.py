"""
ICMP echo probe using the system ping binary.

Raw ICMP sockets need elevated privileges, so the probe shells out to
`ping -c 1`. Each call owns exactly one subprocess and reaps it on every
exit path, including timeout and cancellation.
"""

from __future__ import annotations

import asyncio
import logging
import math
import sys

from .._types import ProbeMethod
from .base import Prober

logger = logging.getLogger(__name__)


def ping_arguments(address: str, timeout: float, platform: str = sys.platform) -> list[str]:
    """
    Build ping arguments for a single echo request.

    The wait flag differs per platform: Linux takes whole seconds (-W),
    macOS takes milliseconds (-W), Windows uses -n/-w in milliseconds.
    """
    if platform.startswith("win"):
        return ["-n", "1", "-w", str(int(timeout * 1000)), address]
    if platform == "darwin":
        return ["-c", "1", "-W", str(int(timeout * 1000)), address]
    return ["-c", "1", "-W", str(max(1, math.ceil(timeout))), address]


class IcmpProber(Prober):
    """Probe hosts with a single ICMP echo request."""

    def __init__(self, ping_binary: str = "ping"):
        """
        Initialize ICMP prober.

        Args:
            ping_binary: Name or path of the ping executable
        """
        self.ping_binary = ping_binary

    @property
    def method(self) -> ProbeMethod:
        return ProbeMethod.ICMP

    async def is_available(self) -> bool:
        """Check if the ping binary is on PATH."""
        try:
            result = await asyncio.create_subprocess_exec(
                "which", self.ping_binary,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            await result.wait()
            return result.returncode == 0
        except OSError:
            return False

    async def _check(self, address: str, timeout: float) -> bool:
        process = await asyncio.create_subprocess_exec(
            self.ping_binary,
            *ping_arguments(address, timeout),
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        try:
            returncode = await process.wait()
        finally:
            if process.returncode is None:
                _kill(process)
                await process.wait()
        return returncode == 0


def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass
