"""
Probe strategies for reachability checks.

Each strategy implements the same interface:
- async probe(address, timeout) -> ProbeOutcome

Strategies:
- ICMP: single echo request through the system ping binary
- TCP: single handshake to a well-known port
"""

from .._types import ProbeMethod
from .base import Prober
from .icmp import IcmpProber, ping_arguments
from .tcp import TcpConnectProber


def create_prober(
    method: ProbeMethod | str,
    *,
    tcp_port: int = 80,
    ping_binary: str = "ping",
) -> Prober:
    """Build the prober for `method`. Raises ValueError for unknown methods."""
    method = ProbeMethod(method)
    if method == ProbeMethod.ICMP:
        return IcmpProber(ping_binary=ping_binary)
    return TcpConnectProber(port=tcp_port)


__all__ = [
    "Prober",
    "IcmpProber",
    "TcpConnectProber",
    "create_prober",
    "ping_arguments",
]
