"""
Target parsing and address expansion.

Turns the textual target notation accepted by the API into a TargetSpec and
expands a TargetSpec into the ascending, duplicate-free list of addresses
to probe. Pure computation, no network I/O.

Notations:
    10.1.10.7                  single address
    10.1.10.1-10.1.10.254      inclusive range
    10.1.10.0/24               prefix, /24 through /32
"""

from __future__ import annotations

import ipaddress
import logging

from ._types import PrefixTarget, RangeTarget, SingleTarget, TargetSpec
from .exceptions import InvalidTarget

logger = logging.getLogger(__name__)

MIN_PREFIX_LENGTH = 24
MAX_PREFIX_LENGTH = 32


def address_to_int(text: str) -> int:
    """Parse a dotted-quad IPv4 address into its 32-bit value."""
    try:
        return int(ipaddress.IPv4Address(text.strip()))
    except (ipaddress.AddressValueError, AttributeError) as e:
        raise InvalidTarget(f"Invalid IPv4 address: {text!r}", target=text) from e


def int_to_address(value: int) -> str:
    """Render a 32-bit value as a dotted-quad address."""
    return str(ipaddress.IPv4Address(value))


def parse_target(text: str) -> TargetSpec:
    """
    Parse a target string into a TargetSpec.

    Raises InvalidTarget for empty input, malformed addresses, reversed
    ranges or out-of-bounds prefix lengths.
    """
    if text is None or not text.strip():
        raise InvalidTarget("Target is empty", target=text)

    text = text.strip()

    if "-" in text:
        start_text, _, end_text = text.partition("-")
        spec: TargetSpec = RangeTarget(
            start=address_to_int(start_text),
            end=address_to_int(end_text),
        )
    elif "/" in text:
        base_text, _, bits_text = text.partition("/")
        bits_text = bits_text.strip()
        if not bits_text.isdigit():
            raise InvalidTarget(f"Invalid prefix length in {text!r}", target=text)
        spec = PrefixTarget(
            base=address_to_int(base_text),
            prefix_length=int(bits_text),
        )
    else:
        spec = SingleTarget(address=address_to_int(text))

    validate_target(spec, text)
    return spec


def validate_target(spec: TargetSpec, text: str | None = None) -> None:
    """Check the invariants of a TargetSpec built outside parse_target."""
    if isinstance(spec, SingleTarget):
        _check_value(spec.address, text)
    elif isinstance(spec, RangeTarget):
        _check_value(spec.start, text)
        _check_value(spec.end, text)
        if spec.start > spec.end:
            raise InvalidTarget(
                f"Range start {int_to_address(spec.start)} is after "
                f"end {int_to_address(spec.end)}",
                target=text,
            )
    elif isinstance(spec, PrefixTarget):
        _check_value(spec.base, text)
        if not MIN_PREFIX_LENGTH <= spec.prefix_length <= MAX_PREFIX_LENGTH:
            raise InvalidTarget(
                f"Prefix length must be between {MIN_PREFIX_LENGTH} and "
                f"{MAX_PREFIX_LENGTH}, got {spec.prefix_length}",
                target=text,
            )
    else:
        raise InvalidTarget(f"Unknown target type: {type(spec).__name__}", target=text)


def _check_value(value: int, text: str | None) -> None:
    if not isinstance(value, int) or not 0 <= value <= 0xFFFFFFFF:
        raise InvalidTarget(f"Address out of IPv4 range: {value!r}", target=text)


def _host_bounds(spec: TargetSpec) -> tuple[int, int]:
    """First and last address (inclusive) a valid spec resolves to."""
    if isinstance(spec, SingleTarget):
        return spec.address, spec.address
    if isinstance(spec, RangeTarget):
        return spec.start, spec.end

    host_bits = MAX_PREFIX_LENGTH - spec.prefix_length
    host_count = 1 << host_bits
    network = spec.base & ~(host_count - 1) & 0xFFFFFFFF

    if spec.prefix_length == MAX_PREFIX_LENGTH:
        return network, network
    # /31 has no broadcast to drop, only the network address
    last = network + host_count - 2 if host_count > 2 else network + 1
    return network + 1, last


def count_addresses(spec: TargetSpec) -> int:
    """Number of addresses expand() would return, without building the list."""
    validate_target(spec)
    first, last = _host_bounds(spec)
    return last - first + 1


def expand(spec: TargetSpec) -> list[int]:
    """
    Expand a TargetSpec into ascending address values.

    Prefix targets exclude the network address and, when the block has more
    than two addresses, the broadcast address. A /32 yields its one address.
    """
    validate_target(spec)
    first, last = _host_bounds(spec)
    addresses = list(range(first, last + 1))
    logger.debug(f"Expanded {spec} to {len(addresses)} addresses")
    return addresses


def expand_target(text: str) -> list[str]:
    """Parse and expand a target string into dotted-quad addresses."""
    return [int_to_address(a) for a in expand(parse_target(text))]
