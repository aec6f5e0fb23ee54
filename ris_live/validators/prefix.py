#!/usr/bin/env python3
"""
CIDR Prefix Containment

Decides whether one network prefix encloses another. Matching is address
family aware (an IPv4 prefix never contains an IPv6 prefix or vice versa)
and never raises on bad input: unparsable CIDR text simply does not match.
"""

import logging
from ipaddress import ip_network, IPv4Network, IPv6Network
from typing import Iterable, Union

from ris_live.utils.error_handling import PrefixParseError

logger = logging.getLogger(__name__)

Network = Union[IPv4Network, IPv6Network]


def parse_prefix(prefix: str) -> Network:
    """
    Parse CIDR text into a network.

    Host bits below the mask are accepted and cleared, so "10.1.2.3/8"
    parses as 10.0.0.0/8.

    Raises:
        PrefixParseError: If the text is not address/length notation
    """
    if not isinstance(prefix, str) or '/' not in prefix:
        raise PrefixParseError(f"Invalid prefix format '{prefix}': missing /length", prefix)

    try:
        return ip_network(prefix.strip(), strict=False)
    except ValueError as e:
        raise PrefixParseError(f"Invalid prefix format '{prefix}': {e}", prefix)


def contains(container: str, candidate: str) -> bool:
    """
    Check whether `candidate` lies within `container`.

    True when both are the same address family, the candidate is at least as
    specific as the container, and the candidate's network falls inside the
    container's mask. Malformed text on either side returns False.
    """
    try:
        outer = parse_prefix(container)
        inner = parse_prefix(candidate)
    except PrefixParseError as e:
        logger.debug(f"No containment match: {e.message}")
        return False

    if outer.version != inner.version:
        return False

    if inner.prefixlen < outer.prefixlen:
        return False

    return inner.subnet_of(outer)


def any_contains(containers: Iterable[str], candidates: Iterable[str]) -> bool:
    """True if any container prefix contains any candidate prefix."""
    candidates = list(candidates)
    for container in containers:
        for candidate in candidates:
            if contains(container, candidate):
                return True
    return False
