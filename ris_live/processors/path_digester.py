#!/usr/bin/env python3
"""
AS Path Digestion

RIS Live publishes AS paths as JSON arrays whose elements are either AS
numbers or nested arrays (AS-sets, e.g. [2497, 6453, [13340]]). The digester
turns that heterogeneous representation into a flat, ordered list of AS
numbers:

- numeric elements are truncated to integers
- AS-sets are flattened one level, members kept in their original order
- any other element (words, booleans, null, deeper nesting) fails the whole
  path; no partial result is produced
"""

import logging
from decimal import Decimal
from dataclasses import dataclass
from typing import Any, Iterable, List, Tuple, Union

from ris_live.models import RisMessageData
from ris_live.utils.error_handling import DigestError

logger = logging.getLogger(__name__)

MAX_AS_NUMBER = 4294967295


@dataclass(frozen=True)
class PathNumber:
    """A single AS hop."""
    value: int


@dataclass(frozen=True)
class ASSet:
    """An AS-set occupying one path position."""
    values: Tuple[int, ...]


PathElement = Union[PathNumber, ASSet]


def _as_number(leaf: Any) -> int:
    """Convert one numeric leaf to an AS number or raise DigestError."""
    # bool is an int subclass, but true/false are not AS numbers
    if isinstance(leaf, bool) or not isinstance(leaf, (int, float, Decimal)):
        raise DigestError(f"Path element is not an AS number: {leaf!r}", element=leaf)

    try:
        value = int(leaf)
    except (ValueError, OverflowError):
        raise DigestError(f"Path element is not a finite number: {leaf!r}", element=leaf)

    if not 0 <= value <= MAX_AS_NUMBER:
        raise DigestError(f"Path element out of AS number range: {leaf!r}", element=leaf)

    return value


def parse_path_element(element: Any) -> PathElement:
    """Classify one top-level path element as a hop or an AS-set."""
    if isinstance(element, (list, tuple)):
        return ASSet(tuple(_as_number(member) for member in element))
    return PathNumber(_as_number(element))


def digest_path(raw_path: Iterable[Any]) -> List[int]:
    """
    Flatten a raw RIS Live path into an ordered list of AS numbers.

    Args:
        raw_path: Decoded "path" array from a RIS Live record

    Returns:
        List of AS numbers in path order

    Raises:
        DigestError: If any element is not numerically representable
    """
    digested = []
    for element in raw_path:
        parsed = parse_path_element(element)
        if isinstance(parsed, ASSet):
            digested.extend(parsed.values)
        else:
            digested.append(parsed.value)
    return digested


def digest_message(data: RisMessageData) -> List[int]:
    """
    Digest a message's raw path in place.

    On failure the message's digested path is left empty and the error
    propagates to the caller.
    """
    data.digested_path = []
    data.digested_path = digest_path(data.path)
    logger.debug(f"Digested path for {data.id or data.peer}: {data.digested_path}")
    return data.digested_path
