#!/usr/bin/env python3
"""
RIS Live Filter Engine

Four independent predicates decide whether a digested record is of interest:

- AS path fragment: contiguous, order-preserving run of AS numbers in the path
- Invalid transit AS: any AS after the first hop is in a deny set
- Origin: the record's origin attribute is one of a set of values
- Prefix: an announced prefix falls inside one of the configured prefixes

Each predicate has its own meaning for an empty criterion. An empty AS path
fragment matches everything; an empty set for any of the other three never
matches. At the whole-record level (FilterEngine.accepts) only configured
criteria take part, so a filter with nothing configured accepts every record.
"""

import logging
from dataclasses import dataclass, field
from typing import AbstractSet, FrozenSet, Iterable, Optional, Sequence, Tuple

from ris_live.models import RisMessageData
from ris_live.utils.error_handling import ParameterValidator, PrefixParseError
from ris_live.validators.prefix import any_contains, parse_prefix

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RisFilter:
    """Immutable filter criteria shared by every record in a stream session."""

    as_path: Tuple[int, ...] = ()
    invalid_transit_as: FrozenSet[int] = field(default_factory=frozenset)
    origins: FrozenSet[str] = field(default_factory=frozenset)
    prefixes: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_values(cls,
                    as_path: Iterable = (),
                    invalid_transit_as: Iterable = (),
                    origins: Iterable[str] = (),
                    prefixes: Iterable[str] = ()) -> 'RisFilter':
        """
        Build a filter from loosely typed values (CLI strings, YAML lists).

        Raises:
            ValidationError: If an AS number is not a valid 32-bit ASN
        """
        validator = ParameterValidator()
        fragment = tuple(validator.validate_as_number(a, "as_path") for a in as_path or ())
        transit = frozenset(
            validator.validate_as_number(a, "invalid_transit_as") for a in invalid_transit_as or ()
        )
        prefix_set = frozenset(p.strip() for p in prefixes or ())
        for prefix in prefix_set:
            try:
                parse_prefix(prefix)
            except PrefixParseError as e:
                logger.warning(f"Configured prefix will never match: {e.message}")

        return cls(
            as_path=fragment,
            invalid_transit_as=transit,
            origins=frozenset(str(o) for o in origins or ()),
            prefixes=prefix_set,
        )

    def is_empty(self) -> bool:
        return not (self.as_path or self.invalid_transit_as or self.origins or self.prefixes)


def match_as_path(data: RisMessageData, fragment: Sequence[int]) -> bool:
    """True if `fragment` appears as a contiguous run in the digested path."""
    if not fragment:
        return True

    path = data.digested_path
    size = len(fragment)
    if size > len(path):
        return False

    fragment = list(fragment)
    for start in range(len(path) - size + 1):
        if path[start:start + size] == fragment:
            return True
    return False


def match_invalid_transit_as(data: RisMessageData, invalid: AbstractSet[int]) -> bool:
    """True if any AS after the first hop is in `invalid`."""
    if not invalid:
        return False
    return any(asn in invalid for asn in data.digested_path[1:])


def match_origin(data: RisMessageData, origins: AbstractSet[str]) -> bool:
    """True if the record's origin is one of `origins`."""
    if not origins:
        return False
    return data.origin in origins


def match_prefix(data: RisMessageData, prefixes: Iterable[str]) -> bool:
    """True if any announced prefix is contained in a configured prefix."""
    prefixes = list(prefixes)
    if not prefixes:
        return False
    return any_contains(prefixes, data.all_prefixes())


class FilterEngine:
    """Apply a RisFilter to digested records."""

    def __init__(self, risfilter: Optional[RisFilter] = None):
        self.filter = risfilter if risfilter is not None else RisFilter()

    def check_as_path(self, data: RisMessageData) -> bool:
        return match_as_path(data, self.filter.as_path)

    def check_invalid_transit_as(self, data: RisMessageData) -> bool:
        return match_invalid_transit_as(data, self.filter.invalid_transit_as)

    def check_origins(self, data: RisMessageData) -> bool:
        return match_origin(data, self.filter.origins)

    def check_prefix(self, data: RisMessageData) -> bool:
        return match_prefix(data, self.filter.prefixes)

    def rejection_reason(self, data: Optional[RisMessageData]) -> Optional[str]:
        """Name the first configured criterion the record fails, or None if accepted."""
        if self.filter.is_empty():
            return None
        if data is None:
            return "no data"
        if self.filter.as_path and not self.check_as_path(data):
            return "as_path"
        if self.filter.invalid_transit_as and not self.check_invalid_transit_as(data):
            return "invalid_transit_as"
        if self.filter.origins and not self.check_origins(data):
            return "origins"
        if self.filter.prefixes and not self.check_prefix(data):
            return "prefixes"
        return None

    def accepts(self, data: Optional[RisMessageData]) -> bool:
        """AND of the configured criteria; unconfigured criteria are ignored."""
        return self.rejection_reason(data) is None
