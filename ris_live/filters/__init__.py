"""
RIS Live Filtering

Key Components:
- RisFilter: Immutable filter criteria for a stream session
- FilterEngine: Whole-record acceptance over the configured criteria
- match_* predicates: Individual criteria, usable on their own
"""

from .engine import (
    RisFilter,
    FilterEngine,
    match_as_path,
    match_invalid_transit_as,
    match_origin,
    match_prefix,
)
from .loader import load_filter_file

__all__ = [
    'RisFilter',
    'FilterEngine',
    'match_as_path',
    'match_invalid_transit_as',
    'match_origin',
    'match_prefix',
    'load_filter_file',
]
