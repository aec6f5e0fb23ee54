"""
RIS Live Validators Module

Provides prefix validation and CIDR containment used by the filter engine:
- Address/length parsing with family awareness
- Containment checks that degrade to "no match" on malformed input
"""

from .prefix import parse_prefix, contains, any_contains

__all__ = ["parse_prefix", "contains", "any_contains"]
