"""
Canonical Type Definitions
===========================

Single source of truth for shared enums used across the codebase.

This module defines:
- Tier: the four priority levels governing dequeue order
- Operation: the canonical command set shared by every request surface
"""

from enum import StrEnum

__all__ = [
    "DEFAULT_TIER",
    "Operation",
    "TIERS",
    "Tier",
    "parse_tier",
]

class Tier(StrEnum):
    """Priority tiers, highest precedence first.

    Iteration order of the enum is the dequeue scan order.
    """

    Q0 = "Q0"  # Critical
    Q1 = "Q1"
    Q2 = "Q2"  # Default for unspecified traffic
    Q3 = "Q3"

TIERS: tuple[Tier, ...] = tuple(Tier)
DEFAULT_TIER = Tier.Q2

_TIER_VALUES = frozenset(t.value for t in Tier)

def parse_tier(value: object, default: Tier = DEFAULT_TIER) -> Tier:
    """Exact-match a tier name; anything else yields ``default``."""
    if isinstance(value, str) and value in _TIER_VALUES:
        return Tier(value)
    return default

class Operation(StrEnum):
    """Canonical operations every request surface is normalized onto."""

    SEND = "SEND"
    POLL = "POLL"
    POLL_PRIORITY = "POLL_PRIORITY"
    REGISTER = "REGISTER"
    DISCOVER = "DISCOVER"
    HEALTH = "HEALTH"
