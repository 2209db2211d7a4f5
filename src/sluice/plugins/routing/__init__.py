"""Attribute-value routing."""

from sluice.plugins.routing.bitmask import (
    FAILURE,
    MAX_MASK,
    MAX_VALUE,
    MIN_VALUE,
    RESERVED_RULE_NAMES,
    UNMATCHED,
    BitmaskRouter,
    BitmaskRuleRegistry,
    parse_integer,
    parse_mask,
)

__all__ = [
    "FAILURE",
    "MAX_MASK",
    "MAX_VALUE",
    "MIN_VALUE",
    "RESERVED_RULE_NAMES",
    "UNMATCHED",
    "BitmaskRouter",
    "BitmaskRuleRegistry",
    "parse_integer",
    "parse_mask",
]
