# src/sluice/plugins/routing/bitmask.py
"""Bitmask rule registry and routing decisions.

A rule is a name and an unsigned 64-bit mask. A record's integer value
(signed or unsigned 64-bit) matches a rule when every bit of the mask is set in the value:

    value & mask == mask

Rules are changed from a management thread while routing cycles read
them. The registry is copy-on-write: writers take a lock, build a new
mapping and swap the reference; readers take the current reference
without locking and iterate that snapshot for the whole decision.
"""

from __future__ import annotations

import re
import threading
from collections.abc import Mapping
from types import MappingProxyType

import structlog

from sluice.contracts import BitmaskDecision, BitmaskValueError

logger = structlog.get_logger(__name__)

UNMATCHED = "unmatched"
FAILURE = "failure"
RESERVED_RULE_NAMES: frozenset[str] = frozenset({UNMATCHED, FAILURE})

MAX_MASK = 2**64 - 1

# Values are read as signed or unsigned 64-bit integers
MIN_VALUE = -(2**63)
MAX_VALUE = MAX_MASK

_INTEGER = re.compile(r"[+-]?[0-9]+")


def parse_integer(value: str) -> int | None:
    """Parse a signed decimal integer, or None if value is not one."""
    if not _INTEGER.fullmatch(value):
        return None
    return int(value)


def parse_mask(value: int | str) -> int:
    """Validate a rule mask given as an int or a decimal string.

    Raises:
        ValueError: Not an integer, or outside 0..2**64-1.
    """
    if isinstance(value, bool):
        raise ValueError(f"Mask must be an integer, got {value!r}")
    mask = value if isinstance(value, int) else parse_integer(value.strip())
    if mask is None:
        raise ValueError(f"Mask must be a decimal integer, got {value!r}")
    if not 0 <= mask <= MAX_MASK:
        raise ValueError(f"Mask must be between 0 and {MAX_MASK}, got {mask}")
    return mask


def validate_rule_name(name: str) -> str:
    """Raises ValueError for blank or reserved rule names."""
    if not name or not name.strip():
        raise ValueError("Rule name must not be blank")
    if name in RESERVED_RULE_NAMES:
        raise ValueError(f"Rule name '{name}' is reserved for a built-in output")
    return name


class BitmaskRuleRegistry:
    """Named masks, safe to modify while decisions are being made.

    Iteration order is registration order. Re-registering a name keeps
    its position.
    """

    def __init__(self, rules: Mapping[str, int | str] | None = None) -> None:
        self._lock = threading.Lock()
        self._rules: Mapping[str, int] = MappingProxyType({})
        for name, mask in (rules or {}).items():
            self.register(name, mask)

    def register(self, name: str, mask: int | str) -> None:
        """Add or replace a rule.

        Raises:
            ValueError: Invalid name or mask.
        """
        validate_rule_name(name)
        value = parse_mask(mask)
        with self._lock:
            rules = dict(self._rules)
            rules[name] = value
            self._rules = MappingProxyType(rules)
        logger.debug("bitmask_rule_registered", rule=name, mask=value)

    def remove(self, name: str) -> int | None:
        """Drop a rule. Returns its mask, or None if it was not registered."""
        with self._lock:
            if name not in self._rules:
                return None
            rules = dict(self._rules)
            mask = rules.pop(name)
            self._rules = MappingProxyType(rules)
        logger.debug("bitmask_rule_removed", rule=name)
        return mask

    def update(self, name: str, old_value: str | None, new_value: str | None) -> None:
        """Apply a property-modified notification.

        A None new_value removes the rule; anything else adds or replaces it.
        """
        if new_value is None:
            self.remove(name)
            return
        self.register(name, new_value)

    def snapshot(self) -> Mapping[str, int]:
        """Current rules. The returned mapping never changes."""
        return self._rules

    def names(self) -> frozenset[str]:
        return frozenset(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, name: object) -> bool:
        return name in self._rules


class BitmaskRouter:
    """Decides which rules an integer value satisfies.

    Example:
        router = BitmaskRouter(BitmaskRuleRegistry({"ab": 0b0110}), flip_bits=True)
        decision = router.decide(0b1110)
        decision.matched  # ("ab",)
        decision.output_value  # 0b1000
    """

    def __init__(self, registry: BitmaskRuleRegistry | None = None, *, flip_bits: bool = False) -> None:
        self._registry = registry if registry is not None else BitmaskRuleRegistry()
        self._flip_bits = flip_bits

    @property
    def registry(self) -> BitmaskRuleRegistry:
        return self._registry

    @property
    def flip_bits(self) -> bool:
        return self._flip_bits

    def outputs(self) -> frozenset[str]:
        """Built-in outputs plus one per registered rule."""
        return RESERVED_RULE_NAMES | self._registry.names()

    def decide(self, value: int) -> BitmaskDecision:
        """Match value against a snapshot of the rules.

        Raises:
            ValueError: value does not fit in 64 bits.
        """
        if not MIN_VALUE <= value <= MAX_VALUE:
            raise ValueError(f"Value {value} does not fit in 64 bits")
        rules = self._registry.snapshot()
        matched: list[str] = []
        combined = 0
        for name, mask in rules.items():
            if value & mask == mask:
                matched.append(name)
                combined |= mask

        output = _clear_bits(value, combined) if self._flip_bits and matched else value
        return BitmaskDecision(value=value, matched=tuple(matched), combined_mask=combined, output_value=output)

    def decide_raw(self, attribute: str, raw: str | None) -> BitmaskDecision:
        """Parse an attribute value and decide.

        Raises:
            BitmaskValueError: Value is missing, empty, not a decimal integer,
                or does not fit in 64 bits.
        """
        value = parse_integer(raw) if raw else None
        if value is None or not MIN_VALUE <= value <= MAX_VALUE:
            raise BitmaskValueError(attribute, raw)
        return self.decide(value)


def _clear_bits(value: int, mask: int) -> int:
    # Stay within 64 bits; negative inputs keep their signed reading
    output = (value ^ mask) & MAX_MASK
    if value < 0 and output > -MIN_VALUE - 1:
        output -= 2**64
    return output
