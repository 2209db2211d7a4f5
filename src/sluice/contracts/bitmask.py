"""Bitmask routing decision contract."""

from dataclasses import dataclass


@dataclass(frozen=True)
class BitmaskDecision:
    """Result of testing one attribute value against the rule set.

    matched lists rule names in registration order. output_value is the
    value every fan-out clone carries: the original value, or the value
    with all matched masks cleared when bit flipping is enabled.
    """

    value: int
    matched: tuple[str, ...]
    combined_mask: int
    output_value: int

    @property
    def is_match(self) -> bool:
        return bool(self.matched)
