"""Error and reason contracts.

TypedDict schemas for structured reasons attached to routing decisions,
plus the exceptions raised at component boundaries.
"""

from typing import NotRequired, TypedDict


class ExclusionReason(TypedDict):
    """Why a record was rejected before a bulk request was sent."""

    reason: str  # Machine-readable code (e.g. "missing_index")
    message: str  # Human-readable explanation
    operation: NotRequired[str]  # Operation name as supplied, if any


class RoutingReason(TypedDict):
    """Why the bitmask router sent a record where it did."""

    rule: str  # Rule name, or "unmatched" / "failure"
    matched_value: int | str | None  # The attribute value that was tested
    mask: NotRequired[int]  # Combined mask of all matched rules
    field: NotRequired[str]  # Attribute name


class BulkResponseError(ValueError):
    """Raised when a bulk API response body cannot be interpreted.

    The cause is ambiguous (malformed payload or unexpected backend
    behaviour), so callers fail the whole submission rather than
    guessing at per-item outcomes.
    """


class BitmaskValueError(TypeError):
    """Raised when an attribute value cannot be read as an integer."""

    def __init__(self, attribute: str, value: str | None) -> None:
        self.attribute = attribute
        self.value = value
        super().__init__(f"Attribute '{attribute}' does not hold an integer value: {value!r}")


class SessionStateError(RuntimeError):
    """Raised when a processor violates the session's record ownership rules.

    Examples: transferring a record twice, transferring to an output the
    processor never declared, or ending a cycle with unresolved records.
    These are processor bugs, not data problems.
    """
