"""Record: the unit of data a processor receives from the host.

A record carries an opaque byte payload and string-keyed, string-valued
attributes. Records are immutable values: attribute updates and clones
produce new Record instances, so a clone never aliases its source.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from uuid import uuid4


def _new_record_id() -> str:
    return uuid4().hex


@dataclass(frozen=True, eq=False)
class Record:
    """One unit of flow data.

    Attributes:
        content: Raw payload bytes, read once by the consuming processor
        attributes: Read-only view of the record's metadata
        record_id: Identity within the host session (new for every clone)
        penalized: Set by the host when the record should be retried later
    """

    content: bytes
    attributes: Mapping[str, str] = field(default_factory=dict)
    record_id: str = field(default_factory=_new_record_id)
    penalized: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.content, bytes):
            raise TypeError(f"Record content must be bytes, got {type(self.content).__name__}")
        for key, value in self.attributes.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise TypeError(f"Record attributes must be str -> str, got {key!r}: {type(value).__name__}")
        # Own a private copy so later mutation of the caller's dict is invisible
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @property
    def size(self) -> int:
        return len(self.content)

    def get(self, name: str) -> str | None:
        """Return an attribute value, or None when absent."""
        return self.attributes.get(name)

    def with_attributes(self, updates: Mapping[str, str]) -> "Record":
        """Return the same record (same identity) with attributes merged in."""
        return replace(self, attributes={**self.attributes, **updates})

    def clone(self) -> "Record":
        """Return an independent copy with a fresh identity."""
        return Record(content=self.content, attributes=dict(self.attributes))

    def mark_penalized(self) -> "Record":
        return replace(self, penalized=True)

    def __repr__(self) -> str:
        return f"Record(record_id={self.record_id!r}, size={self.size}, attributes={dict(self.attributes)!r})"
