# src/sluice/plugins/protocols.py
"""Protocol definition for the host session processors run against.

The host runtime owns queuing, attribute storage and delivery. Processors
only see this narrow surface. Any object with these methods can drive a
processor; sluice.engine.session.InMemorySession is the in-process one.

Ownership rules (enforced by InMemorySession, expected of every host):
- Records returned by get() belong to the current cycle.
- Each of them must be resolved exactly once, by transfer() or remove().
- penalize(), put_attributes() and clone() return new Record values; the
  returned value is the one to resolve.
"""

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from sluice.contracts import Record


@runtime_checkable
class ProcessSession(Protocol):
    """Host session for one processor."""

    def get(self, max_count: int = 1) -> list[Record]:
        """Take up to max_count pending records for this cycle."""
        ...

    def read(self, record: Record) -> bytes:
        """Return the record's payload bytes."""
        ...

    def transfer(self, record: Record, relationship: str) -> None:
        """Route the record to a named output. Resolves the record."""
        ...

    def penalize(self, record: Record) -> Record:
        """Mark the record for delayed reprocessing."""
        ...

    def clone(self, record: Record) -> Record:
        """Create an independent copy owned by the current cycle."""
        ...

    def put_attributes(self, record: Record, attributes: Mapping[str, str]) -> Record:
        """Merge attributes into the record."""
        ...

    def remove(self, record: Record) -> None:
        """Drop the record. Resolves the record."""
        ...

    def record_send(self, record: Record, transit_uri: str) -> None:
        """Acknowledge delivery of the record to an external system."""
        ...
