# src/sluice/engine/session.py
"""In-memory host session.

Implements ProcessSession over a FIFO queue so processors can run without
a full flow runtime: in tests, from the CLI, or embedded in a script.

The session enforces the ownership rules a real host would:
- only records taken in the current cycle (or cloned from them) may be
  touched;
- each of them is resolved exactly once (transfer or remove);
- transfers go to outputs the processor currently declares;
- commit() refuses to end a cycle that left records unresolved.

Penalized records that are rolled back re-enter the queue but are not
handed out again until penalty_duration has passed on the session clock.
"""

from __future__ import annotations

from collections import Counter, defaultdict, deque
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

import structlog

from sluice.contracts import Record, SessionStateError
from sluice.engine.clock import DEFAULT_CLOCK, Clock

logger = structlog.get_logger(__name__)

RelationshipProvider = Callable[[], Iterable[str]]


@dataclass(frozen=True)
class CycleStats:
    """What happened to the records of one committed cycle."""

    taken: int
    transferred: Mapping[str, int] = field(default_factory=dict)
    removed: int = 0
    cloned: int = 0


@dataclass
class _QueuedRecord:
    record: Record
    available_at: float


class InMemorySession:
    """FIFO session backed by process memory.

    Example:
        session = InMemorySession(lambda: {"success", "failure"})
        session.enqueue(b'{"a": 1}', {"id": "1"})
        batch = session.get(10)
        session.transfer(batch[0], "success")
        session.commit()
        assert len(session.transferred_to("success")) == 1
    """

    def __init__(
        self,
        relationships: RelationshipProvider | Iterable[str] = (),
        *,
        clock: Clock = DEFAULT_CLOCK,
        penalty_duration: float = 30.0,
    ) -> None:
        if callable(relationships):
            self._relationships: RelationshipProvider = relationships
        else:
            fixed = frozenset(relationships)
            self._relationships = lambda: fixed
        self._clock = clock
        self._penalty_duration = penalty_duration

        self._queue: deque[_QueuedRecord] = deque()

        # Current cycle bookkeeping: record_id -> latest version of the record
        self._in_flight: dict[str, Record] = {}
        self._taken_ids: list[str] = []
        self._resolved: set[str] = set()
        self._cycle_transfers: Counter[str] = Counter()
        self._cycle_removed = 0
        self._cycle_cloned = 0

        # Terminal state, accumulated across cycles
        self._transferred: defaultdict[str, list[Record]] = defaultdict(list)
        self._removed: list[Record] = []
        self._sends: list[tuple[Record, str]] = []

    # === Intake ===

    def enqueue(self, content: bytes | str, attributes: Mapping[str, str] | None = None) -> Record:
        """Create a record and append it to the queue."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        record = Record(content=content, attributes=dict(attributes or {}))
        self.enqueue_record(record)
        return record

    def enqueue_record(self, record: Record) -> None:
        self._queue.append(_QueuedRecord(record, available_at=self._clock.monotonic()))

    @property
    def queue_size(self) -> int:
        """Records waiting, including penalized ones not yet available."""
        return len(self._queue)

    @property
    def available_count(self) -> int:
        now = self._clock.monotonic()
        return sum(1 for q in self._queue if q.available_at <= now)

    def is_queue_empty(self) -> bool:
        return not self._queue

    # === ProcessSession ===

    def get(self, max_count: int = 1) -> list[Record]:
        if max_count < 1:
            raise ValueError(f"max_count must be positive, got {max_count}")
        now = self._clock.monotonic()
        taken: list[Record] = []
        kept: deque[_QueuedRecord] = deque()
        while self._queue:
            queued = self._queue.popleft()
            if len(taken) < max_count and queued.available_at <= now:
                taken.append(queued.record)
            else:
                kept.append(queued)
        self._queue = kept

        for record in taken:
            self._in_flight[record.record_id] = record
            self._taken_ids.append(record.record_id)
        return taken

    def read(self, record: Record) -> bytes:
        return self._require_open(record).content

    def transfer(self, record: Record, relationship: str) -> None:
        current = self._require_open(record)
        declared = frozenset(self._relationships())
        if relationship not in declared:
            raise SessionStateError(f"Cannot transfer {record.record_id} to undeclared output '{relationship}'. Declared outputs: {sorted(declared)}")
        # Callers may hand back an older version; the latest one is what moves
        self._resolved.add(record.record_id)
        self._transferred[relationship].append(current)
        self._cycle_transfers[relationship] += 1

    def penalize(self, record: Record) -> Record:
        penalized = self._require_open(record).mark_penalized()
        self._in_flight[record.record_id] = penalized
        return penalized

    def clone(self, record: Record) -> Record:
        cloned = self._require_open(record).clone()
        self._in_flight[cloned.record_id] = cloned
        self._cycle_cloned += 1
        return cloned

    def put_attributes(self, record: Record, attributes: Mapping[str, str]) -> Record:
        updated = self._require_open(record).with_attributes(attributes)
        self._in_flight[record.record_id] = updated
        return updated

    def remove(self, record: Record) -> None:
        current = self._require_open(record)
        self._resolved.add(record.record_id)
        self._removed.append(current)
        self._cycle_removed += 1

    def record_send(self, record: Record, transit_uri: str) -> None:
        # Acknowledgments may follow the transfer within the same cycle
        if record.record_id not in self._in_flight:
            raise SessionStateError(f"Record {record.record_id} does not belong to the current cycle")
        self._sends.append((self._in_flight[record.record_id], transit_uri))

    # === Cycle control ===

    def unresolved(self) -> list[Record]:
        """Records of the current cycle that have not been transferred or removed."""
        return [r for rid, r in self._in_flight.items() if rid not in self._resolved]

    def fail_unresolved(self, relationship: str) -> list[Record]:
        """Route every unresolved taken record to relationship, penalized.

        Unresolved clones are discarded: they were never handed to the
        processor by the host and have no upstream owner.
        """
        failed: list[Record] = []
        taken = set(self._taken_ids)
        for record in self.unresolved():
            if record.record_id in taken:
                penalized = self.penalize(record)
                self.transfer(penalized, relationship)
                failed.append(penalized)
            else:
                self.remove(record)
        return failed

    def rollback(self) -> list[Record]:
        """Return unresolved taken records to the head of the queue.

        Penalized records become available again after penalty_duration.
        """
        taken = set(self._taken_ids)
        now = self._clock.monotonic()
        returned: list[Record] = []
        for record in reversed(self.unresolved()):
            if record.record_id in taken:
                delay = self._penalty_duration if record.penalized else 0.0
                self._queue.appendleft(_QueuedRecord(record, available_at=now + delay))
                returned.append(record)
            self._resolved.add(record.record_id)
        returned.reverse()
        return returned

    def commit(self) -> CycleStats:
        """End the cycle.

        Raises:
            SessionStateError: If any record of the cycle is unresolved.
        """
        unresolved = self.unresolved()
        if unresolved:
            ids = ", ".join(r.record_id for r in unresolved)
            raise SessionStateError(f"Cycle ended with {len(unresolved)} unresolved record(s): {ids}")

        stats = CycleStats(
            taken=len(self._taken_ids),
            transferred=dict(self._cycle_transfers),
            removed=self._cycle_removed,
            cloned=self._cycle_cloned,
        )
        self._in_flight.clear()
        self._taken_ids.clear()
        self._resolved.clear()
        self._cycle_transfers.clear()
        self._cycle_removed = 0
        self._cycle_cloned = 0
        return stats

    # === Inspection ===

    def transferred_to(self, relationship: str) -> list[Record]:
        return list(self._transferred.get(relationship, ()))

    @property
    def transferred(self) -> dict[str, list[Record]]:
        return {name: list(records) for name, records in self._transferred.items()}

    @property
    def removed(self) -> list[Record]:
        return list(self._removed)

    @property
    def sends(self) -> list[tuple[Record, str]]:
        return list(self._sends)

    def _require_open(self, record: Record) -> Record:
        current = self._in_flight.get(record.record_id)
        if current is None:
            raise SessionStateError(f"Record {record.record_id} does not belong to the current cycle")
        if record.record_id in self._resolved:
            raise SessionStateError(f"Record {record.record_id} was already transferred or removed")
        return current
