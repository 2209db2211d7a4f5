"""Bulk request and response contracts.

These types answer: "What was sent to the search backend, and what did
each record end up as?"
"""

from dataclasses import dataclass

from sluice.contracts.enums import IndexOperation, Route, UpsertMode
from sluice.contracts.errors import ExclusionReason
from sluice.contracts.records import Record


def is_success_status(status: int) -> bool:
    """HTTP-style success test used for both whole responses and items."""
    return 200 <= status < 300


@dataclass(frozen=True)
class OperationSpec:
    """Resolved per-record configuration for one bulk action.

    operation is stored as supplied (it may come from a record attribute)
    and is validated by the request builder, not here.
    """

    index: str | None
    operation: str | None
    doc_type: str | None = None
    identifier: str | None = None
    script: str | None = None
    upsert_mode: UpsertMode | None = None
    charset: str = "utf-8"

    @property
    def parsed_operation(self) -> IndexOperation | None:
        if not self.operation:
            return None
        return IndexOperation.parse(self.operation)


@dataclass(frozen=True)
class Exclusion:
    """A record rejected before submission, with the reason."""

    record: Record
    reason: ExclusionReason


@dataclass(frozen=True)
class BulkRequest:
    """Output of the request builder.

    pending holds the surviving records in their original relative order.
    The response reconciler pairs bulk items with pending records by
    position, so this order is a contract.
    """

    payload: bytes
    pending: tuple[Record, ...]
    excluded: tuple[Exclusion, ...]

    @property
    def is_empty(self) -> bool:
        return not self.pending


@dataclass(frozen=True)
class BulkItemResult:
    """One entry of the bulk response's items array."""

    status: int
    reason: str | None = None
    operation: str | None = None
    document_id: str | None = None

    @property
    def succeeded(self) -> bool:
        return is_success_status(self.status)


@dataclass(frozen=True)
class BulkResponse:
    """Parsed bulk response body."""

    errors: bool
    items: tuple[BulkItemResult, ...] = ()


@dataclass(frozen=True)
class RecordOutcome:
    """Where one pending record goes after the bulk call."""

    record: Record
    route: Route
    reason: str | None = None
    penalize: bool = False
    transit_uri: str | None = None  # Set for SUCCESS: the URL the record was delivered to


@dataclass(frozen=True)
class ReconciliationResult:
    """Per-record outcomes for one submission.

    yield_requested asks the host to stop scheduling the processor for a
    while (server errors and unreadable responses).
    """

    outcomes: tuple[RecordOutcome, ...]
    yield_requested: bool = False
    status_code: int | None = None

    def by_route(self, route: Route) -> list[RecordOutcome]:
        return [o for o in self.outcomes if o.route == route]
