# src/sluice/plugins/bulk/response.py
"""Bulk response parsing and per-record reconciliation.

The backend answers a bulk request with one item per action, in request
order. Items are paired with the pending records by position only; no
identifier matching is attempted, so the request builder's ordering is
load-bearing.

Whole-batch outcomes (no partial credit):

    transport error     -> every record FAILURE, penalized
    5xx                 -> every record RETRY, yield
    1xx / 3xx / 4xx     -> every record FAILURE
    2xx, unreadable     -> every record FAILURE, yield
    2xx, errors=false   -> every record SUCCESS
    2xx, errors=true    -> per item
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import structlog

from sluice.contracts import (
    BulkItemResult,
    BulkResponse,
    BulkResponseError,
    Record,
    RecordOutcome,
    ReconciliationResult,
    Route,
    is_success_status,
)

logger = structlog.get_logger(__name__)


def parse_bulk_response(body: bytes | str) -> BulkResponse:
    """Parse a 2xx bulk response body.

    Raises:
        BulkResponseError: Body is not a JSON object, errors is not a
            boolean, or errors is true and items is malformed.
    """
    try:
        parsed = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise BulkResponseError(f"Bulk response is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise BulkResponseError(f"Bulk response must be a JSON object, got {type(parsed).__name__}")

    errors = parsed.get("errors", False)
    if not isinstance(errors, bool):
        raise BulkResponseError(f"Bulk response 'errors' must be a boolean, got {errors!r}")

    # Items only matter when something failed
    if not errors:
        return BulkResponse(errors=False)

    items = parsed.get("items")
    if not isinstance(items, list):
        raise BulkResponseError("Bulk response reports errors but has no 'items' array")

    return BulkResponse(errors=True, items=tuple(_parse_item(item, position) for position, item in enumerate(items)))


def _parse_item(item: Any, position: int) -> BulkItemResult:
    if not isinstance(item, dict):
        raise BulkResponseError(f"Bulk item {position} must be an object, got {type(item).__name__}")

    # {"index": {"status": 201, ...}} - tolerate a flat item as well
    operation: str | None = None
    body: dict[str, Any] = item
    if len(item) == 1:
        (key, value), = item.items()
        if isinstance(value, dict):
            operation, body = key, value

    status = body.get("status")
    if not isinstance(status, int) or isinstance(status, bool):
        raise BulkResponseError(f"Bulk item {position} has no integer status: {status!r}")

    document_id = body.get("_id")
    return BulkItemResult(
        status=status,
        reason=_error_reason(body.get("error")),
        operation=operation,
        document_id=document_id if isinstance(document_id, str) else None,
    )


def _error_reason(error: Any) -> str | None:
    if isinstance(error, str):
        return error
    if isinstance(error, dict):
        for key in ("reason", "type"):
            value = error.get(key)
            if isinstance(value, str) and value:
                return value
    return None


class BulkResponseReconciler:
    """Maps one bulk call's result onto the pending records.

    Example:
        reconciler = BulkResponseReconciler(transit_uri="http://search:9200/_bulk")
        result = reconciler.reconcile(request.pending, response.status_code, response.content)
        for outcome in result.outcomes:
            ...
    """

    def __init__(self, transit_uri: str) -> None:
        self._transit_uri = transit_uri

    @property
    def transit_uri(self) -> str:
        return self._transit_uri

    def transport_failure(self, pending: Sequence[Record], error: BaseException) -> ReconciliationResult:
        """The request never produced a response."""
        reason = f"transport error: {error}"
        return ReconciliationResult(
            outcomes=tuple(RecordOutcome(record=r, route=Route.FAILURE, reason=reason, penalize=True) for r in pending),
        )

    def reconcile(self, pending: Sequence[Record], status_code: int, body: bytes | str) -> ReconciliationResult:
        if is_success_status(status_code):
            try:
                response = parse_bulk_response(body)
                return self.reconcile_items(pending, response, status_code=status_code)
            except BulkResponseError as e:
                logger.error(
                    "bulk_response_unreadable",
                    status_code=status_code,
                    record_count=len(pending),
                    error=str(e),
                )
                return self._all(pending, Route.FAILURE, reason=str(e), status_code=status_code, yield_requested=True)

        if 500 <= status_code < 600:
            logger.warning("bulk_server_error", status_code=status_code, record_count=len(pending))
            return self._all(
                pending,
                Route.RETRY,
                reason=f"HTTP {status_code}",
                status_code=status_code,
                yield_requested=True,
            )

        logger.warning("bulk_request_rejected", status_code=status_code, record_count=len(pending))
        return self._all(pending, Route.FAILURE, reason=f"HTTP {status_code}", status_code=status_code)

    def reconcile_items(
        self,
        pending: Sequence[Record],
        response: BulkResponse,
        *,
        status_code: int = 200,
    ) -> ReconciliationResult:
        """Per-item outcomes for a parsed 2xx response.

        Raises:
            BulkResponseError: The backend reported more items than actions sent.
        """
        if not response.errors:
            return self._all(pending, Route.SUCCESS, status_code=status_code)

        if len(response.items) > len(pending):
            raise BulkResponseError(f"Bulk response has {len(response.items)} items for {len(pending)} actions")

        outcomes: list[RecordOutcome] = []
        for record, item in zip(pending, response.items):
            if item.succeeded:
                outcomes.append(self._success(record))
                continue
            reason = item.reason or f"status {item.status}"
            logger.error(
                "bulk_item_failed",
                record_id=record.record_id,
                status=item.status,
                operation=item.operation,
                document_id=item.document_id,
                reason=reason,
            )
            outcomes.append(RecordOutcome(record=record, route=Route.FAILURE, reason=reason))

        # Records beyond the last item are treated as delivered
        outcomes.extend(self._success(record) for record in pending[len(response.items) :])
        return ReconciliationResult(outcomes=tuple(outcomes), status_code=status_code)

    def _success(self, record: Record) -> RecordOutcome:
        return RecordOutcome(record=record, route=Route.SUCCESS, transit_uri=self._transit_uri)

    def _all(
        self,
        pending: Sequence[Record],
        route: Route,
        *,
        reason: str | None = None,
        status_code: int | None = None,
        yield_requested: bool = False,
    ) -> ReconciliationResult:
        if route is Route.SUCCESS:
            outcomes = tuple(self._success(r) for r in pending)
        else:
            outcomes = tuple(RecordOutcome(record=r, route=route, reason=reason) for r in pending)
        return ReconciliationResult(outcomes=outcomes, yield_requested=yield_requested, status_code=status_code)
