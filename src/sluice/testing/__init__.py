# src/sluice/testing/__init__.py
"""Test infrastructure for sluice processors.

Factories for constructing production types with sensible defaults.
When a contract type's constructor changes, update the factory here.
Tests that use factories need ZERO changes.

Usage:
    from sluice.testing import make_record, make_spec, bulk_response
"""

from __future__ import annotations

import json
from typing import Any

from sluice.contracts import OperationSpec, Record, UpsertMode

# =============================================================================
# Records
# =============================================================================


def make_record(
    content: bytes | str | dict[str, Any] = b'{"field": "value"}',
    attributes: dict[str, str] | None = None,
    **kwargs: str,
) -> Record:
    """Build a Record.

    Usage:
        record = make_record()                              # small JSON payload
        record = make_record({"a": 1}, {"doc.id": "7"})     # dict payload is JSON-encoded
        record = make_record(b"raw", env="prod")            # kwargs shorthand for attributes
    """
    if isinstance(content, dict):
        content = json.dumps(content)
    if isinstance(content, str):
        content = content.encode("utf-8")
    merged = {**(attributes or {}), **kwargs}
    return Record(content=content, attributes=merged)


# =============================================================================
# Bulk operations
# =============================================================================


def make_spec(
    operation: str | None = "index",
    *,
    index: str | None = "test-index",
    identifier: str | None = None,
    doc_type: str | None = None,
    script: str | None = None,
    upsert_mode: UpsertMode | None = None,
    charset: str = "utf-8",
) -> OperationSpec:
    """Build an OperationSpec.

    Usage:
        spec = make_spec()                                  # index into "test-index"
        spec = make_spec("delete", identifier="42")
        spec = make_spec("update", identifier="1", upsert_mode=UpsertMode.DOC_AS_UPSERT)
    """
    return OperationSpec(
        index=index,
        operation=operation,
        doc_type=doc_type,
        identifier=identifier,
        script=script,
        upsert_mode=upsert_mode,
        charset=charset,
    )


def bulk_item(status: int, *, operation: str = "index", reason: str | None = None, document_id: str | None = None) -> dict[str, Any]:
    """One element of a bulk response's items array."""
    body: dict[str, Any] = {"status": status}
    if document_id is not None:
        body["_id"] = document_id
    if reason is not None:
        body["error"] = {"type": "test_exception", "reason": reason}
    return {operation: body}


def bulk_response(*statuses: int, errors: bool | None = None, reasons: dict[int, str] | None = None) -> dict[str, Any]:
    """Build a bulk response body (as a dict) from per-item statuses.

    errors defaults to True when any status is outside 2xx.

    Usage:
        body = bulk_response(201, 400, reasons={1: "mapper_parsing_exception"})
        respx.put(url).respond(200, json=body)
    """
    reasons = reasons or {}
    if errors is None:
        errors = any(not 200 <= s < 300 for s in statuses)
    items = [bulk_item(status, reason=reasons.get(position)) for position, status in enumerate(statuses)]
    return {"took": 1, "errors": errors, "items": items}
