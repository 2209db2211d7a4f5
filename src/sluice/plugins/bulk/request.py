# src/sluice/plugins/bulk/request.py
"""Bulk request construction.

Turns an ordered batch of (Record, OperationSpec) pairs into one
newline-delimited bulk payload:

    {"index": {"_index": "logs", "_id": "7"}}
    {"message": "hello"}
    {"delete": {"_index": "logs", "_id": "8"}}
    {"update": {"_index": "logs", "_id": "9"}}
    {"doc": {"message": "edited"}}

Records that cannot form a valid action are excluded before the request
is sent and reported with a reason. The surviving records keep their
relative order: the backend answers with one item per action in the same
order, and the response reconciler relies on it.

Record payloads are embedded verbatim as JSON text. Line breaks inside a
payload (or script) would split it across protocol lines, so each of
\\r\\n, \\n and \\r is replaced by a single space first.
"""

from __future__ import annotations

import codecs
import json
import re
from collections.abc import Callable, Iterable

import structlog

from sluice.contracts import (
    BulkRequest,
    Exclusion,
    ExclusionReason,
    IndexOperation,
    OperationSpec,
    Record,
    UpsertMode,
)

logger = structlog.get_logger(__name__)

ContentReader = Callable[[Record], bytes]

_LINE_BREAKS = re.compile(r"\r\n|\n|\r")


def normalize_line_breaks(text: str) -> str:
    """Replace every line break sequence with one space."""
    return _LINE_BREAKS.sub(" ", text)


def _read_content(record: Record) -> bytes:
    return record.content


def validate_operation(spec: OperationSpec) -> ExclusionReason | None:
    """Check one record's resolved operation, in protocol order.

    Returns:
        None if the record can be submitted, otherwise the first reason
        it cannot.
    """
    if not spec.index:
        return {"reason": "missing_index", "message": "missing index"}

    if not spec.operation:
        return {"reason": "missing_operation", "message": "missing operation"}

    operation = spec.parsed_operation
    if operation is None:
        return {
            "reason": "unsupported_operation",
            "message": f"unsupported operation '{spec.operation}'",
            "operation": spec.operation,
        }

    if operation.requires_identifier and not spec.identifier:
        return {
            "reason": "missing_identifier",
            "message": f"operation '{spec.operation}' requires an identifier",
            "operation": spec.operation,
        }

    scripted = spec.upsert_mode is UpsertMode.SCRIPTED_UPSERT
    if scripted and operation in (IndexOperation.UPDATE, IndexOperation.UPSERT) and not (spec.script or "").strip():
        return {
            "reason": "missing_script",
            "message": "scripted upsert requires a script",
            "operation": spec.operation,
        }

    try:
        codecs.lookup(spec.charset)
    except LookupError:
        return {"reason": "unsupported_charset", "message": f"unknown charset '{spec.charset}'"}

    return None


class BulkRequestBuilder:
    """Serializes a batch of records into one bulk payload.

    Example:
        builder = BulkRequestBuilder(reader=session.read)
        request = builder.build([(record, spec), ...])
        for exclusion in request.excluded:
            session.transfer(exclusion.record, "failure")
        client.put("_bulk", request.payload)
    """

    def __init__(self, reader: ContentReader | None = None) -> None:
        """Initialize builder.

        Args:
            reader: Returns a record's payload bytes. Defaults to record.content.
                Called at most once per record, and only for records whose
                action needs a body.
        """
        self._read = reader or _read_content

    def build(self, entries: Iterable[tuple[Record, OperationSpec]]) -> BulkRequest:
        lines: list[str] = []
        pending: list[Record] = []
        excluded: list[Exclusion] = []

        for record, spec in entries:
            reason = validate_operation(spec)
            if reason is not None:
                logger.error(
                    "bulk_record_excluded",
                    record_id=record.record_id,
                    reason=reason["reason"],
                    detail=reason["message"],
                )
                excluded.append(Exclusion(record=record, reason=reason))
                continue

            lines.extend(self._action_lines(record, spec))
            pending.append(record)

        payload = "".join(f"{line}\n" for line in lines).encode("utf-8")
        return BulkRequest(payload=payload, pending=tuple(pending), excluded=tuple(excluded))

    def _action_lines(self, record: Record, spec: OperationSpec) -> list[str]:
        operation = spec.parsed_operation
        # validate_operation() guarantees a recognized operation
        assert operation is not None

        if operation is IndexOperation.INDEX:
            return [_action_line("index", spec), self._content(record, spec)]

        if operation is IndexOperation.DELETE:
            return [_action_line("delete", spec)]

        # update and upsert both travel as "update" actions
        return [_action_line("update", spec), self._update_body(record, spec, operation)]

    def _update_body(self, record: Record, spec: OperationSpec, operation: IndexOperation) -> str:
        if spec.upsert_mode is UpsertMode.DOC_AS_UPSERT:
            return f'{{"doc": {self._content(record, spec)}, "doc_as_upsert": true}}'
        if spec.upsert_mode is UpsertMode.SCRIPTED_UPSERT:
            script = normalize_line_breaks(spec.script or "")
            return f'{{"upsert": {{}}, "scripted_upsert": true, "script": {script}}}'
        if operation is IndexOperation.UPSERT:
            return f'{{"upsert": {self._content(record, spec)}}}'
        return f'{{"doc": {self._content(record, spec)}}}'

    def _content(self, record: Record, spec: OperationSpec) -> str:
        text = self._read(record).decode(spec.charset, errors="replace")
        return normalize_line_breaks(text)


def _action_line(action: str, spec: OperationSpec) -> str:
    metadata: dict[str, str] = {"_index": spec.index or ""}
    if spec.doc_type:
        metadata["_type"] = spec.doc_type
    if spec.identifier:
        metadata["_id"] = spec.identifier
    return json.dumps({action: metadata})
