"""Shared contracts between processors, the bulk kernel and the host.

Everything here is a plain value type or exception with no dependency on
the plugin framework, so the kernel modules can be embedded on their own.
"""

from sluice.contracts.bitmask import BitmaskDecision
from sluice.contracts.bulk import (
    BulkItemResult,
    BulkRequest,
    BulkResponse,
    Exclusion,
    OperationSpec,
    ReconciliationResult,
    RecordOutcome,
    is_success_status,
)
from sluice.contracts.enums import Determinism, IndexOperation, Route, UpsertMode
from sluice.contracts.errors import (
    BitmaskValueError,
    BulkResponseError,
    ExclusionReason,
    RoutingReason,
    SessionStateError,
)
from sluice.contracts.records import Record

__all__ = [
    # Records
    "Record",
    # Bulk
    "BulkItemResult",
    "BulkRequest",
    "BulkResponse",
    "Exclusion",
    "OperationSpec",
    "ReconciliationResult",
    "RecordOutcome",
    "is_success_status",
    # Bitmask
    "BitmaskDecision",
    # Enums
    "Determinism",
    "IndexOperation",
    "Route",
    "UpsertMode",
    # Errors
    "BitmaskValueError",
    "BulkResponseError",
    "ExclusionReason",
    "RoutingReason",
    "SessionStateError",
]
