"""Bulk request construction and response reconciliation."""

from sluice.plugins.bulk.request import BulkRequestBuilder, normalize_line_breaks, validate_operation
from sluice.plugins.bulk.response import BulkResponseReconciler, parse_bulk_response

__all__ = [
    "BulkRequestBuilder",
    "BulkResponseReconciler",
    "normalize_line_breaks",
    "parse_bulk_response",
    "validate_operation",
]
