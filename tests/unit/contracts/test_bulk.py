"""Tests for bulk contract types."""

import pytest

from sluice.contracts import BulkItemResult, IndexOperation, Route, is_success_status
from sluice.contracts.bulk import RecordOutcome, ReconciliationResult
from sluice.testing import make_record, make_spec


class TestSuccessStatus:
    @pytest.mark.parametrize("status", [200, 201, 299])
    def test_2xx_succeeds(self, status: int) -> None:
        assert is_success_status(status)

    @pytest.mark.parametrize("status", [100, 199, 300, 404, 409, 500])
    def test_other_statuses_fail(self, status: int) -> None:
        assert not is_success_status(status)

    def test_item_result_uses_same_test(self) -> None:
        assert BulkItemResult(status=201).succeeded
        assert not BulkItemResult(status=409).succeeded


class TestOperationSpec:
    def test_parsed_operation(self) -> None:
        assert make_spec("Delete", identifier="1").parsed_operation is IndexOperation.DELETE

    def test_parsed_operation_none_for_empty(self) -> None:
        assert make_spec(None).parsed_operation is None
        assert make_spec("").parsed_operation is None


class TestReconciliationResult:
    def test_by_route(self) -> None:
        a, b = make_record(), make_record()
        result = ReconciliationResult(
            outcomes=(
                RecordOutcome(record=a, route=Route.SUCCESS),
                RecordOutcome(record=b, route=Route.FAILURE, reason="boom"),
            )
        )

        assert [o.record for o in result.by_route(Route.SUCCESS)] == [a]
        assert [o.reason for o in result.by_route(Route.FAILURE)] == ["boom"]
        assert result.by_route(Route.RETRY) == []
