"""Tests for the RouteOnBitMask processor."""

from typing import Any

import pytest
from structlog.testing import capture_logs

from sluice.engine import MockClock, ProcessorRunner
from sluice.plugins.config_base import PluginConfigError
from sluice.plugins.processors.route_on_bitmask import RouteOnBitMask


def _runner(**config: Any) -> ProcessorRunner:
    options = {"attribute": "flags", **config}
    return ProcessorRunner(RouteOnBitMask(options), clock=MockClock())


class TestConfiguration:
    def test_outputs_include_rules(self) -> None:
        processor = RouteOnBitMask({"attribute": "flags", "rules": {"a": 1, "b": "6"}})
        assert processor.get_relationships() == frozenset({"unmatched", "failure", "a", "b"})

    @pytest.mark.parametrize(
        "config",
        [
            {},
            {"attribute": " "},
            {"attribute": "flags", "rules": {"unmatched": 1}},
            {"attribute": "flags", "rules": {"a": -1}},
            {"attribute": "flags", "rules": {"a": 2**64}},
            {"attribute": "flags", "rules": {"a": "lots"}},
            {"attribute": "{{ broken"},
        ],
    )
    def test_invalid(self, config: dict[str, Any]) -> None:
        with pytest.raises(PluginConfigError):
            RouteOnBitMask(config)

    def test_property_modified_adds_changes_removes(self) -> None:
        processor = RouteOnBitMask({"attribute": "flags"})

        processor.on_property_modified("urgent", None, "1")
        assert "urgent" in processor.get_relationships()

        processor.on_property_modified("urgent", "1", "3")
        assert processor.router.registry.snapshot()["urgent"] == 3

        processor.on_property_modified("urgent", "3", None)
        assert "urgent" not in processor.get_relationships()

    def test_property_modified_rejects_reserved(self) -> None:
        processor = RouteOnBitMask({"attribute": "flags"})
        with pytest.raises(PluginConfigError):
            processor.on_property_modified("failure", None, "1")


class TestRouting:
    def test_fan_out_to_each_matching_rule(self) -> None:
        with _runner(rules={"low": 1, "mid": 2, "high": 8}) as runner:
            original = runner.enqueue(b"payload", {"flags": "3", "other": "x"})
            report = runner.run_cycle()

        low = runner.session.transferred_to("low")
        mid = runner.session.transferred_to("mid")
        assert len(low) == 1
        assert len(mid) == 1
        assert runner.session.transferred_to("high") == []
        assert low[0].record_id != mid[0].record_id
        assert original.record_id not in {low[0].record_id, mid[0].record_id}
        assert low[0].content == b"payload"
        assert dict(low[0].attributes) == {"flags": "3", "other": "x"}
        assert [r.record_id for r in runner.session.removed] == [original.record_id]
        assert report.stats is not None
        assert report.stats.cloned == 2

    def test_unmatched_passes_original_through(self) -> None:
        with _runner(rules={"a": 4}) as runner:
            original = runner.enqueue(b"", {"flags": "3"})
            runner.run_cycle()

        (unmatched,) = runner.session.transferred_to("unmatched")
        assert unmatched.record_id == original.record_id
        assert unmatched.get("flags") == "3"

    @pytest.mark.parametrize(
        "attributes",
        [{}, {"flags": ""}, {"flags": "abc"}, {"flags": "1.5"}, {"flags": str(2**64 + 6)}, {"flags": str(-(2**63) - 1)}],
    )
    def test_bad_value_fails_without_fan_out(self, attributes: dict[str, str]) -> None:
        with _runner(rules={"a": 0}) as runner:
            runner.enqueue(b"", attributes)
            runner.run_cycle()

        assert len(runner.session.transferred_to("failure")) == 1
        assert runner.session.transferred_to("a") == []

    def test_flip_bit_writes_cleared_value_to_every_copy(self) -> None:
        with _runner(rules={"a": 0b0001, "b": 0b0100}, flip_bit=True) as runner:
            original = runner.enqueue(b"", {"flags": str(0b1101)})
            runner.run_cycle()

        copies = runner.session.transferred_to("a") + runner.session.transferred_to("b")
        assert [r.get("flags") for r in copies] == ["8", "8"]
        assert original.get("flags") == "13"

    def test_attribute_name_is_template(self) -> None:
        with _runner(attribute="{{ attributes.field }}", rules={"a": 1}) as runner:
            runner.enqueue(b"", {"field": "bits", "bits": "1"})
            runner.run_cycle()

        assert len(runner.session.transferred_to("a")) == 1

    def test_rule_added_at_runtime_routes_next_cycle(self) -> None:
        with _runner() as runner:
            runner.enqueue(b"", {"flags": "1"})
            runner.run_cycle()
            runner.processor.on_property_modified("odd", None, "1")
            runner.enqueue(b"", {"flags": "1"})
            runner.run_cycle()

        assert len(runner.session.transferred_to("unmatched")) == 1
        assert len(runner.session.transferred_to("odd")) == 1

    def test_flip_bit_on_negative_value_stays_in_range(self) -> None:
        with _runner(rules={"hi": 2**63}, flip_bit=True) as runner:
            runner.enqueue(b"", {"flags": "-1"})
            runner.run_cycle()

        (copy,) = runner.session.transferred_to("hi")
        assert copy.get("flags") == str(2**63 - 1)

    def test_failure_and_unmatched_log_routing_reason(self) -> None:
        with capture_logs() as logs, _runner(rules={"a": 4}) as runner:
            runner.enqueue(b"", {"flags": "abc"})
            runner.enqueue(b"", {"flags": "3"})
            runner.run_cycle()

        routing = {e["event"]: e["routing"] for e in logs if "routing" in e}
        assert routing["bitmask_value_invalid"] == {"rule": "failure", "matched_value": "abc", "field": "flags"}
        assert routing["bitmask_unmatched"] == {"rule": "unmatched", "matched_value": 3, "field": "flags"}
