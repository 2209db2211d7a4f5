"""Tests for plugin context."""

from sluice.plugins.context import PluginContext


class TestPluginContext:
    def test_minimal_context(self) -> None:
        ctx = PluginContext(run_id="run-001")
        assert ctx.run_id == "run-001"
        assert ctx.node_id is None
        assert not ctx.yield_requested

    def test_request_yield_and_reset(self) -> None:
        ctx = PluginContext(run_id="run-001")
        ctx.request_yield()
        ctx.request_yield()
        assert ctx.yield_requested

        ctx.reset_cycle()
        assert not ctx.yield_requested
