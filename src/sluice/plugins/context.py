"""Plugin execution context.

The PluginContext carries per-run metadata and the signals a processor
sends back to its host that are not tied to a single record.
"""

from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class PluginContext:
    """Context passed to every processor lifecycle call.

    Provides access to:
    - Run metadata (run_id, node_id, plugin_name)
    - The yield signal: a processor calls request_yield() when it wants
      the host to stop scheduling it for a while (backend unavailable,
      responses it cannot interpret). The host reads yield_requested after
      the cycle and calls reset_cycle() before the next one.

    Example:
        def on_trigger(self, ctx: PluginContext, session: ProcessSession) -> None:
            if backend_down:
                ctx.request_yield()
                return
    """

    run_id: str
    node_id: str | None = field(default=None)
    plugin_name: str | None = field(default=None)

    yield_requested: bool = field(default=False)

    def request_yield(self) -> None:
        """Ask the host to pause scheduling this processor briefly."""
        if not self.yield_requested:
            logger.debug("processor_yield_requested", run_id=self.run_id, node_id=self.node_id, plugin=self.plugin_name)
        self.yield_requested = True

    def reset_cycle(self) -> None:
        """Clear per-cycle signals. Called by the host before each cycle."""
        self.yield_requested = False
