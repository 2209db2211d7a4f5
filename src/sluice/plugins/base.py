# src/sluice/plugins/base.py
"""Base class for processor implementations.

Processors MUST subclass BaseProcessor.

Why base class inheritance is required:
- Plugin discovery uses issubclass() checks against the base class
- Python's Protocol with non-method members (name, relationships, etc.)
  cannot support issubclass() - only isinstance() on instances

Lifecycle Contract (all hooks called on one thread by the host):
    __init__(config) -> on_scheduled(ctx) -> on_trigger(ctx, session)*
    -> on_stopped(ctx) -> close()

- __init__: Validate configuration. Invalid configuration raises
  PluginConfigError, so a misconfigured processor is never scheduled.
- on_scheduled: Per-run initialization (open clients, capture context).
  If on_scheduled raises, neither on_stopped nor close is called.
- on_trigger: One processing cycle. Takes records from the session and
  resolves every one of them (transfer or remove) before returning.
- on_stopped: Scheduling finished. Called even after a failed cycle.
- close: Pure resource teardown. Called even after a failed cycle.

Configuration-time changes arrive through on_property_modified(), which
may be called from a management thread while on_trigger() runs.
"""

from abc import ABC, abstractmethod
from typing import Any

from sluice.contracts import Determinism
from sluice.plugins.context import PluginContext
from sluice.plugins.protocols import ProcessSession


class BaseProcessor(ABC):
    """Base class for all processors.

    Subclasses declare a plugin name and their static outputs, then
    implement on_trigger():

        class Discard(BaseProcessor):
            name = "discard"
            relationships = frozenset()

            def on_trigger(self, ctx: PluginContext, session: ProcessSession) -> None:
                for record in session.get(10):
                    session.remove(record)

    Processors whose outputs depend on configuration override
    get_relationships() instead of (or in addition to) the class attribute.
    """

    name: str
    node_id: str | None = None  # Set by the host after registration

    determinism: Determinism = Determinism.DETERMINISTIC
    plugin_version: str = "0.0.0"

    # Static output names. Dynamic processors extend via get_relationships().
    relationships: frozenset[str] = frozenset()

    def __init__(self, config: dict[str, Any]) -> None:
        """Initialize with configuration.

        Args:
            config: Plugin configuration
        """
        self.config = config

    def get_relationships(self) -> frozenset[str]:
        """Return the output names the host must provide right now."""
        return self.relationships

    @abstractmethod
    def on_trigger(self, ctx: PluginContext, session: ProcessSession) -> None:
        """Run one processing cycle.

        Every record taken from the session must be resolved before
        returning. Data problems are reported by routing, not by raising.
        """
        ...

    def on_property_modified(self, name: str, old_value: str | None, new_value: str | None) -> None:  # noqa: B027 - optional hook
        """Called when a dynamic property is added, changed or removed.

        new_value is None when the property was removed, old_value is None
        when it was added.
        """
        pass

    # === Lifecycle Hooks ===
    # Intentionally empty - optional hooks for subclasses to override.

    def on_scheduled(self, ctx: PluginContext) -> None:  # noqa: B027 - optional hook
        """Called once before the first on_trigger()."""
        pass

    def on_stopped(self, ctx: PluginContext) -> None:  # noqa: B027 - optional hook
        """Called once after the last on_trigger(), before close()."""
        pass

    def close(self) -> None:  # noqa: B027 - optional override, not abstract
        """Release resources (connections, pools). No context available."""
        pass
