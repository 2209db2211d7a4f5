# src/sluice/plugins/manager.py
"""Plugin manager for discovery, registration, and construction.

Uses pluggy for hook-based plugin registration.
"""

from dataclasses import dataclass
from typing import Any

import pluggy
import structlog

from sluice.contracts import Determinism
from sluice.plugins.base import BaseProcessor
from sluice.plugins.hookspecs import PROJECT_NAME, SluiceProcessorSpec

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PluginSpec:
    """Registration record for a processor class."""

    name: str
    version: str
    determinism: Determinism
    outputs: frozenset[str]
    description: str

    @classmethod
    def from_plugin(cls, plugin_cls: type[BaseProcessor]) -> "PluginSpec":
        from sluice.plugins.discovery import get_plugin_description

        return cls(
            name=plugin_cls.name,
            version=plugin_cls.plugin_version,
            determinism=plugin_cls.determinism,
            outputs=plugin_cls.relationships,
            description=get_plugin_description(plugin_cls),
        )


class PluginManager:
    """Manages processor discovery, registration, and lookup.

    Usage:
        manager = PluginManager()
        manager.register_builtin_plugins()

        processor = manager.create_processor("batch_gate", {"batch_size": 10})
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(SluiceProcessorSpec)

        # Name -> class, rebuilt on every registration
        self._processors: dict[str, type[BaseProcessor]] = {}

    def register_builtin_plugins(self) -> None:
        """Discover and register the processors shipped with sluice.

        Call this once at startup.
        """
        from sluice.plugins.discovery import create_dynamic_hookimpl, discover_all_plugins

        discovered = discover_all_plugins()
        self.register(create_dynamic_hookimpl(discovered["processors"], "sluice_get_processors"))

    def register(self, plugin: Any) -> None:
        """Register an object implementing sluice hooks.

        Raises:
            ValueError: A processor name is already registered
        """
        self._pm.register(plugin)
        try:
            self._refresh_caches()
        except ValueError:
            self._pm.unregister(plugin)
            raise

    def _refresh_caches(self) -> None:
        new_processors: dict[str, type[BaseProcessor]] = {}
        for processors in self._pm.hook.sluice_get_processors():
            for cls in processors:
                name = cls.name
                if name in new_processors:
                    raise ValueError(f"Duplicate processor plugin name: '{name}'. Already registered by {new_processors[name].__name__}")
                new_processors[name] = cls

        self._processors = new_processors

    # === Lookup ===

    def get_processors(self) -> list[type[BaseProcessor]]:
        """Get all registered processor classes."""
        return list(self._processors.values())

    def get_processor_by_name(self, name: str) -> type[BaseProcessor] | None:
        return self._processors.get(name)

    def get_specs(self) -> list[PluginSpec]:
        return [PluginSpec.from_plugin(cls) for cls in sorted(self._processors.values(), key=lambda c: c.name)]

    # === Construction ===

    def create_processor(self, name: str, options: dict[str, Any] | None = None) -> BaseProcessor:
        """Instantiate a registered processor.

        Raises:
            ValueError: Unknown processor name
            PluginConfigError: Options rejected by the processor
        """
        cls = self._processors.get(name)
        if cls is None:
            available = ", ".join(sorted(self._processors)) or "(none)"
            raise ValueError(f"Unknown processor plugin '{name}'. Available: {available}")

        processor = cls(dict(options or {}))
        logger.debug("processor_created", plugin=name, version=cls.plugin_version)
        return processor
