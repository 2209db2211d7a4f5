# src/sluice/plugins/__init__.py
"""Processor plugin system via pluggy.

- Base class: BaseProcessor with lifecycle hooks
- Context: PluginContext (run metadata, yield signal)
- Protocols: ProcessSession, the host surface processors run against
- Config: PluginConfig / BatchConfig pydantic bases
- Manager: discovery, registration and construction
- Hookspecs: pluggy hook definitions
"""

from sluice.contracts import Determinism
from sluice.plugins.base import BaseProcessor

# Config base classes
from sluice.plugins.config_base import BatchConfig, PluginConfig, PluginConfigError

# Context
from sluice.plugins.context import PluginContext

# Hookspecs
from sluice.plugins.hookspecs import hookimpl, hookspec

# Manager
from sluice.plugins.manager import PluginManager, PluginSpec

# Protocols
from sluice.plugins.protocols import ProcessSession

__all__ = [
    # Base
    "BaseProcessor",
    "Determinism",
    # Config
    "BatchConfig",
    "PluginConfig",
    "PluginConfigError",
    # Context
    "PluginContext",
    # Hookspecs
    "hookimpl",
    "hookspec",
    # Manager
    "PluginManager",
    "PluginSpec",
    # Protocols
    "ProcessSession",
]
