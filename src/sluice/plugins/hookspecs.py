# src/sluice/plugins/hookspecs.py
"""pluggy hook specifications for sluice processors.

Plugins implement these hooks to register themselves with the framework.
The plugin manager calls these hooks during discovery.

Usage (shipping processors from another package):
    from sluice.plugins.hookspecs import hookimpl

    class MyProcessors:
        @hookimpl  # NOT @hookspec - that's for defining specs
        def sluice_get_processors(self):
            return [MyProcessor]
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from sluice.plugins.base import BaseProcessor

# Project name for pluggy
PROJECT_NAME = "sluice"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class SluiceProcessorSpec:
    """Hook specifications for processor plugins."""

    @hookspec
    def sluice_get_processors(self) -> list[type["BaseProcessor"]]:  # type: ignore[empty-body]
        """Return processor plugin classes.

        Returns:
            List of processor classes (not instances)
        """
