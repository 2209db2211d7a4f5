"""Dynamic processor discovery by folder scanning.

Scans the processors package for classes that:
1. Inherit from BaseProcessor
2. Have a non-empty `name` class attribute
3. Are not abstract
"""

import importlib
import inspect
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Files that should never be scanned for plugins
EXCLUDED_FILES: frozenset[str] = frozenset(
    {
        "__init__.py",
    }
)

PROCESSORS_PACKAGE = "sluice.plugins.processors"


def discover_processors_in_package(package: str, base_class: type) -> list[type]:
    """Discover processor classes in a package directory (non-recursive).

    Modules are imported under their real dotted names, so the classes
    returned are the same objects a regular import yields.

    Args:
        package: Dotted name of the package to scan
        base_class: Base class that processors must inherit from

    Returns:
        List of discovered processor classes
    """
    pkg = importlib.import_module(package)
    directory = Path(pkg.__file__).parent if pkg.__file__ else None
    if directory is None or not directory.exists():
        logger.warning("Processor package has no directory: %s", package)
        return []

    discovered: list[type] = []
    for py_file in sorted(directory.glob("*.py")):
        if py_file.name in EXCLUDED_FILES:
            continue

        # Processor modules ship with the package.
        # Import errors are bugs - let them propagate.
        module = importlib.import_module(f"{package}.{py_file.stem}")
        discovered.extend(_discover_in_module(module, base_class))

    return discovered


def _discover_in_module(module: Any, base_class: type) -> list[type]:
    discovered: list[type] = []
    for name, obj in inspect.getmembers(module, inspect.isclass):
        # Must be defined in this module (not imported)
        if obj.__module__ != module.__name__:
            continue

        if not issubclass(obj, base_class) or obj is base_class:
            continue

        if inspect.isabstract(obj):
            continue

        plugin_name = getattr(obj, "name", None)
        if not plugin_name:
            logger.warning(
                "Class %s in %s inherits from %s but has no/empty 'name' attribute - skipping",
                name,
                module.__name__,
                base_class.__name__,
            )
            continue

        discovered.append(obj)

    return discovered


def discover_all_plugins() -> dict[str, list[type]]:
    """Discover all built-in processors.

    Returns:
        {"processors": [PutSearchBulkHTTP, RouteOnBitMask, ...]}

    Raises:
        ValueError: Two processors share a name
    """
    from sluice.plugins.base import BaseProcessor

    processors: list[type] = []
    seen: dict[str, type] = {}
    for cls in discover_processors_in_package(PROCESSORS_PACKAGE, BaseProcessor):
        cls_name: str = cls.name  # type: ignore[attr-defined]
        if cls_name in seen:
            raise ValueError(
                f"Duplicate processor plugin name '{cls_name}': "
                f"found in both {seen[cls_name].__module__} and {cls.__module__}. "
                f"Plugin names must be unique."
            )
        seen[cls_name] = cls
        processors.append(cls)

    return {"processors": processors}


def get_plugin_description(plugin_cls: type) -> str:
    """First non-empty docstring line, or "<name> plugin"."""
    if plugin_cls.__doc__:
        for line in plugin_cls.__doc__.strip().split("\n"):
            cleaned = line.strip()
            if cleaned:
                return cleaned

    name = getattr(plugin_cls, "name", plugin_cls.__name__)
    return f"{name} plugin"


def create_dynamic_hookimpl(plugin_classes: list[type], hook_method_name: str) -> object:
    """Create a pluggy hookimpl object returning plugin_classes.

    Args:
        plugin_classes: Processor classes to register
        hook_method_name: Name of the hook method (e.g. "sluice_get_processors")

    Returns:
        Object instance with the decorated hook method
    """
    from sluice.plugins.hookspecs import hookimpl

    class DynamicHookImpl:
        """Dynamically generated hook implementer."""

    def hook_method(self: Any) -> list[type]:
        return plugin_classes

    setattr(DynamicHookImpl, hook_method_name, hookimpl(hook_method))
    return DynamicHookImpl()
