# tests/conftest.py
"""Shared test fixtures and helpers.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Callable, Iterable

import pytest
from hypothesis import Phase, Verbosity, settings

from sluice.engine import InMemorySession, MockClock
from sluice.plugins.context import PluginContext
from sluice.plugins.manager import PluginManager

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def mock_clock() -> MockClock:
    return MockClock(start=1000.0)


@pytest.fixture
def make_session(mock_clock: MockClock) -> Callable[..., InMemorySession]:
    """Build an InMemorySession on the shared mock clock."""

    def _make(relationships: Iterable[str] = ("success", "failure", "retry"), **kwargs: float) -> InMemorySession:
        return InMemorySession(relationships, clock=mock_clock, **kwargs)

    return _make


@pytest.fixture
def ctx() -> PluginContext:
    return PluginContext(run_id="test-run", node_id="node-1", plugin_name="test")


@pytest.fixture(scope="session")
def plugin_manager() -> PluginManager:
    manager = PluginManager()
    manager.register_builtin_plugins()
    return manager


# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
