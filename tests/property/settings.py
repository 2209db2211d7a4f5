"""Standardized Hypothesis settings tiers for property tests.

Import these instead of using inline @settings(max_examples=...).

Usage:
    from tests.property.settings import STANDARD_SETTINGS

    @given(values=st.lists(...))
    @STANDARD_SETTINGS
    def test_something(values):
        ...

Tiers:
- THOROUGH_SETTINGS: 300 examples - pairing/ordering guarantees
- STANDARD_SETTINGS: 100 examples - Regular property tests
- QUICK_SETTINGS: 20 examples - Fast validation tests (simple rejection)
"""

from hypothesis import HealthCheck, settings

# Pairing and ordering: a silent off-by-one misroutes records
THOROUGH_SETTINGS = settings(max_examples=300)

STANDARD_SETTINGS = settings(max_examples=100)

QUICK_SETTINGS = settings(max_examples=20)

# Tests that take fixtures (session-scoped manager, mock clock)
FIXTURE_SETTINGS = settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
