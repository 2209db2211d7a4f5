"""Tests for clock implementations."""

import pytest

from sluice.engine.clock import DEFAULT_CLOCK, MockClock, SystemClock


class TestMockClock:
    def test_starts_at_given_time(self) -> None:
        assert MockClock(start=5.0).monotonic() == 5.0

    def test_advance(self) -> None:
        clock = MockClock()
        clock.advance(1.5)
        clock.advance(0.5)
        assert clock.monotonic() == 2.0

    def test_negative_advance_rejected(self) -> None:
        with pytest.raises(ValueError, match="negative"):
            MockClock().advance(-1)


class TestSystemClock:
    def test_monotonic_never_decreases(self) -> None:
        clock = SystemClock()
        first = clock.monotonic()
        assert clock.monotonic() >= first

    def test_default_is_system_clock(self) -> None:
        assert isinstance(DEFAULT_CLOCK, SystemClock)
