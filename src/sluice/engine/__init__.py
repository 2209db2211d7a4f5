"""In-process host: a memory-backed session and a single-processor runner."""

from sluice.engine.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from sluice.engine.runner import CycleReport, ProcessorRunner
from sluice.engine.session import CycleStats, InMemorySession

__all__ = [
    "DEFAULT_CLOCK",
    "Clock",
    "CycleReport",
    "CycleStats",
    "InMemorySession",
    "MockClock",
    "ProcessorRunner",
    "SystemClock",
]
