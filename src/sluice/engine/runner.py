# src/sluice/engine/runner.py
"""Drive a single processor against an in-memory session.

The runner plays the host's scheduling role for one processor:
- on_scheduled() once before the first cycle
- one on_trigger() per cycle, followed by a session commit
- yield handling: a processor that requests a yield is not triggered
  again until yield_duration has passed on the runner's clock
- failure handling: if on_trigger() raises, every record still pending in
  that cycle is penalized and routed to "failure" (or rolled back to the
  queue when the processor declares no failure output)
- on_stopped() and close() on stop()
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from uuid import uuid4

import structlog

from sluice.contracts import Record
from sluice.core.logging import cycle_log_context
from sluice.engine.clock import DEFAULT_CLOCK, Clock
from sluice.engine.session import CycleStats, InMemorySession
from sluice.plugins.base import BaseProcessor
from sluice.plugins.context import PluginContext

logger = structlog.get_logger(__name__)

FAILURE_RELATIONSHIP = "failure"


@dataclass(frozen=True)
class CycleReport:
    """Outcome of one scheduling attempt."""

    cycle: int
    stats: CycleStats | None = None  # None when the cycle was skipped
    yielded: bool = False
    skipped: bool = False
    error: Exception | None = field(default=None, compare=False)

    @property
    def taken(self) -> int:
        return self.stats.taken if self.stats is not None else 0


class ProcessorRunner:
    """Schedules one processor against an InMemorySession.

    Example:
        runner = ProcessorRunner(BatchGate({"batch_size": 2}))
        runner.enqueue(b"a")
        runner.enqueue(b"b")
        runner.enqueue(b"c")
        runner.run()
        assert runner.session.queue_size == 1
        runner.stop()
    """

    def __init__(
        self,
        processor: BaseProcessor,
        *,
        session: InMemorySession | None = None,
        clock: Clock = DEFAULT_CLOCK,
        run_id: str | None = None,
        yield_duration: float = 1.0,
        penalty_duration: float = 30.0,
        raise_on_error: bool = False,
    ) -> None:
        self._processor = processor
        self._clock = clock
        self._session = session or InMemorySession(
            processor.get_relationships,
            clock=clock,
            penalty_duration=penalty_duration,
        )
        self._ctx = PluginContext(
            run_id=run_id or uuid4().hex,
            node_id=processor.node_id,
            plugin_name=processor.name,
        )
        self._yield_duration = yield_duration
        self._raise_on_error = raise_on_error

        self._scheduled = False
        self._stopped = False
        self._yield_until: float | None = None
        self._cycle = 0
        self._reports: list[CycleReport] = []

    @property
    def processor(self) -> BaseProcessor:
        return self._processor

    @property
    def session(self) -> InMemorySession:
        return self._session

    @property
    def context(self) -> PluginContext:
        return self._ctx

    @property
    def reports(self) -> list[CycleReport]:
        return list(self._reports)

    def enqueue(self, content: bytes | str, attributes: Mapping[str, str] | None = None) -> Record:
        return self._session.enqueue(content, attributes)

    def schedule(self) -> None:
        if self._stopped:
            raise RuntimeError(f"Processor '{self._processor.name}' has been stopped")
        if not self._scheduled:
            self._processor.on_scheduled(self._ctx)
            self._scheduled = True

    def is_yielding(self) -> bool:
        return self._yield_until is not None and self._clock.monotonic() < self._yield_until

    def run_cycle(self) -> CycleReport:
        """Trigger the processor once, unless it is yielding."""
        self.schedule()
        self._cycle += 1

        if self.is_yielding():
            report = CycleReport(cycle=self._cycle, skipped=True)
            self._reports.append(report)
            return report

        self._ctx.reset_cycle()
        error: Exception | None = None
        with cycle_log_context(run_id=self._ctx.run_id, node_id=self._ctx.node_id, plugin=self._processor.name, cycle=self._cycle):
            try:
                self._processor.on_trigger(self._ctx, self._session)
            except Exception as e:
                error = e
                self._handle_cycle_error(e)

        stats = self._session.commit()
        yielded = self._ctx.yield_requested
        if yielded:
            self._yield_until = self._clock.monotonic() + self._yield_duration

        report = CycleReport(cycle=self._cycle, stats=stats, yielded=yielded, error=error)
        self._reports.append(report)

        if error is not None and self._raise_on_error:
            raise error
        return report

    def run(self, iterations: int = 1) -> list[CycleReport]:
        return [self.run_cycle() for _ in range(iterations)]

    def run_until_empty(self, max_cycles: int = 10_000) -> list[CycleReport]:
        """Run until the queue drains.

        Also stops early when the processor yields, when a cycle takes no
        records (only penalized records remain), or after max_cycles.
        """
        reports: list[CycleReport] = []
        while not self._session.is_queue_empty() and len(reports) < max_cycles:
            report = self.run_cycle()
            reports.append(report)
            if report.skipped or report.yielded or report.taken == 0:
                break
        return reports

    def stop(self) -> None:
        """Call on_stopped() and close(). Safe to call more than once."""
        if self._stopped:
            return
        self._stopped = True
        try:
            if self._scheduled:
                self._processor.on_stopped(self._ctx)
        finally:
            self._processor.close()

    def __enter__(self) -> ProcessorRunner:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _handle_cycle_error(self, error: Exception) -> None:
        pending = self._session.unresolved()
        logger.error(
            "processor_cycle_failed",
            plugin=self._processor.name,
            cycle=self._cycle,
            pending=len(pending),
            error=str(error),
            error_type=type(error).__name__,
            exc_info=error,
        )
        if FAILURE_RELATIONSHIP in self._processor.get_relationships():
            self._session.fail_unresolved(FAILURE_RELATIONSHIP)
        else:
            self._session.rollback()
