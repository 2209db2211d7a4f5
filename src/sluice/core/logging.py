"""Structured logging for processor runs.

Sluice logs are the operator's record of where each record went and why:
exclusions before a bulk request, per-item backend failures, bitmask
decisions and cycle summaries. Events are key-value (structlog), and
every event emitted while a processor cycle runs carries the cycle's
run_id, node_id, plugin and cycle number, bound by cycle_log_context().

Both structlog and stdlib logging are routed through one
ProcessorFormatter, so discovery (stdlib) and the processors (structlog)
render identically as console text or JSON lines on stderr.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

# Per-request chatter from the HTTP stack; the client logs its own summary
_NOISY_LOGGERS: tuple[str, ...] = (
    "httpx",
    "httpcore",
    "httpcore.connection",
    "httpcore.http11",
)


def _remove_internal_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Drop ProcessorFormatter bookkeeping (_record, _from_structlog)."""
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
) -> None:
    """Configure structlog and stdlib logging.

    Args:
        json_output: Emit one JSON object per line instead of console text.
        level: Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    log_level = getattr(logging, level.upper())

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        final_processors: list[Any] = [
            _remove_internal_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final_processors = [
            _remove_internal_fields,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfiguration in tests needs fresh loggers
        cache_logger_on_first_use=False,
    )

    # stdout belongs to `sluice run` summaries
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ProcessorFormatter(processors=final_processors, foreign_pre_chain=shared_processors))

    root = logging.getLogger()
    root.handlers = []
    root.addHandler(handler)
    root.setLevel(log_level)

    noisy_level = max(log_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(noisy_level)


@contextmanager
def cycle_log_context(*, run_id: str, node_id: str | None, plugin: str, cycle: int) -> Iterator[None]:
    """Bind processor-cycle identity to every event logged inside the block.

    Bindings live in structlog contextvars and are restored on exit, so
    nested or consecutive cycles never leak identity into each other.
    """
    with structlog.contextvars.bound_contextvars(run_id=run_id, node_id=node_id, plugin=plugin, cycle=cycle):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
