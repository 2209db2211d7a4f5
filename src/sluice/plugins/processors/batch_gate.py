# src/sluice/plugins/processors/batch_gate.py
"""Discarding gate: takes records and drops them."""

from typing import Any

import structlog

from sluice.plugins.base import BaseProcessor
from sluice.plugins.config_base import BatchConfig
from sluice.plugins.context import PluginContext
from sluice.plugins.protocols import ProcessSession

logger = structlog.get_logger(__name__)


class BatchGateConfig(BatchConfig):
    """Configuration for the batch gate."""


class BatchGate(BaseProcessor):
    """Remove up to batch_size records per cycle.

    Has no outputs. Useful as a terminal step and for exercising batch
    intake in tests.
    """

    name = "batch_gate"
    plugin_version = "1.0.0"

    def __init__(self, config: dict[str, Any]) -> None:
        super().__init__(config)
        cfg = BatchGateConfig.from_dict(config)
        self._batch_size = cfg.batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def on_trigger(self, ctx: PluginContext, session: ProcessSession) -> None:
        records = session.get(self._batch_size)
        for record in records:
            session.remove(record)
        if records:
            logger.debug("batch_gate_discarded", node_id=self.node_id, count=len(records))
