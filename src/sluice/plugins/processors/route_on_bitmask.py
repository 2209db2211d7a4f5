# src/sluice/plugins/processors/route_on_bitmask.py
"""Route records by testing an integer attribute against named bit masks."""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import Field, field_validator

from sluice.contracts import BitmaskValueError, Determinism, Record, RoutingReason
from sluice.core.templates import AttributeTemplate, TemplateError
from sluice.plugins.base import BaseProcessor
from sluice.plugins.config_base import BatchConfig, PluginConfigError
from sluice.plugins.context import PluginContext
from sluice.plugins.protocols import ProcessSession
from sluice.plugins.routing import (
    FAILURE,
    RESERVED_RULE_NAMES,
    UNMATCHED,
    BitmaskRouter,
    BitmaskRuleRegistry,
    parse_mask,
)
from sluice.plugins.routing.bitmask import validate_rule_name

logger = structlog.get_logger(__name__)


class RouteOnBitMaskConfig(BatchConfig):
    """Configuration for the bitmask router.

    rules maps an output name to a mask. Masks are unsigned 64-bit
    integers, given as numbers or decimal strings.
    """

    attribute: str = Field(description="Name of the attribute holding the value (template)")
    flip_bit: bool = Field(default=False, description="Clear matched bits in the routed copies")
    rules: dict[str, int] = Field(default_factory=dict)

    @field_validator("attribute")
    @classmethod
    def _validate_attribute(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("attribute must not be blank")
        return v

    @field_validator("rules", mode="before")
    @classmethod
    def _validate_rules(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return v
        return {validate_rule_name(str(name)): parse_mask(mask) for name, mask in v.items()}


class RouteOnBitMask(BaseProcessor):
    """Fan records out to every rule whose mask is fully set in an attribute.

    Each matching rule receives its own copy of the record; the original is
    dropped. Records matching no rule go to 'unmatched' unchanged. Records
    whose attribute is missing or not an integer go to 'failure'.

    With flip_bit enabled, every copy carries the value with all matched
    bits cleared, so a downstream router can continue with the remainder.

    Rules can be added, changed or removed while the processor runs via
    on_property_modified(); each record is routed against one consistent
    rule set.
    """

    name = "route_on_bitmask"
    plugin_version = "1.0.0"
    determinism = Determinism.DETERMINISTIC
    relationships = RESERVED_RULE_NAMES

    def __init__(self, config: dict[str, Any]) -> None:
        super().__init__(config)
        cfg = RouteOnBitMaskConfig.from_dict(config)
        self._batch_size = cfg.batch_size
        try:
            self._attribute = AttributeTemplate(cfg.attribute)
        except TemplateError as e:
            raise PluginConfigError(f"Invalid configuration for {type(self).__name__}: {e}") from e
        self._router = BitmaskRouter(BitmaskRuleRegistry(cfg.rules), flip_bits=cfg.flip_bit)

    @property
    def router(self) -> BitmaskRouter:
        return self._router

    def get_relationships(self) -> frozenset[str]:
        return self._router.outputs()

    def on_property_modified(self, name: str, old_value: str | None, new_value: str | None) -> None:
        """Add, change or remove the rule called name.

        Raises:
            PluginConfigError: Reserved name or invalid mask
        """
        try:
            self._router.registry.update(name, old_value, new_value)
        except ValueError as e:
            raise PluginConfigError(f"Invalid rule '{name}': {e}") from e
        logger.info("bitmask_rule_modified", rule=name, old_value=old_value, new_value=new_value)

    def on_trigger(self, ctx: PluginContext, session: ProcessSession) -> None:
        for record in session.get(self._batch_size):
            self._route(record, session)

    def _route(self, record: Record, session: ProcessSession) -> None:
        try:
            attribute = self._attribute.render(record.attributes)
            decision = self._router.decide_raw(attribute, record.get(attribute))
        except TemplateError as e:
            self._fail(record, session, {"rule": FAILURE, "matched_value": None}, e)
            return
        except BitmaskValueError as e:
            self._fail(record, session, {"rule": FAILURE, "matched_value": e.value, "field": e.attribute}, e)
            return

        if not decision.is_match:
            unmatched: RoutingReason = {"rule": UNMATCHED, "matched_value": decision.value, "field": attribute}
            logger.debug("bitmask_unmatched", record_id=record.record_id, routing=unmatched)
            session.transfer(record, UNMATCHED)
            return

        updates = {attribute: str(decision.output_value)} if self._router.flip_bits else None
        for rule in decision.matched:
            routed = session.clone(record)
            if updates:
                routed = session.put_attributes(routed, updates)
            session.transfer(routed, rule)
        session.remove(record)

        logger.debug(
            "bitmask_routed",
            record_id=record.record_id,
            value=decision.value,
            rules=list(decision.matched),
            mask=decision.combined_mask,
        )

    def _fail(self, record: Record, session: ProcessSession, routing: RoutingReason, error: Exception) -> None:
        logger.warning("bitmask_value_invalid", record_id=record.record_id, routing=routing, error=str(error))
        session.transfer(record, FAILURE)
