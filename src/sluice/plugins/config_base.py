"""Base classes for typed plugin configurations.

This module provides base classes that plugins inherit from to get:
- Strict validation (reject unknown fields)
- Factory methods with clear error messages
- Common validation patterns (batch sizes, dynamic property names)

Example usage:
    class GateConfig(BatchConfig):
        pass

    cfg = GateConfig.from_dict(config)
    size = cfg.batch_size  # Direct access, validated at construction
"""

from typing import Any, Self

from pydantic import BaseModel, Field, ValidationError


class PluginConfigError(Exception):
    """Raised when plugin configuration is invalid."""

    pass


class PluginConfig(BaseModel):
    """Base class for typed plugin configurations.

    All plugin configs should inherit from this class.
    """

    model_config = {"extra": "forbid"}  # Reject unknown fields

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> Self:
        """Create config from dict with clear error on validation failure.

        Args:
            config: Dictionary of configuration values.

        Returns:
            Validated configuration instance.

        Raises:
            PluginConfigError: If configuration is invalid.
        """
        if not isinstance(config, dict):
            raise PluginConfigError(f"Invalid configuration for {cls.__name__}: config must be a dict, got {type(config).__name__}.")

        try:
            return cls.model_validate(dict(config))
        except ValidationError as e:
            raise PluginConfigError(f"Invalid configuration for {cls.__name__}: {e}") from e
        except ValueError as e:
            raise PluginConfigError(f"Invalid configuration for {cls.__name__}: {e}") from e


class BatchConfig(PluginConfig):
    """Base config for processors that take several records per cycle."""

    batch_size: int = Field(
        default=100,
        ge=1,
        description="Maximum number of records taken from the session per cycle",
    )
