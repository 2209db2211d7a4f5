# src/sluice/core/config.py
"""
Settings schema and loading for Sluice.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.

Example settings.yaml:

    logging:
      level: INFO
      json_output: false

    processors:
      search_writer:
        plugin: put_search_bulk_http
        options:
          url: ${SEARCH_URL:-http://localhost:9200}
          index: "logs-{{ attributes.env }}"
          id_attribute: doc.id
      flags:
        plugin: route_on_bitmask
        options:
          attribute: flags
          rules: {urgent: 1, audited: 6}
"""

import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator

# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


class LoggingSettings(BaseModel):
    """Logging output settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = False

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


class ProcessorSettings(BaseModel):
    """One configured processor instance.

    options are passed verbatim to the plugin, which validates them with
    its own config model. Settings validation only checks the shape.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    plugin: str = Field(description="Registered processor plugin name")
    options: dict[str, Any] = Field(default_factory=dict)

    @field_validator("plugin")
    @classmethod
    def _plugin_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("plugin name cannot be empty")
        return v.strip()


class SluiceSettings(BaseModel):
    """Top-level settings file."""

    model_config = {"frozen": True, "extra": "forbid"}

    processors: dict[str, ProcessorSettings] = Field(default_factory=dict)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("processors")
    @classmethod
    def _keys_are_names(cls, v: dict[str, ProcessorSettings]) -> dict[str, ProcessorSettings]:
        for key in v:
            if not key.strip():
                raise ValueError("processor keys cannot be empty")
        return v


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2)  # None if no default specified
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            # No env var and no default - keep original (will likely cause error)
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


class OptionFileError(Exception):
    """Error loading a file referenced from processor options."""


def _resolve_relative(file_ref: str, settings_path: Path) -> Path:
    path = Path(file_ref)
    if not path.is_absolute():
        path = (settings_path.parent / path).resolve()
    if not path.exists():
        raise OptionFileError(f"File not found: {path}")
    return path


def _expand_option_files(options: dict[str, Any], settings_path: Path) -> dict[str, Any]:
    """Inline script_file and rules_file references in processor options.

    Relative paths resolve against the settings file's directory.

    Raises:
        OptionFileError: If a file is missing, conflicts with its inline
            option, or holds invalid YAML
    """
    result = dict(options)

    if "script_file" in result:
        if "script" in result:
            raise OptionFileError("Cannot specify both 'script' and 'script_file'")
        script_path = _resolve_relative(result.pop("script_file"), settings_path)
        result["script"] = script_path.read_text(encoding="utf-8")

    if "rules_file" in result:
        if "rules" in result:
            raise OptionFileError("Cannot specify both 'rules' and 'rules_file'")
        rules_path = _resolve_relative(result.pop("rules_file"), settings_path)
        try:
            loaded = yaml.safe_load(rules_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise OptionFileError(f"Invalid YAML in rules file: {e}") from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise OptionFileError(f"Rules file must hold a mapping of rule name to mask: {rules_path}")
        result["rules"] = loaded

    return result


def _lower_keys(value: Any) -> Any:
    """Dynaconf upper-cases top-level keys only; nested keys keep their case."""
    if isinstance(value, dict):
        return {str(k).lower(): v for k, v in value.items()}
    return value


def _with_option_files(entry: Any, settings_path: Path) -> Any:
    if isinstance(entry, dict) and isinstance(entry.get("options"), dict):
        return {**entry, "options": _expand_option_files(entry["options"], settings_path)}
    return entry


def load_settings(config_path: Path) -> SluiceSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (SLUICE_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: SLUICE_LOGGING__LEVEL for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated SluiceSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
        OptionFileError: If a script_file or rules_file reference is invalid
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="SLUICE",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    if "logging" in raw_config:
        raw_config["logging"] = _lower_keys(raw_config["logging"])

    raw_config = _expand_env_vars(raw_config)

    processors = raw_config.get("processors")
    if isinstance(processors, dict):
        raw_config["processors"] = {
            key: _with_option_files(entry, config_path) for key, entry in processors.items()
        }

    return SluiceSettings(**raw_config)
