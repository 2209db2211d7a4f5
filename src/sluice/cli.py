# src/sluice/cli.py
"""Sluice Command Line Interface.

Entry point for the sluice CLI tool.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from sluice import __version__
from sluice.core.config import OptionFileError, SluiceSettings, load_settings

if TYPE_CHECKING:
    from sluice.plugins.base import BaseProcessor
    from sluice.plugins.manager import PluginManager

__all__ = [
    "app",
]

# Module-level singleton for plugin manager
_plugin_manager_cache: PluginManager | None = None


def _get_plugin_manager() -> PluginManager:
    """Get initialized plugin manager (singleton)."""
    global _plugin_manager_cache

    from sluice.plugins.manager import PluginManager

    if _plugin_manager_cache is None:
        manager = PluginManager()
        manager.register_builtin_plugins()
        _plugin_manager_cache = manager
    return _plugin_manager_cache


app = typer.Typer(
    name="sluice",
    help="Sluice: flow processors for search indexing and attribute routing.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"sluice version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)  # Don't override existing env vars


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """Sluice: flow processors for search indexing and attribute routing."""
    from sluice.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho("Warning: --env-file ignored because --no-dotenv is set.", fg=typer.colors.YELLOW, err=True)


def _format_validation_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted validation error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    console.print(Panel(content, title=f"[red bold]{title}[/]", border_style="red"))


def _load_settings_or_exit(settings: str) -> SluiceSettings:
    settings_path = Path(settings).expanduser()
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        _format_validation_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if getattr(e, "problem", None) else None,
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except OptionFileError as e:
        _format_validation_error(
            title="Referenced File Error",
            message=str(e),
            hint="script_file and rules_file paths are relative to the settings file.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        details = [f"{'.'.join(str(x) for x in error['loc'])}: {error['msg']}" for error in e.errors()]
        _format_validation_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=details,
            hint="Check field names, types, and required values.",
        )
        raise typer.Exit(1) from None


def _create_processor_or_exit(key: str, config: SluiceSettings) -> BaseProcessor:
    from sluice.plugins.config_base import PluginConfigError

    entry = config.processors.get(key)
    if entry is None:
        available = ", ".join(sorted(config.processors)) or "(none)"
        _format_validation_error(
            title="Unknown Processor",
            message=f"No processor '{key}' in settings",
            hint=f"Configured processors: {available}",
        )
        raise typer.Exit(1)

    try:
        processor = _get_plugin_manager().create_processor(entry.plugin, dict(entry.options))
    except PluginConfigError as e:
        _format_validation_error(
            title="Plugin Configuration Error",
            message=f"{key}: {e}",
            hint="Check plugin options match the plugin's requirements.",
        )
        raise typer.Exit(1) from None
    except ValueError as e:
        _format_validation_error(title="Unknown Plugin", message=f"{key}: {e}")
        raise typer.Exit(1) from None

    processor.node_id = key
    return processor


@app.command()
def validate(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Validate settings and construct every configured processor."""
    config = _load_settings_or_exit(settings)

    for key in config.processors:
        processor = _create_processor_or_exit(key, config)
        processor.close()

    typer.echo("Configuration valid.")
    for key, entry in config.processors.items():
        typer.echo(f"  {key}: {entry.plugin}")


def _parse_attributes(values: list[str]) -> dict[str, str]:
    attributes: dict[str, str] = {}
    for item in values:
        name, sep, value = item.partition("=")
        if not sep or not name:
            typer.echo(f"Error: --attr expects NAME=VALUE, got {item!r}", err=True)
            raise typer.Exit(1)
        attributes[name] = value
    return attributes


@app.command()
def run(
    files: list[Path] = typer.Argument(..., help="Files to load as records.", exists=True, dir_okay=False),
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    processor_key: str = typer.Option(
        ...,
        "--processor",
        "-p",
        help="Key of the processor to run, as named under 'processors'.",
    ),
    attr: list[str] = typer.Option(
        [],
        "--attr",
        "-a",
        help="Attribute added to every record (NAME=VALUE). Repeatable.",
    ),
    max_cycles: int = typer.Option(
        10_000,
        "--max-cycles",
        min=1,
        help="Stop after this many cycles even if records remain.",
    ),
) -> None:
    """Run one processor over local files until its queue drains."""
    from sluice.core.logging import configure_logging
    from sluice.engine import ProcessorRunner

    config = _load_settings_or_exit(settings)
    configure_logging(json_output=config.logging.json_output, level=config.logging.level)
    extra = _parse_attributes(attr)
    processor = _create_processor_or_exit(processor_key, config)

    with ProcessorRunner(processor) as runner:
        for path in files:
            runner.enqueue(path.read_bytes(), {"filename": path.name, "path": str(path.parent), **extra})

        reports = runner.run_until_empty(max_cycles=max_cycles)
        session = runner.session

    counts: Counter[str] = Counter()
    for name, records in session.transferred.items():
        counts[name] += len(records)

    typer.echo(f"Processed {sum(r.taken for r in reports)} record(s) in {len(reports)} cycle(s).")
    for name in sorted(counts):
        typer.echo(f"  {name}: {counts[name]}")
    if session.removed:
        typer.echo(f"  (removed): {len(session.removed)}")
    if not session.is_queue_empty():
        typer.echo(f"  (still queued): {session.queue_size}")

    errors = [r.error for r in reports if r.error is not None]
    if errors:
        typer.echo(f"Error during processing: {errors[0]}", err=True)
        raise typer.Exit(1)


# Plugins subcommand group
plugins_app = typer.Typer(help="Plugin management commands.")
app.add_typer(plugins_app, name="plugins")


@plugins_app.command("list")
def plugins_list() -> None:
    """List available processors."""
    specs = _get_plugin_manager().get_specs()
    typer.echo("\nPROCESSORS:")
    if not specs:
        typer.echo("  (none available)")
        return
    for spec in specs:
        outputs = ", ".join(sorted(spec.outputs)) or "-"
        typer.echo(f"  {spec.name:24} - {spec.description}")
        typer.echo(f"  {'':24}   outputs: {outputs}")


if __name__ == "__main__":
    app()
