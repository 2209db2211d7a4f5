"""Tests for the sluice CLI."""

from pathlib import Path

import httpx
import pytest
import respx
from typer.testing import CliRunner

from sluice import __version__
from sluice.cli import app

runner = CliRunner()

SETTINGS = """
processors:
  gate:
    plugin: batch_gate
    options:
      batch_size: 2
  writer:
    plugin: put_search_bulk_http
    options:
      url: http://search.test:9200
      index: "files-{{ attributes.env }}"
      id_attribute: filename
      operation: upsert
  broken:
    plugin: put_search_bulk_http
    options:
      url: http://search.test:9200
      index: logs
      operation: delete
"""


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(SETTINGS)
    return path


@pytest.fixture
def input_files(tmp_path: Path) -> list[Path]:
    files = []
    for i in range(3):
        path = tmp_path / f"doc{i}.json"
        path.write_text(f'{{"n": {i}}}')
        files.append(path)
    return files


class TestGlobalOptions:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_missing_env_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--env-file", str(tmp_path / "none.env"), "plugins", "list"])
        assert result.exit_code == 1


class TestPluginsList:
    def test_lists_processors_with_outputs(self) -> None:
        result = runner.invoke(app, ["--no-dotenv", "plugins", "list"])

        assert result.exit_code == 0
        assert "put_search_bulk_http" in result.stdout
        assert "route_on_bitmask" in result.stdout
        assert "batch_gate" in result.stdout
        assert "failure, retry, success" in result.stdout


class TestValidate:
    def test_reports_plugin_errors(self, settings_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(settings_file)])
        assert result.exit_code == 1

    def test_valid(self, tmp_path: Path) -> None:
        path = tmp_path / "ok.yaml"
        path.write_text("processors:\n  gate:\n    plugin: batch_gate\n")

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(path)])

        assert result.exit_code == 0
        assert "gate: batch_gate" in result.stdout

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(tmp_path / "missing.yaml")])
        assert result.exit_code == 1

    def test_unknown_plugin(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("processors:\n  x:\n    plugin: nope\n")

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(path)])

        assert result.exit_code == 1

    def test_rules_file(self, tmp_path: Path) -> None:
        (tmp_path / "rules.yaml").write_text("urgent: 1\naudited: 6\n")
        path = tmp_path / "flags.yaml"
        path.write_text(
            "processors:\n  flags:\n    plugin: route_on_bitmask\n"
            "    options:\n      attribute: flags\n      rules_file: rules.yaml\n"
        )

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(path)])

        assert result.exit_code == 0
        assert "flags: route_on_bitmask" in result.stdout

    def test_missing_rules_file(self, tmp_path: Path) -> None:
        path = tmp_path / "flags.yaml"
        path.write_text(
            "processors:\n  flags:\n    plugin: route_on_bitmask\n"
            "    options:\n      attribute: flags\n      rules_file: gone.yaml\n"
        )

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(path)])

        assert result.exit_code == 1


class TestRun:
    def test_gate_drains_files(self, settings_file: Path, input_files: list[Path]) -> None:
        args = ["--no-dotenv", "run", "-s", str(settings_file), "-p", "gate", *map(str, input_files)]

        result = runner.invoke(app, args)

        assert result.exit_code == 0, result.output
        assert "Processed 3 record(s) in 2 cycle(s)." in result.stdout
        assert "(removed): 3" in result.stdout

    @respx.mock
    def test_writer_uses_file_attributes(self, settings_file: Path, input_files: list[Path]) -> None:
        route = respx.put("http://search.test:9200/_bulk").mock(return_value=httpx.Response(200, json={"errors": False}))
        args = ["--no-dotenv", "run", "-s", str(settings_file), "-p", "writer", "--attr", "env=test", *map(str, input_files)]

        result = runner.invoke(app, args)

        assert result.exit_code == 0, result.output
        assert "success: 3" in result.stdout
        first_action = route.calls[0].request.content.decode().split("\n")[0]
        assert first_action == '{"update": {"_index": "files-test", "_id": "doc0.json"}}'

    def test_unknown_processor_key(self, settings_file: Path, input_files: list[Path]) -> None:
        result = runner.invoke(app, ["--no-dotenv", "run", "-s", str(settings_file), "-p", "nope", str(input_files[0])])
        assert result.exit_code == 1

    def test_bad_attr(self, settings_file: Path, input_files: list[Path]) -> None:
        args = ["--no-dotenv", "run", "-s", str(settings_file), "-p", "gate", "--attr", "novalue", str(input_files[0])]
        result = runner.invoke(app, args)
        assert result.exit_code == 1
