"""Integration tests for goapispec CLI commands.

These tests exercise the full CLI workflow against the sample petstore module.
"""

import json
from collections.abc import Callable
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from goapispec import __version__
from goapispec.cli import app
from tests.fixtures import PETSTORE_PATH

runner = CliRunner()


def parse_json_output(output: str) -> dict:
    """Parse the JSON document printed after any log lines."""
    return json.loads(output[output.index("{"):])


class TestGenerate:
    """Integration tests for `goapispec generate`."""

    @pytest.fixture
    def output_path(self, tmp_path: Path) -> Path:
        """Create temporary output path."""
        return tmp_path / "out" / "oas.json"

    def test_generate_writes_document(self, config_file: Path, output_path: Path) -> None:
        """Test that generate writes the petstore document."""
        result = runner.invoke(
            app,
            ["--config", str(config_file), "-q", "generate", "-m", str(PETSTORE_PATH), "-o", str(output_path)],
        )

        assert result.exit_code == 0, f"Command failed: {result.output}"
        assert output_path.exists()
        assert "OpenAPI document written to" in result.stdout
        data = json.loads(output_path.read_text())
        assert data["info"]["title"] == "Petstore API"
        assert "/pets" in data["paths"]

    def test_unwritable_output_fails(self, config_file: Path, tmp_path: Path) -> None:
        """Test that an output path under a regular file exits with status 1."""
        blocker = tmp_path / "blocker"
        blocker.write_text("")

        result = runner.invoke(
            app,
            ["--config", str(config_file), "-q", "generate", "-m", str(PETSTORE_PATH), "-o", str(blocker / "oas.json")],
        )

        assert result.exit_code == 1
        assert blocker.read_text() == ""

    def test_generate_yaml(self, config_file: Path, tmp_path: Path) -> None:
        """Test YAML output format."""
        output_path = tmp_path / "oas.yaml"
        result = runner.invoke(
            app,
            [
                "--config", str(config_file), "-q",
                "generate", "-m", str(PETSTORE_PATH), "-o", str(output_path), "-f", "yaml",
            ],
        )

        assert result.exit_code == 0, f"Command failed: {result.output}"
        data = yaml.safe_load(output_path.read_text())
        assert data["openapi"] == "3.0.0"

    def test_dry_run_prints_document(self, config_file: Path, output_path: Path) -> None:
        """Test that --dry-run prints the document and writes nothing."""
        result = runner.invoke(
            app,
            [
                "--config", str(config_file), "-q",
                "generate", "-m", str(PETSTORE_PATH), "-o", str(output_path), "--dry-run",
            ],
        )

        assert result.exit_code == 0, f"Command failed: {result.output}"
        assert not output_path.exists()
        data = parse_json_output(result.stdout)
        assert data["paths"]["/pets/{id}"]["get"]["operationId"] == "getPet"

    def test_unsupported_format(self, config_file: Path, output_path: Path) -> None:
        """Test that an unknown format exits with 1."""
        result = runner.invoke(
            app,
            ["--config", str(config_file), "generate", "-m", str(PETSTORE_PATH), "-f", "xml"],
        )

        assert result.exit_code == 1

    def test_failed_generation_writes_nothing(
        self, config_file: Path, output_path: Path, make_module: Callable[..., Path]
    ) -> None:
        """Test that a module without @Title fails and leaves no file behind."""
        root = make_module({"main.go": "// @Version 1\npackage main\n\nfunc main() {}\n"})

        result = runner.invoke(
            app,
            ["--config", str(config_file), "generate", "-m", str(root), "-o", str(output_path)],
        )

        assert result.exit_code == 1
        assert not output_path.exists()

    def test_nonexistent_module_fails(self, tmp_path: Path) -> None:
        """Test that a missing module directory is rejected."""
        result = runner.invoke(app, ["generate", "-m", str(tmp_path / "nope")])

        assert result.exit_code != 0


class TestCheck:
    """Integration tests for `goapispec check`."""

    def test_check_json_output(self, config_file: Path) -> None:
        """Test JSON output of the preflight checks."""
        result = runner.invoke(
            app, ["--config", str(config_file), "check", "--json", "-m", str(PETSTORE_PATH)]
        )

        assert result.exit_code == 0, f"Command failed: {result.output}"
        data = parse_json_output(result.stdout)
        assert data["success"] is True
        assert [c["name"] for c in data["checks"]] == ["tree-sitter", "go.mod", "module-cache", "goroot"]

    def test_check_missing_go_mod(self, config_file: Path, tmp_path: Path) -> None:
        """Test that a directory without go.mod fails the required check."""
        empty = tmp_path / "empty"
        empty.mkdir()

        result = runner.invoke(app, ["--config", str(config_file), "check", "-m", str(empty)])

        assert result.exit_code == 1
        assert "Preflight check FAILED" in result.stdout

    def test_check_human_output(self, config_file: Path) -> None:
        """Test the human-readable listing."""
        result = runner.invoke(app, ["--config", str(config_file), "check", "-m", str(PETSTORE_PATH)])

        assert result.exit_code == 0, f"Command failed: {result.output}"
        assert "✅ go.mod" in result.stdout
        assert "All preflight checks passed" in result.stdout


class TestInit:
    """Integration tests for `goapispec init`."""

    def test_init_creates_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that init writes a loadable config file."""
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0, f"Command failed: {result.output}"
        config_file = tmp_path / ".goapispec" / "config.yaml"
        assert config_file.exists()
        assert "output" in yaml.safe_load(config_file.read_text())

    def test_init_force_overwrites(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that init refuses to overwrite without --force."""
        monkeypatch.chdir(tmp_path)
        runner.invoke(app, ["init"])

        result = runner.invoke(app, ["init"])
        assert result.exit_code == 1

        result = runner.invoke(app, ["init", "--force"])
        assert result.exit_code == 0


class TestGlobalOptions:
    """Tests for options handled by the app callback."""

    def test_version(self) -> None:
        """Test --version prints the version."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_missing_config_file(self, tmp_path: Path) -> None:
        """Test a nonexistent --config path is rejected."""
        result = runner.invoke(app, ["--config", str(tmp_path / "nope.yaml"), "check"])

        assert result.exit_code != 0
