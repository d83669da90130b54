"""
Unit tests for CLI commands.
"""

from pathlib import Path

import yaml
from typer.testing import CliRunner

from chatbridge import __version__
from chatbridge.cli.app import app
from chatbridge.storage.paths import get_global_config_path


def write_config(data: dict) -> None:
    get_global_config_path().write_text(yaml.dump(data))


def test_version(cli_runner: CliRunner) -> None:
    """Test --version flag."""
    result = cli_runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_help(cli_runner: CliRunner) -> None:
    """Test --help flag."""
    result = cli_runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "chatbridge" in result.stdout
    for command in ("run", "config", "links", "nick"):
        assert command in result.stdout


class TestConfigCommands:
    """Tests for chatbridge config."""

    def test_path(self, cli_runner: CliRunner, chatbridge_home: Path) -> None:
        result = cli_runner.invoke(app, ["config", "path"])
        assert result.exit_code == 0
        assert "config.yaml" in result.stdout
        assert "not found" in result.stdout

    def test_show_masks_tokens(self, cli_runner: CliRunner, chatbridge_home: Path, sample_config) -> None:
        write_config(sample_config)

        result = cli_runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "syt_secret" not in result.stdout
        assert "***" in result.stdout
        assert "example.org" in result.stdout

    def test_show_reveal(self, cli_runner: CliRunner, chatbridge_home: Path, sample_config) -> None:
        write_config(sample_config)
        result = cli_runner.invoke(app, ["config", "show", "matrix", "--reveal", "--json"])

        assert result.exit_code == 0
        assert "syt_secret" in result.stdout

    def test_show_missing_section(self, cli_runner: CliRunner, chatbridge_home: Path) -> None:
        result = cli_runner.invoke(app, ["config", "show", "irc"])
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_show_invalid_config(self, cli_runner: CliRunner, chatbridge_home: Path) -> None:
        get_global_config_path().write_text("- a\n- b\n")
        result = cli_runner.invoke(app, ["config", "show"])
        assert result.exit_code == 1
        assert "Configuration error" in result.stdout


class TestLinkCommands:
    """Tests for chatbridge links."""

    def test_list_empty(self, cli_runner: CliRunner, chatbridge_home: Path) -> None:
        result = cli_runner.invoke(app, ["links", "list"])
        assert result.exit_code == 0
        assert "No links configured" in result.stdout

    def test_set_get_and_list(self, cli_runner: CliRunner, chatbridge_home: Path) -> None:
        assert cli_runner.invoke(app, ["links", "set", "--", "-100123", "555"]).exit_code == 0
        assert cli_runner.invoke(app, ["links", "set", "--", "-100123", "666"]).exit_code == 0

        get_result = cli_runner.invoke(app, ["links", "get", "--", "-100123"])
        assert get_result.exit_code == 0
        assert "666" in get_result.stdout

        list_result = cli_runner.invoke(app, ["links", "list"])
        assert "-100123" in list_result.stdout
        assert "555" not in list_result.stdout

    def test_get_missing(self, cli_runner: CliRunner, chatbridge_home: Path) -> None:
        result = cli_runner.invoke(app, ["links", "get", "nope"])
        assert result.exit_code == 1
        assert "not linked" in result.stdout


class TestNickCommands:
    """Tests for chatbridge nick."""

    def test_set_then_get(self, cli_runner: CliRunner, chatbridge_home: Path) -> None:
        assert cli_runner.invoke(app, ["nick", "set", "c1", "u1", "Bob"]).exit_code == 0
        assert cli_runner.invoke(app, ["nick", "set", "c1", "u1", "Bobby"]).exit_code == 0

        result = cli_runner.invoke(app, ["nick", "get", "c1", "u1"])

        assert result.exit_code == 0
        assert "Bobby" in result.stdout

    def test_get_missing(self, cli_runner: CliRunner, chatbridge_home: Path) -> None:
        result = cli_runner.invoke(app, ["nick", "get", "c1", "u9"])
        assert result.exit_code == 1
        assert "No nickname" in result.stdout


class TestRunCommand:
    """Tests for chatbridge run argument handling."""

    def test_unknown_platform(self, cli_runner: CliRunner, chatbridge_home: Path) -> None:
        result = cli_runner.invoke(app, ["run", "--platform", "irc"])
        assert result.exit_code == 1
        assert "Unknown platform" in result.stdout

    def test_nothing_enabled(self, cli_runner: CliRunner, chatbridge_home: Path) -> None:
        result = cli_runner.invoke(app, ["run"])
        assert result.exit_code == 1
        assert "No platforms enabled" in result.stdout
