"""Tests for the command-line interface"""

import pytest
from typer.testing import CliRunner

from lesson_offline import __version__
from lesson_offline.cli import app as cli_app

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "config" / "config.ini"
    monkeypatch.setattr(cli_app, "CONFIG_FILE", path)
    return path


@pytest.fixture
def initialized(config_file, tmp_path):
    result = runner.invoke(
        cli_app.app, ["init", "--data-dir", str(tmp_path / "lessons")]
    )
    assert result.exit_code == 0, result.output
    return config_file


def test_version():
    result = runner.invoke(cli_app.app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_init_writes_config(initialized, tmp_path):
    assert initialized.is_file()
    assert str(tmp_path / "lessons") in initialized.read_text(encoding="utf-8")


def test_list_empty(initialized):
    result = runner.invoke(cli_app.app, ["list"])

    assert result.exit_code == 0, result.output


def test_size_in_bytes(initialized):
    result = runner.invoke(cli_app.app, ["size", "--bytes"])

    assert result.exit_code == 0, result.output
    assert result.output.strip() == "0"


def test_delete_missing_video(initialized):
    result = runner.invoke(cli_app.app, ["delete", "42"])

    assert result.exit_code == 0, result.output
    assert "not downloaded" in result.output


def test_show_missing_video(initialized):
    result = runner.invoke(cli_app.app, ["show", "42"])

    assert result.exit_code == 1


def test_url_not_cached(initialized):
    result = runner.invoke(cli_app.app, ["url", "https://x/v1.mp4"])

    assert result.exit_code == 1
    assert "Not cached" in result.output


def test_clear_with_force(initialized):
    result = runner.invoke(cli_app.app, ["clear", "--force"])

    assert result.exit_code == 0, result.output
    assert "deleted" in result.output


def test_clear_declined(initialized):
    result = runner.invoke(cli_app.app, ["clear"], input="n\n")

    assert result.exit_code != 0
    assert "cancelled" in result.output
