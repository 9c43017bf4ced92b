"""Smoke tests for the docmost-clip CLI."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from docmost_clipper.cli import app

runner = CliRunner()


@pytest.fixture
def env(tmp_path: Path) -> dict[str, str]:
    """Keep config and state inside a throwaway home."""
    return {
        "DOCMOST_CLIPPER_HOME": str(tmp_path / "home"),
        "DOCMOST_CLIPPER_CWD": str(tmp_path),
        "DOCMOST_CLIPPER_CONFIG": str(tmp_path / "missing.yaml"),
    }


@pytest.mark.smoke
def test_help() -> None:
    """Verify --help lists the commands."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("connect", "clip", "spaces", "interactive"):
        assert command in result.stdout


@pytest.mark.smoke
def test_version() -> None:
    """Verify --version prints the program name."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "docmost-clip" in result.stdout


@pytest.mark.smoke
def test_theme_roundtrip(env: dict[str, str], tmp_path: Path) -> None:
    """Verify the theme is persisted in the state file."""
    result = runner.invoke(app, ["theme", "dark"], env=env)
    assert result.exit_code == 0
    assert (tmp_path / "home" / "state.yaml").exists()

    result = runner.invoke(app, ["theme"], env=env)
    assert result.exit_code == 0
    assert "dark" in result.stdout


@pytest.mark.smoke
def test_theme_rejects_unknown(env: dict[str, str]) -> None:
    result = runner.invoke(app, ["theme", "neon"], env=env)
    assert result.exit_code == 1


@pytest.mark.smoke
def test_status_without_server(env: dict[str, str]) -> None:
    """Verify status works offline when nothing is saved."""
    result = runner.invoke(app, ["status"], env=env)
    assert result.exit_code == 1
    assert "not set" in result.stdout


@pytest.mark.smoke
def test_connect_rejects_bad_url(env: dict[str, str]) -> None:
    """Verify URL validation happens before any request."""
    result = runner.invoke(
        app,
        ["connect", "ftp://docs.example.com", "--email", "me@example.com", "--password", "pw"],
        env=env,
    )
    assert result.exit_code == 1
    assert "https://" in result.stdout


@pytest.mark.smoke
def test_spaces_requires_connection(env: dict[str, str]) -> None:
    result = runner.invoke(app, ["spaces"], env=env)
    assert result.exit_code == 1
    assert "connect" in result.stdout
