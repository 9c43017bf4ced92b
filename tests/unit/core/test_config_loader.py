"""Unit tests for config loader."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml


@pytest.mark.unit
@pytest.mark.core
def test_load_config_defaults() -> None:
    """Config loads with defaults when file missing."""
    from docmost_clipper.config import ClipperConfig

    config = ClipperConfig()

    assert config.log_level == "WARNING"
    assert config.request_timeout is None
    assert config.headless is True
    assert config.cdp_port == 9222
    assert config.include_images is True


@pytest.mark.unit
@pytest.mark.core
def test_load_config_from_yaml(tmp_path: Path) -> None:
    """Config loads from YAML file."""
    from docmost_clipper.config import load_config

    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        yaml.dump({"log_level": "DEBUG", "request_timeout": 15, "favor_precision": True})
    )

    config = load_config(config_path)

    assert config.log_level == "DEBUG"
    assert config.request_timeout == 15
    assert config.favor_precision is True


@pytest.mark.unit
@pytest.mark.core
def test_load_config_empty_file(tmp_path: Path) -> None:
    """An empty file yields defaults."""
    from docmost_clipper.config import load_config

    config_path = tmp_path / "config.yaml"
    config_path.write_text("")

    assert load_config(config_path).cdp_port == 9222


@pytest.mark.unit
@pytest.mark.core
def test_load_config_rejects_non_mapping(tmp_path: Path) -> None:
    """A YAML list is not a configuration."""
    from docmost_clipper.config import load_config
    from docmost_clipper.errors import ConfigError

    config_path = tmp_path / "config.yaml"
    config_path.write_text("- a\n- b\n")

    with pytest.raises(ConfigError, match="YAML mapping"):
        load_config(config_path)


@pytest.mark.unit
@pytest.mark.core
def test_load_config_rejects_invalid_values(tmp_path: Path) -> None:
    """Validation failures surface as ConfigError."""
    from docmost_clipper.config import load_config
    from docmost_clipper.errors import ConfigError

    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump({"cdp_port": 70000}))

    with pytest.raises(ConfigError, match="Invalid configuration"):
        load_config(config_path)


@pytest.mark.unit
@pytest.mark.core
def test_load_config_rejects_broken_yaml(tmp_path: Path) -> None:
    """Unparseable YAML surfaces as ConfigError."""
    from docmost_clipper.config import load_config
    from docmost_clipper.errors import ConfigError

    config_path = tmp_path / "config.yaml"
    config_path.write_text("log_level: [unclosed\n")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(config_path)


@pytest.mark.unit
@pytest.mark.core
def test_env_var_selects_config(tmp_path: Path) -> None:
    """DOCMOST_CLIPPER_CONFIG wins over project and global files."""
    from docmost_clipper.config import load_config

    config_path = tmp_path / "elsewhere.yaml"
    config_path.write_text(yaml.dump({"user_agent": "Tester/2"}))

    with patch.dict(os.environ, {"DOCMOST_CLIPPER_CONFIG": str(config_path)}):
        config = load_config()

    assert config.user_agent == "Tester/2"


@pytest.mark.unit
@pytest.mark.core
def test_project_config_found(tmp_path: Path) -> None:
    """cwd/.docmost-clipper/config.yaml is picked up."""
    from docmost_clipper.config import load_config

    project_dir = tmp_path / ".docmost-clipper"
    project_dir.mkdir()
    (project_dir / "config.yaml").write_text(yaml.dump({"headless": False}))

    with patch.dict(os.environ, {"DOCMOST_CLIPPER_CWD": str(tmp_path)}):
        os.environ.pop("DOCMOST_CLIPPER_CONFIG", None)
        config = load_config()

    assert config.headless is False


@pytest.mark.unit
@pytest.mark.core
def test_persistence_paths(tmp_path: Path) -> None:
    """State and cookie files default under the global dir, or follow config."""
    from docmost_clipper.config import ClipperConfig

    with patch.dict(os.environ, {"DOCMOST_CLIPPER_HOME": str(tmp_path)}):
        config = ClipperConfig()
        assert config.get_state_path() == tmp_path / "state.yaml"
        assert config.get_cookie_path() == tmp_path / "cookies.yaml"

    custom = ClipperConfig(state_file=str(tmp_path / "s.yaml"))
    assert custom.get_state_path() == (tmp_path / "s.yaml").resolve()
