"""Configuration for Docmost Clipper.

Loads config.yaml with HTTP, browser and extraction settings.

Example config.yaml:

    log_level: DEBUG
    request_timeout: 60
    headless: true
    cdp_port: 9222
    favor_precision: true
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from docmost_clipper.errors import ConfigError
from docmost_clipper.paths import get_effective_cwd, get_global_dir, get_project_dir

CONFIG_ENV = "DOCMOST_CLIPPER_CONFIG"
CONFIG_FILE_NAME = "config.yaml"


class ClipperConfig(BaseModel):
    """Configuration for Docmost Clipper."""

    # Persistence
    state_file: str | None = Field(
        default=None,
        description="Key-value state file (default: ~/.docmost-clipper/state.yaml)",
    )
    cookie_file: str | None = Field(
        default=None,
        description="Session cookie jar (default: ~/.docmost-clipper/cookies.yaml)",
    )

    # Logging
    log_level: str = Field(default="WARNING", description="Loguru level for stderr")
    log_file: str | None = Field(default=None, description="Optional log file path")

    # HTTP settings
    request_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Request timeout in seconds (None waits indefinitely)",
    )
    user_agent: str = Field(
        default="DocmostClipper/1.0", description="User-Agent sent to the server"
    )

    # Browser settings
    headless: bool = Field(default=True, description="Run launched browser headless")
    cdp_port: int = Field(
        default=9222,
        ge=1,
        le=65535,
        description="CDP port for attaching to an existing browser",
    )
    browser_args: list[str] = Field(
        default_factory=lambda: ["--no-sandbox", "--disable-setuid-sandbox"],
        description="Additional browser launch arguments",
    )

    # Extraction settings
    favor_precision: bool = Field(default=False, description="Prefer precision")
    favor_recall: bool = Field(default=False, description="Prefer recall")
    include_images: bool = Field(default=True, description="Keep images in articles")
    include_tables: bool = Field(default=True, description="Keep tables in articles")

    def get_state_path(self) -> Path:
        """Get resolved path for the key-value state file."""
        if self.state_file:
            return Path(self.state_file).expanduser().resolve()
        return get_global_dir() / "state.yaml"

    def get_cookie_path(self) -> Path:
        """Get resolved path for the cookie jar."""
        if self.cookie_file:
            return Path(self.cookie_file).expanduser().resolve()
        return get_global_dir() / "cookies.yaml"


def _find_config_path() -> Path | None:
    env_config = os.getenv(CONFIG_ENV)
    if env_config:
        return Path(env_config)

    project_dir = get_project_dir(get_effective_cwd())
    if project_dir is not None and (project_dir / CONFIG_FILE_NAME).exists():
        return project_dir / CONFIG_FILE_NAME

    global_config = get_global_dir() / CONFIG_FILE_NAME
    if global_config.exists():
        return global_config
    return None


def load_config(config_path: Path | str | None = None) -> ClipperConfig:
    """Load configuration from YAML file.

    Resolution order (when config_path is None):
    1. DOCMOST_CLIPPER_CONFIG env var
    2. cwd/.docmost-clipper/config.yaml
    3. ~/.docmost-clipper/config.yaml
    4. Built-in defaults

    Args:
        config_path: Path to config file (overrides resolution)

    Returns:
        Validated ClipperConfig

    Raises:
        ConfigError: If the file is unreadable or fails validation
    """
    path = Path(config_path) if config_path is not None else _find_config_path()
    if path is None or not path.exists():
        return ClipperConfig()

    try:
        with path.open(encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Error reading {path}: {e}") from e

    if raw_data is None:
        raw_data = {}

    if not isinstance(raw_data, dict):
        raise ConfigError(
            f"Config file {path} must be a YAML mapping, not {type(raw_data).__name__}"
        )

    try:
        return ClipperConfig.model_validate(raw_data)
    except Exception as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e


# Global config instance
_config: ClipperConfig | None = None


def get_config(
    config_path: Path | str | None = None, reload: bool = False
) -> ClipperConfig:
    """Get or load the global configuration.

    Args:
        config_path: Path to config file (only used on first load)
        reload: Force reload configuration

    Returns:
        ClipperConfig instance
    """
    global _config

    if _config is None or reload:
        _config = load_config(config_path)

    return _config
