"""Path resolution for Docmost Clipper global and project directories.

Two-tier directory structure:
- Global: ~/.docmost-clipper/ - user-wide config, persisted state, cookies
- Project: .docmost-clipper/ - project-specific config override

Directories are created lazily on first write, not on install.
"""

from __future__ import annotations

import os
from importlib import resources
from pathlib import Path

# Directory names
GLOBAL_DIR_NAME = ".docmost-clipper"
PROJECT_DIR_NAME = ".docmost-clipper"

# Env overrides
HOME_ENV = "DOCMOST_CLIPPER_HOME"
CWD_ENV = "DOCMOST_CLIPPER_CWD"


def get_effective_cwd() -> Path:
    """Get the effective working directory.

    Returns DOCMOST_CLIPPER_CWD if set, else Path.cwd().

    Returns:
        Resolved Path for working directory
    """
    env_cwd = os.getenv(CWD_ENV)
    if env_cwd:
        return Path(env_cwd).resolve()
    return Path.cwd()


def get_global_dir() -> Path:
    """Get the global directory path.

    DOCMOST_CLIPPER_HOME overrides the default location, which keeps
    tests and throwaway profiles away from the user's real state.

    Returns:
        Path to ~/.docmost-clipper/ (not necessarily existing)
    """
    env_home = os.getenv(HOME_ENV)
    if env_home:
        return Path(env_home).expanduser()
    return Path.home() / GLOBAL_DIR_NAME


def get_project_dir(start: Path | None = None) -> Path | None:
    """Get the project directory.

    Returns cwd/.docmost-clipper if it exists, else None. No tree-walking.

    Args:
        start: Starting directory (default: get_effective_cwd())

    Returns:
        Path to .docmost-clipper/ if found, None otherwise
    """
    cwd = start or get_effective_cwd()
    candidate = cwd / PROJECT_DIR_NAME
    if candidate.is_dir():
        return candidate
    return None


def get_agent_script() -> str:
    """Load the in-page capture script shipped with the package."""
    script = resources.files("docmost_clipper").joinpath("agent.js")
    try:
        return script.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError) as e:
        raise FileNotFoundError(
            f"Capture script not found: {script}. "
            "Ensure docmost-clipper is properly installed."
        ) from e
