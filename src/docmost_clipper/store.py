"""Persistence that outlives one clipper session.

Two files under ~/.docmost-clipper/:
- state.yaml: the key-value schema (docmostUrl, lastSpaceId, theme)
- cookies.yaml: the session cookie jar, the equivalent of the browser's
  cookie store for the Docmost origin

Writes are read-modify-write without locking; last write wins.
"""

from __future__ import annotations

from http.cookiejar import Cookie
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import httpx
import yaml
from loguru import logger

from docmost_clipper.errors import ConfigError

URL_KEY = "docmostUrl"
LAST_SPACE_KEY = "lastSpaceId"
THEME_KEY = "theme"

THEMES = ("auto", "light", "dark")
DEFAULT_THEME = "auto"


def _read_yaml(path: Path) -> Any:
    if not path.exists():
        return None
    try:
        with path.open(encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Error reading {path}: {e}") from e


def _write_yaml(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)
    tmp_path.replace(path)


class StateStore:
    """Key-value store for the clipper's persisted settings."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, Any]:
        data = _read_yaml(self.path)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"State file {self.path} must be a YAML mapping")
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return self.load().get(key, default)

    def set(self, **values: Any) -> None:
        data = self.load()
        data.update(values)
        _write_yaml(self.path, data)

    @property
    def origin(self) -> str | None:
        return self.get(URL_KEY) or None

    @property
    def last_space_id(self) -> str | None:
        value = self.get(LAST_SPACE_KEY)
        return str(value) if value else None

    @property
    def theme(self) -> str:
        theme = self.get(THEME_KEY, DEFAULT_THEME)
        return theme if theme in THEMES else DEFAULT_THEME

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValueError(f"Unknown theme {theme!r}, expected one of {', '.join(THEMES)}")
        self.set(**{THEME_KEY: theme})


def cookie_matches_host(cookie: Cookie, host: str) -> bool:
    """Return True if the cookie would be sent to host."""
    domain = cookie.domain.lstrip(".").lower()
    host = host.lower()
    # http.cookiejar stores dotless hosts such as localhost as "localhost.local"
    if domain == f"{host}.local":
        return True
    return host == domain or host.endswith(f".{domain}")


def _cookie_to_dict(cookie: Cookie) -> dict[str, Any]:
    return {
        "name": cookie.name,
        "value": cookie.value,
        "domain": cookie.domain,
        "path": cookie.path,
        "secure": cookie.secure,
        "expires": cookie.expires,
        "port": cookie.port,
    }


def _cookie_from_dict(raw: dict[str, Any]) -> Cookie:
    domain = str(raw.get("domain") or "")
    path = str(raw.get("path") or "/")
    port = raw.get("port")
    return Cookie(
        version=0,
        name=str(raw["name"]),
        value=raw.get("value"),
        port=port,
        port_specified=port is not None,
        domain=domain,
        domain_specified=domain.startswith("."),
        domain_initial_dot=domain.startswith("."),
        path=path,
        path_specified=True,
        secure=bool(raw.get("secure")),
        expires=raw.get("expires"),
        discard=raw.get("expires") is None,
        comment=None,
        comment_url=None,
        rest={},
    )


class CookieStore:
    """Session cookie jar persisted between clipper sessions."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> httpx.Cookies:
        cookies = httpx.Cookies()
        raw = _read_yaml(self.path) or []
        if not isinstance(raw, list):
            logger.warning(f"Ignoring malformed cookie file {self.path}")
            return cookies
        for entry in raw:
            if isinstance(entry, dict) and entry.get("name"):
                cookies.jar.set_cookie(_cookie_from_dict(entry))
        cookies.jar.clear_expired_cookies()
        return cookies

    def save(self, cookies: httpx.Cookies) -> None:
        cookies.jar.clear_expired_cookies()
        _write_yaml(self.path, [_cookie_to_dict(cookie) for cookie in cookies.jar])

    def clear_origin(self, origin: str) -> int:
        """Forget every cookie sent to origin; return how many were dropped."""
        host = urlsplit(origin).hostname or ""
        cookies = self.load()
        doomed = [cookie for cookie in cookies.jar if cookie_matches_host(cookie, host)]
        for cookie in doomed:
            cookies.jar.clear(cookie.domain, cookie.path, cookie.name)
        self.save(cookies)
        return len(doomed)
