"""Unit tests for the persisted state store and cookie jar."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from docmost_clipper.errors import ConfigError
from docmost_clipper.store import (
    LAST_SPACE_KEY,
    URL_KEY,
    CookieStore,
    StateStore,
    cookie_matches_host,
)


@pytest.fixture
def state_store(tmp_path: Path) -> StateStore:
    return StateStore(tmp_path / "state.yaml")


@pytest.fixture
def cookie_store(tmp_path: Path) -> CookieStore:
    return CookieStore(tmp_path / "cookies.yaml")


@pytest.mark.unit
@pytest.mark.core
class TestStateStore:
    """Key-value persistence."""

    def test_missing_file_is_empty(self, state_store: StateStore) -> None:
        assert state_store.load() == {}
        assert state_store.origin is None
        assert state_store.last_space_id is None
        assert state_store.theme == "auto"

    def test_set_and_get(self, state_store: StateStore) -> None:
        state_store.set(**{URL_KEY: "https://docs.example.com"})
        state_store.set(**{LAST_SPACE_KEY: "s1"})

        assert state_store.origin == "https://docs.example.com"
        assert state_store.last_space_id == "s1"

    def test_set_merges(self, state_store: StateStore) -> None:
        state_store.set(a=1)
        state_store.set(b=2)
        assert state_store.load() == {"a": 1, "b": 2}

    def test_theme_roundtrip(self, state_store: StateStore) -> None:
        state_store.set_theme("dark")
        assert state_store.theme == "dark"

    def test_unknown_theme_rejected(self, state_store: StateStore) -> None:
        with pytest.raises(ValueError, match="Unknown theme"):
            state_store.set_theme("neon")

    def test_corrupt_theme_falls_back(self, state_store: StateStore) -> None:
        state_store.set(theme="neon")
        assert state_store.theme == "auto"

    def test_non_mapping_file(self, state_store: StateStore) -> None:
        state_store.path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError):
            state_store.load()


@pytest.mark.unit
@pytest.mark.core
class TestCookieMatchesHost:
    """Host matching rules for stored cookies."""

    def _cookie(self, domain: str):
        jar = httpx.Cookies()
        jar.set("sid", "1", domain=domain)
        return next(iter(jar.jar))

    def test_exact_host(self) -> None:
        assert cookie_matches_host(self._cookie("docs.example.com"), "docs.example.com")

    def test_parent_domain(self) -> None:
        assert cookie_matches_host(self._cookie(".example.com"), "docs.example.com")

    def test_other_host(self) -> None:
        assert not cookie_matches_host(self._cookie("evil.com"), "docs.example.com")

    def test_suffix_is_not_subdomain(self) -> None:
        assert not cookie_matches_host(self._cookie("example.com"), "notexample.com")

    def test_dotless_local_host(self) -> None:
        assert cookie_matches_host(self._cookie("localhost.local"), "localhost")


@pytest.mark.unit
@pytest.mark.core
class TestCookieStore:
    """Cookie jar persistence."""

    def test_missing_file_is_empty(self, cookie_store: CookieStore) -> None:
        assert len(cookie_store.load().jar) == 0

    def test_save_and_load(self, cookie_store: CookieStore) -> None:
        jar = httpx.Cookies()
        jar.set("authToken", "abc", domain="docs.example.com")
        cookie_store.save(jar)

        loaded = cookie_store.load()

        assert loaded.get("authToken", domain="docs.example.com") == "abc"

    def test_clear_origin_only_drops_that_host(self, cookie_store: CookieStore) -> None:
        jar = httpx.Cookies()
        jar.set("authToken", "abc", domain="docs.example.com")
        jar.set("other", "keep", domain="elsewhere.org")
        cookie_store.save(jar)

        dropped = cookie_store.clear_origin("https://docs.example.com")

        assert dropped == 1
        names = {cookie.name for cookie in cookie_store.load().jar}
        assert names == {"other"}

    def test_malformed_file_is_ignored(self, cookie_store: CookieStore) -> None:
        cookie_store.path.write_text("just: a mapping\n")
        assert len(cookie_store.load().jar) == 0
