"""Unit tests for the Playwright page channel, with a scripted page."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from docmost_clipper.bridge import GET_CONTENT_REQUEST, ContentBridge
from docmost_clipper.browser import AGENT_HANDLE, AGENT_READY_CHECK, PlaywrightPageChannel
from docmost_clipper.errors import BridgeError, ExtractionError
from docmost_clipper.extractor import Article
from docmost_clipper.paths import get_agent_script

CAPTURE = {
    "html": "<html><body><p>Body</p></body></html>",
    "title": "Live Title",
    "url": "https://example.com/post",
    "selection": "<b>picked</b><img src=x onerror=alert(1)>",
}


class FakePage:
    """Page whose evaluate() answers the three scripts the channel runs."""

    url = "https://example.com/post"

    def __init__(
        self,
        agent_loaded: bool = False,
        inject_works: bool = True,
        reply: Any = None,
    ) -> None:
        self.agent_loaded = agent_loaded
        self.inject_works = inject_works
        self.reply = reply if reply is not None else {"success": True, "data": CAPTURE}
        self.injections = 0
        self.handled: list[Any] = []

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        if expression == AGENT_READY_CHECK:
            return self.agent_loaded
        if expression == AGENT_HANDLE:
            self.handled.append(arg)
            return self.reply
        assert expression == get_agent_script()
        self.injections += 1
        self.agent_loaded = self.inject_works
        return None


class StubEngine:
    """Readability stand-in returning an article with a script in it."""

    def parse(self, html: str, url: str = "") -> Article | None:
        return Article(
            title="",
            content="<p>Body<script>alert(1)</script></p>",
            text_content="Body",
            excerpt="Body",
        )


def request(page: FakePage) -> Any:
    bridge = ContentBridge(PlaywrightPageChannel(page, StubEngine()))
    return asyncio.run(bridge.request_content())


@pytest.mark.unit
@pytest.mark.browse
class TestPlaywrightPageChannel:
    """Agent detection, injection and capture post-processing."""

    def test_agent_already_loaded(self) -> None:
        page = FakePage(agent_loaded=True)
        snapshot = request(page)

        assert page.injections == 0
        assert page.handled == [GET_CONTENT_REQUEST]
        assert snapshot.source_url == "https://example.com/post"

    def test_absent_agent_is_injected_then_asked_again(self) -> None:
        page = FakePage(agent_loaded=False)
        snapshot = request(page)

        assert page.injections == 1
        assert page.handled == [GET_CONTENT_REQUEST]
        assert snapshot.title == "Live Title"

    def test_capture_is_extracted_and_sanitized(self) -> None:
        snapshot = request(FakePage(agent_loaded=True))

        assert "<script>" not in snapshot.content_html
        assert "Body" in snapshot.content_html
        assert "<b>picked</b>" in snapshot.selection_html
        assert "onerror" not in snapshot.selection_html

    def test_agent_missing_after_injection(self) -> None:
        page = FakePage(agent_loaded=False, inject_works=False)

        with pytest.raises(BridgeError) as exc_info:
            request(page)

        assert exc_info.value.kind == BridgeError.UNREACHABLE
        assert page.injections == 1
        assert page.handled == []

    def test_agent_reports_failure(self) -> None:
        page = FakePage(agent_loaded=True, reply={"success": False, "error": "Could not parse page content"})

        with pytest.raises(ExtractionError, match="Could not parse page content"):
            request(page)

    def test_description_is_page_url(self) -> None:
        assert PlaywrightPageChannel(FakePage()).description == "https://example.com/post"
