"""Unit tests for the page bridge and its channels."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import httpx
import pytest

from docmost_clipper.bridge import (
    GET_CONTENT_REQUEST,
    ContentBridge,
    FilePageChannel,
    HttpPageChannel,
    NoReceiverError,
    StaticPageChannel,
    fetch_static_page,
    load_local_page,
)
from docmost_clipper.errors import BridgeError, ExtractionError
from docmost_clipper.extractor import Article

SNAPSHOT_DATA = {
    "title": "T",
    "content_html": "<p>c</p>",
    "text_content": "c",
    "excerpt": "c",
    "selection_html": "",
    "source_url": "https://x.test/",
}


class ScriptedChannel:
    """Channel whose send() replays a scripted sequence of outcomes."""

    description = "scripted"

    def __init__(self, *outcomes: Any, inject_error: Exception | None = None) -> None:
        self.outcomes = list(outcomes)
        self.sent: list[dict[str, Any]] = []
        self.injections = 0
        self.inject_error = inject_error

    async def send(self, message: dict[str, Any]) -> dict[str, Any] | None:
        self.sent.append(message)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def inject(self) -> None:
        self.injections += 1
        if self.inject_error is not None:
            raise self.inject_error


class EchoEngine:
    """Readability stand-in that wraps the page text in a paragraph."""

    def parse(self, html: str, url: str = "") -> Article | None:
        return Article(title="", content=f"<p>{len(html)}</p>", text_content="x", excerpt="x")


@pytest.mark.unit
@pytest.mark.browse
class TestContentBridge:
    """Inject-and-retry protocol."""

    def test_agent_present(self) -> None:
        channel = ScriptedChannel({"success": True, "data": SNAPSHOT_DATA})
        snapshot = asyncio.run(ContentBridge(channel).request_content())

        assert snapshot.title == "T"
        assert channel.injections == 0
        assert channel.sent == [GET_CONTENT_REQUEST]

    def test_injects_and_retries_once(self) -> None:
        channel = ScriptedChannel(NoReceiverError(), {"success": True, "data": SNAPSHOT_DATA})
        snapshot = asyncio.run(ContentBridge(channel).request_content())

        assert snapshot.content_html == "<p>c</p>"
        assert channel.injections == 1
        assert len(channel.sent) == 2

    def test_unreachable_after_injection(self) -> None:
        channel = ScriptedChannel(NoReceiverError(), NoReceiverError(), {"success": True, "data": {}})

        with pytest.raises(BridgeError) as exc_info:
            asyncio.run(ContentBridge(channel).request_content())

        assert exc_info.value.kind == BridgeError.UNREACHABLE
        assert "after injection" in str(exc_info.value)
        assert len(channel.sent) == 2

    def test_injection_failure(self) -> None:
        channel = ScriptedChannel(NoReceiverError(), inject_error=RuntimeError("page is chrome://"))

        with pytest.raises(BridgeError) as exc_info:
            asyncio.run(ContentBridge(channel).request_content())

        assert exc_info.value.kind == BridgeError.TRANSPORT
        assert len(channel.sent) == 1

    def test_transport_failure(self) -> None:
        channel = ScriptedChannel(RuntimeError("target closed"))

        with pytest.raises(BridgeError) as exc_info:
            asyncio.run(ContentBridge(channel).request_content())

        assert exc_info.value.kind == BridgeError.TRANSPORT
        assert channel.injections == 0

    def test_agent_reports_failure(self) -> None:
        channel = ScriptedChannel({"success": False, "error": "Could not parse page content"})

        with pytest.raises(ExtractionError, match="Could not parse page content"):
            asyncio.run(ContentBridge(channel).request_content())

    @pytest.mark.parametrize("response", [None, "text", {"success": True}, {"success": True, "data": []}])
    def test_malformed_response(self, response: Any) -> None:
        with pytest.raises(BridgeError):
            asyncio.run(ContentBridge(ScriptedChannel(response)).request_content())


@pytest.mark.unit
@pytest.mark.browse
class TestStaticChannels:
    """Channels over captured, fetched and local pages."""

    def test_static_without_document(self) -> None:
        with pytest.raises(BridgeError, match="No page captured"):
            asyncio.run(ContentBridge(StaticPageChannel(None)).request_content())

    def test_fetch_static_page(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["user-agent"] == "Tester/1"
            return httpx.Response(200, html="<html><head><title> Hi </title></head><body>x</body></html>")

        document = asyncio.run(
            fetch_static_page(
                "https://x.test/page",
                user_agent="Tester/1",
                transport=httpx.MockTransport(handler),
            )
        )

        assert document.title == "Hi"
        assert document.url == "https://x.test/page"
        assert document.selection_html == ""

    def test_fetch_http_error(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        with pytest.raises(BridgeError, match="HTTP 404"):
            asyncio.run(fetch_static_page("https://x.test/missing", transport=transport))

    def test_fetch_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(BridgeError, match="Failed to fetch"):
            asyncio.run(fetch_static_page("https://x.test/", transport=httpx.MockTransport(handler)))

    def test_http_channel_loads_lazily(self) -> None:
        calls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(str(request.url))
            return httpx.Response(200, html="<html><body><p>hello</p></body></html>")

        channel = HttpPageChannel("https://x.test/a", EchoEngine(), transport=httpx.MockTransport(handler))
        assert calls == []

        bridge = ContentBridge(channel)
        asyncio.run(bridge.request_content())
        asyncio.run(bridge.request_content())

        assert calls == ["https://x.test/a"]

    def test_load_local_page(self, tmp_path: Path) -> None:
        page = tmp_path / "saved.html"
        page.write_text("<html><head><title>Saved</title></head><body><p>x</p></body></html>")

        document = load_local_page(page)

        assert document.title == "Saved"
        assert document.url.startswith("file://")

    def test_load_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(BridgeError, match="Error reading"):
            load_local_page(tmp_path / "missing.html")

    def test_file_channel(self, tmp_path: Path) -> None:
        page = tmp_path / "saved.html"
        page.write_text("<html><head><title>Saved</title></head><body><p>x</p></body></html>")

        snapshot = asyncio.run(ContentBridge(FilePageChannel(page, EchoEngine())).request_content())

        assert snapshot.title == "Saved"
        assert snapshot.source_url == page.resolve().as_uri()
