"""Request/response transport between the session and the in-page agent.

The agent is not guaranteed to be present in the page (for instance when
the page was opened before the browser was attached), so a request that
finds no receiver injects the agent and retries exactly once.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

import httpx
from bs4 import BeautifulSoup

from docmost_clipper.errors import BridgeError, ClipperError, ExtractionError
from docmost_clipper.extractor import GET_CONTENT, ReadabilityEngine, handle_message
from docmost_clipper.logging import LogSpan
from docmost_clipper.models import ContentSnapshot, DocumentHandle

GET_CONTENT_REQUEST: dict[str, Any] = {"action": GET_CONTENT}


class NoReceiverError(Exception):
    """Transport-level signal that no agent is listening in the page."""

    def __init__(self, message: str = "Receiving end does not exist") -> None:
        super().__init__(message)


class PageChannel(Protocol):
    """A page the agent can be reached in."""

    description: str

    async def send(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Deliver one message and return the agent's response.

        Raises:
            NoReceiverError: If the agent is not loaded in the page
        """
        ...

    async def inject(self) -> None:
        """Load the agent into the page."""
        ...


class StaticPageChannel:
    """Channel over an already captured document; the agent is always present."""

    def __init__(
        self,
        document: DocumentHandle | None,
        engine: ReadabilityEngine | None = None,
        description: str = "",
    ) -> None:
        self.document = document
        self.engine = engine
        self.description = description or (document.url if document else "") or "static page"

    async def _load(self) -> DocumentHandle:
        if self.document is None:
            raise BridgeError("No page captured", BridgeError.TRANSPORT)
        return self.document

    async def send(self, message: dict[str, Any]) -> dict[str, Any] | None:
        if self.document is None:
            self.document = await self._load()
        return handle_message(message, self.document, self.engine)

    async def inject(self) -> None:
        return None


class HttpPageChannel(StaticPageChannel):
    """Static channel over a URL, downloaded on the first request."""

    def __init__(
        self,
        url: str,
        engine: ReadabilityEngine | None = None,
        *,
        timeout: float | None = None,
        user_agent: str = "DocmostClipper/1.0",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(None, engine, description=url)
        self.url = url
        self._timeout = timeout
        self._user_agent = user_agent
        self._transport = transport

    async def _load(self) -> DocumentHandle:
        return await fetch_static_page(
            self.url,
            timeout=self._timeout,
            user_agent=self._user_agent,
            transport=self._transport,
        )


class FilePageChannel(StaticPageChannel):
    """Static channel over a local HTML file, read on the first request."""

    def __init__(self, path: Path | str, engine: ReadabilityEngine | None = None) -> None:
        super().__init__(None, engine, description=str(path))
        self.path = Path(path)

    async def _load(self) -> DocumentHandle:
        return load_local_page(self.path)


class ContentBridge:
    """Fetches a ContentSnapshot from a page channel."""

    def __init__(self, channel: PageChannel) -> None:
        self.channel = channel

    async def request_content(self) -> ContentSnapshot:
        """Ask the in-page agent for a snapshot.

        Returns:
            The snapshot

        Raises:
            BridgeError: If the agent stays unreachable or the transport fails
            ExtractionError: If the agent answered but could not parse the page
        """
        with LogSpan(span="bridge.request", page=self.channel.description) as s:
            try:
                response = await self.channel.send(GET_CONTENT_REQUEST)
            except NoReceiverError:
                s.add(injected=True)
                await self._guarded(self.channel.inject())
                try:
                    response = await self._guarded(self.channel.send(GET_CONTENT_REQUEST))
                except NoReceiverError as e:
                    raise BridgeError(f"{e} (after injection)", BridgeError.UNREACHABLE) from e
            except ClipperError:
                raise
            except Exception as e:
                raise BridgeError(f"Page transport failed: {e}", BridgeError.TRANSPORT) from e

            return self._parse(response)

    @staticmethod
    async def _guarded(operation: Any) -> Any:
        try:
            return await operation
        except (NoReceiverError, ClipperError):
            raise
        except Exception as e:
            raise BridgeError(f"Page transport failed: {e}", BridgeError.TRANSPORT) from e

    @staticmethod
    def _parse(response: Any) -> ContentSnapshot:
        if not isinstance(response, dict):
            raise BridgeError("No response from page", BridgeError.TRANSPORT)
        if not response.get("success"):
            raise ExtractionError(str(response.get("error") or "Failed to parse page content"))
        data = response.get("data")
        if not isinstance(data, dict):
            raise BridgeError("Malformed response from page", BridgeError.TRANSPORT)
        return ContentSnapshot.from_message(data)


def _document_from_html(html: str, url: str) -> DocumentHandle:
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""
    return DocumentHandle(html=html, title=title, url=url)


async def fetch_static_page(
    url: str,
    *,
    timeout: float | None = None,
    user_agent: str = "DocmostClipper/1.0",
    transport: httpx.AsyncBaseTransport | None = None,
) -> DocumentHandle:
    """Download a page over HTTP and capture it like the agent would.

    Raises:
        BridgeError: If the page cannot be downloaded
    """
    with LogSpan(span="bridge.fetch", url=url) as s:
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(timeout),
                follow_redirects=True,
                headers={"User-Agent": user_agent},
                transport=transport,
            ) as client:
                response = await client.get(url)
        except httpx.RequestError as e:
            raise BridgeError(f"Failed to fetch {url}: {e}", BridgeError.TRANSPORT) from e

        s.add(status=response.status_code)
        if response.is_error:
            raise BridgeError(
                f"Failed to fetch {url}: HTTP {response.status_code}", BridgeError.TRANSPORT
            )
        return _document_from_html(response.text, str(response.url))


def load_local_page(path: Path | str) -> DocumentHandle:
    """Capture a local HTML file.

    Raises:
        BridgeError: If the file cannot be read
    """
    path = Path(path).expanduser().resolve()
    try:
        html = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise BridgeError(f"Error reading {path}: {e}", BridgeError.TRANSPORT) from e
    return _document_from_html(html, path.as_uri())
