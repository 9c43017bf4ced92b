"""Browser pages via Playwright.

Provides the page the clipper reads from: either a Chromium launched for
one URL, or the active tab of an existing browser attached over CDP.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from docmost_clipper.bridge import NoReceiverError
from docmost_clipper.config import ClipperConfig
from docmost_clipper.errors import BridgeError
from docmost_clipper.extractor import ReadabilityEngine, handle_message
from docmost_clipper.models import DocumentHandle
from docmost_clipper.paths import get_agent_script

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page

AGENT_READY_CHECK = (
    "typeof window.__docmostClipper !== 'undefined' && window.__docmostClipper.isReady()"
)
AGENT_HANDLE = "message => window.__docmostClipper.handle(message)"


@dataclass
class BrowserState:
    """Playwright objects of the current page (None when closed)."""

    browser: Browser | None = None
    context: BrowserContext | None = None
    page: Page | None = None


class PlaywrightPageChannel:
    """Channel to the agent living in a Playwright page."""

    def __init__(self, page: Page, engine: ReadabilityEngine | None = None) -> None:
        self.page = page
        self.engine = engine
        self.description = page.url

    async def send(self, message: dict[str, Any]) -> dict[str, Any] | None:
        if not await self.page.evaluate(AGENT_READY_CHECK):
            raise NoReceiverError()

        response = await self.page.evaluate(AGENT_HANDLE, message)
        if not isinstance(response, dict) or not response.get("success"):
            return response

        # The page only serializes; readability and sanitizing run here
        document = DocumentHandle.from_message(response.get("data") or {})
        return handle_message(message, document, self.engine)

    async def inject(self) -> None:
        logger.debug(f"Agent not found in {self.page.url}, injecting")
        await self.page.evaluate(get_agent_script())


class BrowserPages:
    """Owns the Playwright lifetime for one clipper session."""

    def __init__(self, config: ClipperConfig) -> None:
        self.config = config
        self.state = BrowserState()
        self._playwright: Any = None

    async def open(self, url: str) -> Page:
        """Launch a browser and navigate to url."""
        return await self._connect(url=url, attach=False)

    async def attach(self) -> Page:
        """Attach to an existing browser and pick its active tab."""
        return await self._connect(url=None, attach=True)

    async def _connect(self, url: str | None, attach: bool) -> Page:
        state = self.state

        try:
            self._playwright = await async_playwright().start()

            if attach:
                state.browser = await self._playwright.chromium.connect_over_cdp(
                    f"http://localhost:{self.config.cdp_port}"
                )
                contexts = state.browser.contexts
                pages = [page for context in contexts for page in context.pages]
                if not pages:
                    raise BridgeError("No open tab found in the attached browser")
                # Most recently opened tab stands in for the active one
                state.page = pages[-1]
                state.context = state.page.context
            else:
                state.browser = await self._playwright.chromium.launch(
                    headless=self.config.headless,
                    args=list(self.config.browser_args),
                )
                state.context = await state.browser.new_context()
                state.page = await state.context.new_page()
                await state.page.goto(url, wait_until="networkidle")

                # Agent loads on later navigations; the current document gets
                # it lazily through the bridge
                await state.page.add_init_script(get_agent_script())

            return state.page

        except PlaywrightError as e:
            await self.close()
            raise BridgeError(f"Browser unavailable: {e}", BridgeError.TRANSPORT) from e
        except BridgeError:
            await self.close()
            raise

    async def close(self) -> None:
        """Close a launched browser, or only disconnect from an attached one."""
        state = self.state
        if state.browser:
            try:
                await state.browser.close()
            except PlaywrightError as e:
                logger.debug(f"Ignoring error while closing browser: {e}")

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

        self.state = BrowserState()
