"""Readable-content extraction from a captured page.

The in-page agent serializes a clone of the document, so analysis never
touches the live page. This module turns that capture into a
ContentSnapshot: a readability pass over the clone plus the sanitized user
selection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import trafilatura
from bs4 import BeautifulSoup
from loguru import logger
from trafilatura.settings import use_config

from docmost_clipper.errors import ExtractionError
from docmost_clipper.logging import LogSpan
from docmost_clipper.models import ContentSnapshot, DocumentHandle
from docmost_clipper.sanitize import sanitize

GET_CONTENT = "get-content"


@dataclass(frozen=True)
class Article:
    """Result of a readability pass."""

    title: str
    content: str
    text_content: str
    excerpt: str


class ReadabilityEngine(Protocol):
    """Anything that can turn a document clone into an article."""

    def parse(self, html: str, url: str = "") -> Article | None: ...


def _first_paragraph(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    paragraph = soup.find("p")
    return paragraph.get_text(" ", strip=True) if paragraph else ""


class TrafilaturaReadability:
    """Readability engine backed by trafilatura."""

    def __init__(
        self,
        *,
        favor_precision: bool = False,
        favor_recall: bool = False,
        include_images: bool = True,
        include_tables: bool = True,
    ) -> None:
        self.favor_precision = favor_precision
        self.favor_recall = favor_recall
        self.include_images = include_images
        self.include_tables = include_tables
        self._config = use_config()
        # Accept short articles
        self._config.set("DEFAULT", "MIN_EXTRACTED_SIZE", "0")

    @classmethod
    def from_config(cls, config: Any) -> TrafilaturaReadability:
        return cls(
            favor_precision=config.favor_precision,
            favor_recall=config.favor_recall,
            include_images=config.include_images,
            include_tables=config.include_tables,
        )

    def parse(self, html: str, url: str = "") -> Article | None:
        content = trafilatura.extract(
            html,
            url=url or None,
            output_format="html",
            include_comments=False,
            include_formatting=True,
            include_links=True,
            include_images=self.include_images,
            include_tables=self.include_tables,
            favor_precision=self.favor_precision,
            favor_recall=self.favor_recall,
            config=self._config,
        )
        if not content or not content.strip():
            return None

        metadata = trafilatura.extract_metadata(html, default_url=url or None)
        title = (metadata.title if metadata else None) or ""
        excerpt = (metadata.description if metadata else None) or _first_paragraph(content)
        text = BeautifulSoup(content, "html.parser").get_text(" ", strip=True)
        return Article(title=title, content=content, text_content=text, excerpt=excerpt)


def extract(document: DocumentHandle, engine: ReadabilityEngine | None = None) -> ContentSnapshot:
    """Build a ContentSnapshot from a captured document.

    Args:
        document: Capture produced by the in-page agent
        engine: Readability engine (default: TrafilaturaReadability)

    Returns:
        The snapshot

    Raises:
        ExtractionError: If there is neither an article nor a selection
    """
    engine = engine or TrafilaturaReadability()

    with LogSpan(span="extract.page", url=document.url) as s:
        selection_html = sanitize(document.selection_html)

        article: Article | None = None
        try:
            article = engine.parse(document.html, document.url)
        except Exception as e:
            # Broken pages localize to "no article" and never reach the caller
            logger.warning(f"Readability failed on {document.url or 'page'}: {e}")

        s.add(article=article is not None, selection=bool(selection_html))
        if article is None and not selection_html:
            raise ExtractionError("Could not parse page content")

        return ContentSnapshot(
            title=(article.title if article else "") or document.title,
            content_html=sanitize(article.content) if article else "",
            text_content=article.text_content if article else "",
            excerpt=article.excerpt if article else "",
            selection_html=selection_html,
            source_url=document.url,
        )


def handle_message(
    message: dict[str, Any],
    document: DocumentHandle,
    engine: ReadabilityEngine | None = None,
) -> dict[str, Any]:
    """Answer one request of the in-page messaging contract.

    Returns:
        {"success": True, "data": snapshot} or {"success": False, "error": str}
    """
    action = message.get("action")
    if action != GET_CONTENT:
        return {"success": False, "error": f"Unknown action: {action}"}

    try:
        snapshot = extract(document, engine)
    except ExtractionError as e:
        return {"success": False, "error": str(e)}
    return {"success": True, "data": snapshot.to_message()}
