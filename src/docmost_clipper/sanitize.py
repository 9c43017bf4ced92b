"""Markup sanitizer for untrusted HTML fragments.

The policy removes, it never rebuilds: dangerous elements go wholesale,
event-handler attributes go, href/src values carrying a javascript:
URL go, and so do comments, CDATA sections and declarations. Everything
else is left exactly as parsed.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup
from bs4.element import CData, Comment, Declaration, Doctype, ProcessingInstruction
from bs4.exceptions import ParserRejectedMarkup
from loguru import logger

DANGEROUS_TAGS = ("script", "iframe", "object", "embed", "form", "style", "meta", "link")
URL_ATTRIBUTES = ("href", "src")
# Parsed differently by html.parser and browsers, so never passed through
MARKUP_NODES = (Comment, CData, Declaration, Doctype, ProcessingInstruction)

# Browsers drop these from URLs before resolving the scheme
_URL_NOISE = re.compile(r"[\x00-\x20\x7f]+")


def _is_javascript_url(value: str) -> bool:
    return "javascript:" in _URL_NOISE.sub("", value).lower()


def sanitize(raw_html: str) -> str:
    """Strip executable markup from an HTML fragment.

    Args:
        raw_html: Untrusted HTML, possibly malformed

    Returns:
        The cleaned fragment, or "" for empty or unparseable input
    """
    if not raw_html or not raw_html.strip():
        return ""

    try:
        soup = BeautifulSoup(raw_html, "html.parser", multi_valued_attributes=None)
    except ParserRejectedMarkup as e:
        logger.warning(f"Dropping selection the parser rejected: {e}")
        return ""

    while (tag := soup.find(DANGEROUS_TAGS)) is not None:
        tag.decompose()

    for node in [node for node in soup.descendants if isinstance(node, MARKUP_NODES)]:
        node.extract()

    for element in soup.find_all(True):
        for name in list(element.attrs):
            value = element.attrs[name]
            if name.lower().startswith("on"):
                del element.attrs[name]
            elif name.lower() in URL_ATTRIBUTES and _is_javascript_url(str(value or "")):
                del element.attrs[name]

    cleaned = soup.decode(formatter="minimal")
    return cleaned if cleaned.strip() else ""
