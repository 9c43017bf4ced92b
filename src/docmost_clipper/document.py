"""Clip document assembly."""

from __future__ import annotations

import html
import re

from docmost_clipper.models import ClipDocument, ClipOptions, ContentSnapshot

PLACEHOLDER_STEM = "clipped-page"
FILENAME_SUFFIX = ".html"
MAX_STEM_LENGTH = 100

_SLUG_JUNK = re.compile(r"[^a-z0-9]+")
_FILENAME_JUNK = re.compile(r"[^a-z0-9\u00a0-\U0010ffff\-_\s]", re.IGNORECASE)

NOTE_STYLE = (
    "background:#f5f7fa;border-left:4px solid #5c9aff;"
    "padding:8px 12px;margin:0 0 12px 0;"
)


def derive_slug(name: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to "-", trim dashes."""
    return _SLUG_JUNK.sub("-", name.lower()).strip("-")


def safe_filename(title: str) -> str:
    """Upload filename derived from a title."""
    stem = _FILENAME_JUNK.sub("", title).strip()[:MAX_STEM_LENGTH]
    return f"{stem or PLACEHOLDER_STEM}{FILENAME_SUFFIX}"


def _note_block(note: str) -> str:
    escaped = html.escape(note.strip()).replace("\r\n", "\n").replace("\n", "<br>")
    return f'<div class="clip-note" style="{NOTE_STYLE}">{escaped}</div>\n'


def build_clip_document(
    snapshot: ContentSnapshot,
    use_selection: bool = False,
    note: str = "",
    title: str | None = None,
) -> ClipDocument:
    """Assemble the self-contained HTML document for one clip attempt.

    Args:
        snapshot: Captured page content (already sanitized)
        use_selection: Clip the selection instead of the article, if any
        note: Optional user note shown above the content
        title: Explicit title; the extracted title when None or blank

    Returns:
        The document with its upload filename
    """
    effective_title = (title or "").strip() or snapshot.title
    body = (
        snapshot.selection_html
        if use_selection and snapshot.has_selection
        else snapshot.content_html
    )
    source = html.escape(snapshot.source_url)

    parts = [
        "<!DOCTYPE html>\n",
        "<html>\n",
        f'<head><meta charset="utf-8"><title>{html.escape(effective_title)}</title></head>\n',
        "<body>\n",
    ]
    if note.strip():
        parts.append(_note_block(note))
    parts.extend(
        [
            f'<p><em>Clipped from: <a href="{source}">{source}</a></em></p>\n',
            "<hr/>\n",
            body,
            "\n</body>\n</html>\n",
        ]
    )
    return ClipDocument(
        title=effective_title,
        html="".join(parts),
        filename=safe_filename(effective_title),
    )


def build_from_options(snapshot: ContentSnapshot, options: ClipOptions) -> ClipDocument:
    return build_clip_document(
        snapshot,
        use_selection=options.use_selection,
        note=options.note,
        title=options.title,
    )
