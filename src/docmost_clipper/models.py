"""Data types shared by the extractor, the API client and the controller."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

# Space-select value that opens the create-space view instead of a space
CREATE_NEW_SPACE = "__create_new__"


@dataclass(frozen=True)
class Space:
    """A Docmost space."""

    id: str
    name: str
    slug: str = ""

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> Space:
        """Build a Space from a server payload, tolerating missing fields."""
        name = raw.get("name") or raw.get("title") or raw.get("slug") or "Unnamed Space"
        return cls(id=str(raw.get("id", "")), name=str(name), slug=str(raw.get("slug") or ""))


@dataclass(frozen=True)
class DocumentHandle:
    """What the in-page agent captures from a live page."""

    html: str  # Serialized clone of the whole document
    title: str = ""
    url: str = ""
    selection_html: str = ""  # Raw, unsanitized selection ranges

    @classmethod
    def from_message(cls, data: dict[str, Any]) -> DocumentHandle:
        return cls(
            html=str(data.get("html") or ""),
            title=str(data.get("title") or ""),
            url=str(data.get("url") or ""),
            selection_html=str(data.get("selection") or ""),
        )


@dataclass(frozen=True)
class ContentSnapshot:
    """One immutable capture of a page's readable content."""

    title: str
    content_html: str
    text_content: str
    excerpt: str
    selection_html: str
    source_url: str

    @property
    def has_selection(self) -> bool:
        return bool(self.selection_html.strip())

    def to_message(self) -> dict[str, Any]:
        """Serialize for the in-page messaging contract."""
        return asdict(self)

    @classmethod
    def from_message(cls, data: dict[str, Any]) -> ContentSnapshot:
        return cls(
            title=str(data.get("title") or ""),
            content_html=str(data.get("content_html") or ""),
            text_content=str(data.get("text_content") or ""),
            excerpt=str(data.get("excerpt") or ""),
            selection_html=str(data.get("selection_html") or ""),
            source_url=str(data.get("source_url") or ""),
        )


@dataclass(frozen=True)
class ClipOptions:
    """User choices for one clip attempt."""

    title: str | None = None  # Explicit title override
    note: str = ""
    use_selection: bool = False


@dataclass(frozen=True)
class ClipDocument:
    """A self-contained HTML document ready for upload."""

    title: str
    html: str
    filename: str

    @property
    def content(self) -> bytes:
        return self.html.encode("utf-8")
