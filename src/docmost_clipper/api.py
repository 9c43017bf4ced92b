"""Docmost REST API client.

Authentication is the server's session cookie: login stores it in the
shared cookie jar and every later request sends it back. When the server
uses a double-submit CSRF cookie, its value is echoed in the matching
header.

Usage:
    async with DocmostClient("https://docs.example.com", cookies=jar) as api:
        await api.login("me@example.com", "secret")
        spaces = await api.list_spaces()
"""

from __future__ import annotations

from types import TracebackType
from typing import Any

import httpx
from loguru import logger

from docmost_clipper.errors import ApiError, LoginError, NetworkError
from docmost_clipper.logging import LogSpan
from docmost_clipper.models import ClipDocument, Space
from docmost_clipper.store import cookie_matches_host

LOGIN_PATH = "/api/auth/login"
SPACES_PATH = "/api/spaces"
CREATE_SPACE_PATH = "/api/spaces/create"
IMPORT_PATH = "/api/pages/import"

SPACES_PAGE = {"page": 1, "limit": 100}

# (cookie name, header name), first match wins
CSRF_COOKIES: tuple[tuple[str, str], ...] = (
    ("XSRF-TOKEN", "X-XSRF-TOKEN"),
    ("csrf_token", "X-CSRF-Token"),
    ("_csrf", "X-CSRF-Token"),
)

# Key paths tried in order when looking for the space array
SPACE_LIST_PATHS: tuple[tuple[str, ...], ...] = (
    ("data", "data"),
    ("data",),
    (),
    ("data", "items"),
)

DEFAULT_USER_AGENT = "DocmostClipper/1.0"


def extract_space_list(payload: Any) -> list[dict[str, Any]]:
    """Find the space array in a list-spaces payload.

    Servers wrap the array differently across versions; the first list found
    along SPACE_LIST_PATHS wins and an unrecognized shape yields [].
    """
    for path in SPACE_LIST_PATHS:
        node = payload
        for key in path:
            node = node.get(key) if isinstance(node, dict) else None
        if isinstance(node, list):
            return [item for item in node if isinstance(item, dict)]

    logger.warning(f"Could not find space array in response: {str(payload)[:200]}")
    return []


class DocmostClient:
    """Async client for one Docmost origin."""

    def __init__(
        self,
        origin: str,
        *,
        cookies: httpx.Cookies | None = None,
        timeout: float | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.origin = origin.rstrip("/")
        self._host = httpx.URL(self.origin).host
        self._client = httpx.AsyncClient(
            base_url=self.origin,
            cookies=cookies,
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    async def __aenter__(self) -> DocmostClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def csrf_headers(self) -> dict[str, str]:
        """Header echoing the first CSRF cookie set for this origin, if any."""
        for cookie_name, header_name in CSRF_COOKIES:
            for cookie in self._client.cookies.jar:
                if cookie.name == cookie_name and cookie.value and cookie_matches_host(cookie, self._host):
                    return {header_name: cookie.value}
        return {}

    async def _post(
        self,
        operation: str,
        path: str,
        *,
        error_cls: type[ApiError] = ApiError,
        **kwargs: Any,
    ) -> httpx.Response:
        with LogSpan(span=f"api.{operation}", origin=self.origin, path=path) as s:
            try:
                response = await self._client.post(path, headers=self.csrf_headers(), **kwargs)
            except httpx.RequestError as e:
                raise NetworkError(operation, str(e) or type(e).__name__) from e

            s.add(status=response.status_code)
            if not response.is_success:
                raise error_cls(operation, response.status_code, response.text)
            return response

    @staticmethod
    def _json(operation: str, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(operation, response.status_code, f"Invalid JSON response: {e}") from e

    async def login(self, email: str, password: str) -> None:
        """Log in; the session cookie lands in the cookie jar.

        Raises:
            LoginError: The server refused the credentials
            NetworkError: No response
        """
        await self._post(
            "login",
            LOGIN_PATH,
            json={"email": email, "password": password},
            error_cls=LoginError,
        )

    async def list_spaces(self) -> list[Space]:
        """List spaces; a success also proves the session is valid.

        Raises:
            ApiError: Non-success status (401/403 means session invalid)
            NetworkError: No response
        """
        response = await self._post("list_spaces", SPACES_PATH, json=SPACES_PAGE)
        items = extract_space_list(self._json("list_spaces", response))
        return [Space.from_api(item) for item in items]

    async def create_space(self, name: str, slug: str) -> Space:
        """Create a space.

        Raises:
            ApiError: Non-success status
            NetworkError: No response
        """
        response = await self._post(
            "create_space", CREATE_SPACE_PATH, json={"name": name, "slug": slug}
        )
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            payload = payload["data"]
        if not isinstance(payload, dict):
            payload = {}
        return Space.from_api({"name": name, "slug": slug, **payload})

    async def import_page(self, space_id: str, document: ClipDocument) -> Any:
        """Upload a clip document into a space.

        spaceId is encoded before the file part so streaming multipart
        parsers see it first.

        Raises:
            ApiError: Non-success status
            NetworkError: No response
        """
        response = await self._post(
            "import_page",
            IMPORT_PATH,
            data={"spaceId": space_id},
            files={"file": (document.filename, document.content, "text/html")},
        )
        try:
            return response.json()
        except ValueError:
            return response.text
