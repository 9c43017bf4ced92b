"""Clipper session - executes controller effects.

One ClipperSession is one activation of the clipper (a CLI command or an
interactive run). It owns the controller state, runs the effects each
transition asks for, and feeds their results back as events. Nothing
in-memory survives the session; only the state store and cookie jar do.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable

import httpx
from loguru import logger

from docmost_clipper.api import DocmostClient
from docmost_clipper.bridge import ContentBridge
from docmost_clipper.config import ClipperConfig
from docmost_clipper.controller import (
    USER_EVENTS,
    CaptureSnapshot,
    ClearSession,
    ClipperState,
    ClipUploaded,
    CloseClipper,
    Connect,
    ConnectSucceeded,
    CreateSpace,
    Effect,
    EffectFailed,
    Event,
    PersistLastSpace,
    PersistOrigin,
    ProbeSpaces,
    ProbeSucceeded,
    SnapshotCaptured,
    SnapshotFailed,
    SpaceCreated,
    Startup,
    UploadClip,
    transition,
)
from docmost_clipper.document import build_from_options
from docmost_clipper.errors import ApiError, BridgeError, ExtractionError, NetworkError
from docmost_clipper.store import LAST_SPACE_KEY, URL_KEY, CookieStore, StateStore


class ClipperSession:
    """Runs the clipper state machine for one activation."""

    def __init__(
        self,
        config: ClipperConfig,
        *,
        store: StateStore | None = None,
        cookies: CookieStore | None = None,
        bridge: ContentBridge | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self.config = config
        self.store = store or StateStore(config.get_state_path())
        self.cookies = cookies or CookieStore(config.get_cookie_path())
        self.bridge = bridge
        self.state = ClipperState()
        self.closed = False
        self._transport = transport
        self._on_close = on_close

    async def start(self, probe: bool = True) -> ClipperState:
        """Load persisted settings and probe the saved session, if any."""
        return await self.dispatch(
            Startup(self.store.origin, self.store.last_space_id, probe=probe)
        )

    async def dispatch(self, event: Event) -> ClipperState:
        """Apply a user event and everything it sets in motion.

        User events arriving while a flow is in flight are dropped, the
        same way the front end disables its controls.
        """
        if isinstance(event, USER_EVENTS) and self.state.busy:
            logger.debug(f"Ignoring {type(event).__name__} while busy")
            return self.state

        queue: deque[Event] = deque([event])
        while queue:
            self.state, effects = transition(self.state, queue.popleft())
            for effect in effects:
                result = await self._run(effect)
                if result is not None:
                    queue.append(result)
        return self.state

    def _client(self, origin: str) -> DocmostClient:
        return DocmostClient(
            origin,
            cookies=self.cookies.load(),
            timeout=self.config.request_timeout,
            user_agent=self.config.user_agent,
            transport=self._transport,
        )

    async def _run(self, effect: Effect) -> Event | None:
        if isinstance(effect, (ProbeSpaces, Connect, CreateSpace, UploadClip)):
            try:
                return await self._call_api(effect)
            except (ApiError, NetworkError) as e:
                logger.info(f"{type(effect).__name__} failed: {e}")
                return EffectFailed(effect, e)

        if isinstance(effect, CaptureSnapshot):
            return await self._capture()
        if isinstance(effect, PersistOrigin):
            self.store.set(**{URL_KEY: effect.origin})
        elif isinstance(effect, PersistLastSpace):
            self.store.set(**{LAST_SPACE_KEY: effect.space_id})
        elif isinstance(effect, ClearSession):
            dropped = self.cookies.clear_origin(effect.origin)
            logger.debug(f"Cleared {dropped} cookie(s) for {effect.origin}")
        elif isinstance(effect, CloseClipper):
            self.closed = True
            if self._on_close:
                self._on_close()
        return None

    async def _call_api(self, effect: ProbeSpaces | Connect | CreateSpace | UploadClip) -> Event:
        async with self._client(effect.origin) as api:
            try:
                if isinstance(effect, ProbeSpaces):
                    return ProbeSucceeded(tuple(await api.list_spaces()))

                if isinstance(effect, Connect):
                    await api.login(effect.email, effect.password)
                    spaces = await api.list_spaces()
                    return ConnectSucceeded(effect.origin, tuple(spaces))

                if isinstance(effect, CreateSpace):
                    await api.create_space(effect.name, effect.slug)
                    spaces = await api.list_spaces()
                    return SpaceCreated(effect.slug, tuple(spaces))

                document = build_from_options(effect.snapshot, effect.options)
                await api.import_page(effect.space_id, document)
                return ClipUploaded(effect.space_id)
            finally:
                # The server may set or rotate cookies on any response
                self.cookies.save(api.cookies)

    async def _capture(self) -> Event | None:
        if self.bridge is None:
            logger.debug("No page attached; skipping capture")
            return None
        try:
            return SnapshotCaptured(await self.bridge.request_content())
        except (BridgeError, ExtractionError) as e:
            return SnapshotFailed(e)
