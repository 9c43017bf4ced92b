"""Session/view state machine.

The whole controller state is one immutable ClipperState value. Every user
action and every completed side effect is an event, and
``transition(state, event)`` returns the next state plus the effects the
session runner must execute. Effects report back through result events.

Invariants kept by every transition:
- exactly one view is active and a view change clears the status first;
- an unauthenticated state always shows the settings view;
- at most one retry effect is pending, and triggering it consumes it;
- an upload effect is only emitted with a snapshot and a real space id.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Union
from urllib.parse import urlsplit

from docmost_clipper.document import derive_slug
from docmost_clipper.errors import (
    ApiError,
    ClipperError,
    LoginError,
    NetworkError,
    ValidationError,
    is_retryable,
    is_session_invalid,
)
from docmost_clipper.models import CREATE_NEW_SPACE, ClipOptions, ContentSnapshot, Space

LOCAL_HTTP_HOSTS = frozenset({"localhost", "127.0.0.1"})
DEFAULT_PORTS = {"http": 80, "https": 443}
MIN_SPACE_NAME_LENGTH = 2


class View(Enum):
    SETTINGS = "settings"
    CLIPPER = "clipper"
    CREATE_SPACE = "create_space"


class Phase(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    AWAITING_RETRY = "awaiting_retry"
    CREATING_SPACE = "creating_space"


class StatusKind(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Status:
    message: str
    kind: StatusKind = StatusKind.INFO
    retryable: bool = False


# ─── Effects ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProbeSpaces:
    """List spaces to prove the stored session is still valid."""

    origin: str


@dataclass(frozen=True)
class Connect:
    """Log in, then list spaces."""

    origin: str
    email: str
    password: str


@dataclass(frozen=True)
class CreateSpace:
    """Create a space, then list spaces to learn its id."""

    origin: str
    name: str
    slug: str


@dataclass(frozen=True)
class UploadClip:
    """Build a fresh clip document and import it."""

    origin: str
    space_id: str
    snapshot: ContentSnapshot
    options: ClipOptions


@dataclass(frozen=True)
class CaptureSnapshot:
    """Ask the in-page agent for the page content."""


@dataclass(frozen=True)
class PersistOrigin:
    origin: str


@dataclass(frozen=True)
class PersistLastSpace:
    space_id: str


@dataclass(frozen=True)
class ClearSession:
    """Forget the session cookies of origin."""

    origin: str


@dataclass(frozen=True)
class CloseClipper:
    """The flow is complete; the front end may close."""


RetryableEffect = Union[ProbeSpaces, Connect, CreateSpace, UploadClip]
Effect = Union[
    ProbeSpaces,
    Connect,
    CreateSpace,
    UploadClip,
    CaptureSnapshot,
    PersistOrigin,
    PersistLastSpace,
    ClearSession,
    CloseClipper,
]


# ─── Events ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Startup:
    origin: str | None = None
    last_space_id: str | None = None
    probe: bool = True  # False restores the saved origin without checking it


@dataclass(frozen=True)
class SubmitConnect:
    url: str
    email: str
    password: str


@dataclass(frozen=True)
class Disconnect:
    pass


@dataclass(frozen=True)
class SelectSpace:
    space_id: str


@dataclass(frozen=True)
class CancelCreateSpace:
    pass


@dataclass(frozen=True)
class ConfirmCreateSpace:
    name: str


@dataclass(frozen=True)
class Clip:
    options: ClipOptions = ClipOptions()


@dataclass(frozen=True)
class Retry:
    pass


@dataclass(frozen=True)
class OpenSettings:
    pass


@dataclass(frozen=True)
class CloseSettings:
    pass


@dataclass(frozen=True)
class ProbeSucceeded:
    spaces: tuple[Space, ...]


@dataclass(frozen=True)
class ConnectSucceeded:
    origin: str
    spaces: tuple[Space, ...]


@dataclass(frozen=True)
class SpaceCreated:
    slug: str
    spaces: tuple[Space, ...]


@dataclass(frozen=True)
class ClipUploaded:
    space_id: str


@dataclass(frozen=True)
class SnapshotCaptured:
    snapshot: ContentSnapshot


@dataclass(frozen=True)
class SnapshotFailed:
    error: ClipperError


@dataclass(frozen=True)
class EffectFailed:
    """A retryable effect failed; effect is what a retry would re-issue."""

    effect: RetryableEffect
    error: ClipperError


UserEvent = Union[
    Startup,
    SubmitConnect,
    Disconnect,
    SelectSpace,
    CancelCreateSpace,
    ConfirmCreateSpace,
    Clip,
    Retry,
    OpenSettings,
    CloseSettings,
]
ResultEvent = Union[
    ProbeSucceeded,
    ConnectSucceeded,
    SpaceCreated,
    ClipUploaded,
    SnapshotCaptured,
    SnapshotFailed,
    EffectFailed,
]
Event = Union[UserEvent, ResultEvent]

USER_EVENTS: tuple[type, ...] = (
    Startup,
    SubmitConnect,
    Disconnect,
    SelectSpace,
    CancelCreateSpace,
    ConfirmCreateSpace,
    Clip,
    Retry,
    OpenSettings,
    CloseSettings,
)


# ─── State ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ClipperState:
    """Everything the controller knows during one clipper session."""

    view: View = View.SETTINGS
    phase: Phase = Phase.DISCONNECTED
    origin: str | None = None  # Saved origin
    authenticated: bool = False
    spaces: tuple[Space, ...] = ()
    selected_space_id: str | None = None
    last_space_id: str | None = None
    snapshot: ContentSnapshot | None = None
    retry: RetryableEffect | None = None
    status: Status | None = None
    pending_origin: str | None = None  # New host waiting for a confirming submit
    busy: bool = False  # A flow is in flight; action controls are disabled

    @property
    def selected_space(self) -> Space | None:
        return next((s for s in self.spaces if s.id == self.selected_space_id), None)

    @property
    def can_clip(self) -> bool:
        return (
            self.authenticated
            and not self.busy
            and self.snapshot is not None
            and self.selected_space_id not in (None, CREATE_NEW_SPACE)
        )


Transition = tuple[ClipperState, list[Effect]]


# ─── Helpers ──────────────────────────────────────────────────────────────────


def normalize_origin(url: str) -> str:
    """Validate a server URL and reduce it to scheme://host[:port].

    Raises:
        ValidationError: If the URL is not an acceptable Docmost origin
    """
    raw = (url or "").strip()
    if not raw:
        raise ValidationError("Please enter Docmost URL.")

    parts = urlsplit(raw)
    if parts.scheme not in DEFAULT_PORTS or not parts.hostname:
        raise ValidationError("Enter a full URL such as https://docs.example.com.")
    if parts.scheme == "http" and parts.hostname not in LOCAL_HTTP_HOSTS:
        raise ValidationError("Use https:// (plain http is only allowed for localhost).")
    if parts.path not in ("", "/"):
        raise ValidationError("Docmost URL must be the server root, without a path.")
    if parts.username or parts.password:
        raise ValidationError("Docmost URL must not contain credentials.")

    try:
        port = parts.port
    except ValueError as e:
        raise ValidationError(f"Invalid port in Docmost URL: {e}") from e

    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    if port and port != DEFAULT_PORTS[parts.scheme]:
        host = f"{host}:{port}"
    return f"{parts.scheme}://{host}"


def origin_host(origin: str | None) -> str | None:
    return urlsplit(origin).hostname if origin else None


def _show(state: ClipperState, view: View, **changes: Any) -> ClipperState:
    """Switch view; the old status never survives a view change."""
    return replace(state, view=view, status=None, **changes)


def _say(state: ClipperState, message: str, kind: StatusKind = StatusKind.INFO, retryable: bool = False) -> ClipperState:
    return replace(state, status=Status(message, kind, retryable))


def _settled_phase(state: ClipperState) -> Phase:
    if not state.authenticated:
        return Phase.DISCONNECTED
    if state.view is View.CREATE_SPACE:
        return Phase.CREATING_SPACE
    return Phase.CONNECTED


def _begin(state: ClipperState) -> ClipperState:
    """A new user action supersedes any pending retry."""
    if state.retry is None and state.phase is not Phase.AWAITING_RETRY:
        return state
    state = replace(state, retry=None)
    return replace(state, phase=_settled_phase(state))


def _preselect(spaces: tuple[Space, ...], space_id: str | None) -> str | None:
    return space_id if any(s.id == space_id for s in spaces) else None


def _disconnected(state: ClipperState, message: str, kind: StatusKind) -> ClipperState:
    state = _show(
        state,
        View.SETTINGS,
        phase=Phase.DISCONNECTED,
        authenticated=False,
        spaces=(),
        selected_space_id=None,
        retry=None,
        pending_origin=None,
        busy=False,
    )
    return _say(state, message, kind)


def _describe(error: ClipperError) -> str:
    if isinstance(error, NetworkError):
        return f"Network error: {error.reason}"
    return str(error)


def _fail(state: ClipperState, effect: RetryableEffect, error: ClipperError) -> ClipperState:
    """Map a failed flow to disconnect, retry or a plain error."""
    if is_session_invalid(error):
        return _disconnected(state, "Session expired. Please log in again.", StatusKind.ERROR)

    state = replace(state, busy=False)
    if is_retryable(error):
        state = replace(state, phase=Phase.AWAITING_RETRY, retry=effect)
        return _say(state, f"Error: {_describe(error)}", StatusKind.ERROR, retryable=True)

    state = replace(state, phase=_settled_phase(state))
    return _say(state, f"Error: {_describe(error)}", StatusKind.ERROR)


# ─── User events ──────────────────────────────────────────────────────────────


def _on_startup(state: ClipperState, event: Startup) -> Transition:
    state = ClipperState(origin=event.origin, last_space_id=event.last_space_id)
    if not event.origin or not event.probe:
        return state, []
    state = replace(state, phase=Phase.CONNECTING, busy=True)
    return _say(state, "Checking session..."), [ProbeSpaces(event.origin)]


def _on_submit_connect(state: ClipperState, event: SubmitConnect) -> Transition:
    state = _begin(state)
    try:
        origin = normalize_origin(event.url)
    except ValidationError as e:
        return _say(state, str(e), StatusKind.ERROR), []

    if not event.email.strip() or not event.password:
        return _say(state, "Please enter Email and Password.", StatusKind.ERROR), []

    saved_host = origin_host(state.origin)
    if saved_host and saved_host != origin_host(origin) and state.pending_origin != origin:
        state = replace(state, pending_origin=origin)
        message = (
            f"Server changed from {saved_host} to {origin_host(origin)}. "
            "Your credentials will be sent to the new server. Submit again to confirm."
        )
        return _say(state, message, StatusKind.WARNING), []

    state = replace(state, pending_origin=None, phase=Phase.CONNECTING, busy=True)
    return _say(state, "Connecting..."), [Connect(origin, event.email.strip(), event.password)]


def _on_disconnect(state: ClipperState, event: Disconnect) -> Transition:
    effects: list[Effect] = [ClearSession(state.origin)] if state.origin else []
    return _disconnected(state, "Disconnected.", StatusKind.SUCCESS), effects


def _on_select_space(state: ClipperState, event: SelectSpace) -> Transition:
    state = _begin(state)
    if not state.authenticated:
        return _say(state, "Connect to Docmost first.", StatusKind.ERROR), []
    if event.space_id == CREATE_NEW_SPACE:
        return _show(state, View.CREATE_SPACE, phase=Phase.CREATING_SPACE), []
    if not any(s.id == event.space_id for s in state.spaces):
        return _say(state, "Unknown space.", StatusKind.ERROR), []
    return replace(state, selected_space_id=event.space_id, status=None), []


def _on_cancel_create(state: ClipperState, event: CancelCreateSpace) -> Transition:
    state = _begin(state)
    if state.view is not View.CREATE_SPACE:
        return state, []
    return _show(state, View.CLIPPER, phase=Phase.CONNECTED), []


def _on_confirm_create(state: ClipperState, event: ConfirmCreateSpace) -> Transition:
    state = _begin(state)
    if not state.authenticated or not state.origin:
        return _say(state, "Connect to Docmost first.", StatusKind.ERROR), []

    name = event.name.strip()
    if len(name) < MIN_SPACE_NAME_LENGTH:
        message = f"Space name must be at least {MIN_SPACE_NAME_LENGTH} characters."
        return _say(state, message, StatusKind.ERROR), []
    slug = derive_slug(name)
    if not slug:
        return _say(state, "Space name must contain letters or digits.", StatusKind.ERROR), []

    state = replace(state, phase=Phase.CREATING_SPACE, busy=True)
    return _say(state, "Creating space..."), [CreateSpace(state.origin, name, slug)]


def _on_clip(state: ClipperState, event: Clip) -> Transition:
    state = _begin(state)
    if not state.authenticated or not state.origin:
        return _say(state, "Connect to Docmost first.", StatusKind.ERROR), []
    space_id = state.selected_space_id
    if space_id is None or space_id == CREATE_NEW_SPACE:
        return _say(state, "Please select a Space.", StatusKind.ERROR), []
    if state.snapshot is None:
        return _say(state, "No page content captured. Reload the page and try again.", StatusKind.ERROR), []

    state = replace(state, busy=True)
    effect = UploadClip(state.origin, space_id, state.snapshot, event.options)
    return _say(state, "Uploading to Docmost..."), [effect]


def _on_retry(state: ClipperState, event: Retry) -> Transition:
    effect = state.retry
    if effect is None:
        return state, []

    if isinstance(effect, (ProbeSpaces, Connect)):
        phase = Phase.CONNECTING
    elif isinstance(effect, CreateSpace):
        phase = Phase.CREATING_SPACE
    else:
        phase = Phase.CONNECTED
    state = replace(state, retry=None, phase=phase, busy=True)
    return _say(state, "Retrying..."), [effect]


def _on_open_settings(state: ClipperState, event: OpenSettings) -> Transition:
    state = _begin(state)
    return _show(state, View.SETTINGS), []


def _on_close_settings(state: ClipperState, event: CloseSettings) -> Transition:
    state = _begin(state)
    if not state.authenticated:
        return _say(state, "Connect to Docmost first.", StatusKind.WARNING), []
    return _show(state, View.CLIPPER, phase=Phase.CONNECTED), []


# ─── Result events ────────────────────────────────────────────────────────────


def _on_probe_succeeded(state: ClipperState, event: ProbeSucceeded) -> Transition:
    state = _show(
        state,
        View.CLIPPER,
        phase=Phase.CONNECTED,
        authenticated=True,
        spaces=event.spaces,
        selected_space_id=_preselect(event.spaces, state.last_space_id),
        retry=None,
        busy=False,
    )
    return state, [CaptureSnapshot()]


def _on_connect_succeeded(state: ClipperState, event: ConnectSucceeded) -> Transition:
    state = _show(
        state,
        View.CLIPPER,
        phase=Phase.CONNECTED,
        origin=event.origin,
        authenticated=True,
        spaces=event.spaces,
        selected_space_id=_preselect(event.spaces, state.last_space_id),
        retry=None,
        pending_origin=None,
        busy=False,
    )
    state = _say(state, "Connected successfully!", StatusKind.SUCCESS)
    return state, [PersistOrigin(event.origin), CaptureSnapshot()]


def _on_space_created(state: ClipperState, event: SpaceCreated) -> Transition:
    match = next((s for s in event.spaces if s.slug == event.slug), None)
    state = _show(
        state,
        View.CLIPPER,
        phase=Phase.CONNECTED,
        spaces=event.spaces,
        selected_space_id=match.id if match else None,
        retry=None,
        busy=False,
    )
    if match is None:
        return _say(state, "Space created, but it was not found in the refreshed list.", StatusKind.WARNING), []
    return _say(state, f"Space '{match.name}' created.", StatusKind.SUCCESS), []


def _on_clip_uploaded(state: ClipperState, event: ClipUploaded) -> Transition:
    state = replace(
        state,
        phase=Phase.CONNECTED,
        last_space_id=event.space_id,
        retry=None,
        busy=False,
    )
    state = _say(state, "Page clipped successfully!", StatusKind.SUCCESS)
    return state, [PersistLastSpace(event.space_id), CloseClipper()]


def _on_snapshot_captured(state: ClipperState, event: SnapshotCaptured) -> Transition:
    return replace(state, snapshot=event.snapshot), []


def _on_snapshot_failed(state: ClipperState, event: SnapshotFailed) -> Transition:
    state = replace(state, snapshot=None)
    return _say(state, f"Could not read page content: {event.error}", StatusKind.ERROR), []


def _on_effect_failed(state: ClipperState, event: EffectFailed) -> Transition:
    error = event.error
    if isinstance(event.effect, ProbeSpaces) and not is_session_invalid(error):
        # Session validity is unknown until the probe succeeds
        state = replace(state, authenticated=False)
    if isinstance(event.effect, Connect) and isinstance(error, LoginError):
        state = _show(
            state,
            View.SETTINGS,
            phase=Phase.DISCONNECTED,
            authenticated=False,
            retry=None,
            busy=False,
        )
        return _say(state, f"Login failed. Check your email and password. ({error})", StatusKind.ERROR), []
    if isinstance(event.effect, (ProbeSpaces, Connect)) and not state.authenticated:
        state = _show(state, View.SETTINGS) if state.view is not View.SETTINGS else state
    if not isinstance(error, (ApiError, NetworkError)):
        state = replace(state, busy=False, phase=_settled_phase(state))
        return _say(state, f"Error: {error}", StatusKind.ERROR), []
    return _fail(state, event.effect, error), []


_HANDLERS: dict[type, Callable[[ClipperState, Any], Transition]] = {
    Startup: _on_startup,
    SubmitConnect: _on_submit_connect,
    Disconnect: _on_disconnect,
    SelectSpace: _on_select_space,
    CancelCreateSpace: _on_cancel_create,
    ConfirmCreateSpace: _on_confirm_create,
    Clip: _on_clip,
    Retry: _on_retry,
    OpenSettings: _on_open_settings,
    CloseSettings: _on_close_settings,
    ProbeSucceeded: _on_probe_succeeded,
    ConnectSucceeded: _on_connect_succeeded,
    SpaceCreated: _on_space_created,
    ClipUploaded: _on_clip_uploaded,
    SnapshotCaptured: _on_snapshot_captured,
    SnapshotFailed: _on_snapshot_failed,
    EffectFailed: _on_effect_failed,
}


def transition(state: ClipperState, event: Event) -> Transition:
    """Apply one event.

    Args:
        state: Current state
        event: User action or effect result

    Returns:
        Tuple of (next state, effects to execute in order)
    """
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unknown event: {type(event).__name__}")
    return handler(state, event)
