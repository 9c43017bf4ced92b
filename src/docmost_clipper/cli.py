"""docmost-clip CLI entry point."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from pathlib import Path
from typing import Any

import questionary
import typer
from rich.console import Console
from rich.table import Table

from docmost_clipper import __version__
from docmost_clipper.bridge import ContentBridge, FilePageChannel, HttpPageChannel
from docmost_clipper.browser import BrowserPages, PlaywrightPageChannel
from docmost_clipper.config import ClipperConfig, get_config
from docmost_clipper.controller import (
    CancelCreateSpace,
    Clip,
    ClipperState,
    CloseSettings,
    ConfirmCreateSpace,
    Disconnect,
    OpenSettings,
    Retry,
    SelectSpace,
    StatusKind,
    SubmitConnect,
    View,
)
from docmost_clipper.errors import ClipperError
from docmost_clipper.extractor import TrafilaturaReadability
from docmost_clipper.logging import configure_logging
from docmost_clipper.models import CREATE_NEW_SPACE, ClipOptions, Space
from docmost_clipper.session import ClipperSession
from docmost_clipper.store import THEMES, StateStore

APP_NAME = "Docmost Clipper"

# Unprompted retries (--yes) back off from AUTO_RETRY_DELAY seconds
AUTO_RETRY_ATTEMPTS = 3
AUTO_RETRY_DELAY = 1.0

app = typer.Typer(
    name="docmost-clip",
    help="Clip web pages into Docmost spaces.",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()

# Status colours per persisted theme ("auto" keeps the terminal's defaults)
STATUS_STYLES: dict[str, dict[StatusKind, str]] = {
    "auto": {
        StatusKind.INFO: "cyan",
        StatusKind.SUCCESS: "green",
        StatusKind.WARNING: "yellow",
        StatusKind.ERROR: "red",
    },
    "dark": {
        StatusKind.INFO: "bright_cyan",
        StatusKind.SUCCESS: "bright_green",
        StatusKind.WARNING: "bright_yellow",
        StatusKind.ERROR: "bright_red",
    },
    "light": {
        StatusKind.INFO: "blue",
        StatusKind.SUCCESS: "dark_green",
        StatusKind.WARNING: "dark_orange3",
        StatusKind.ERROR: "red3",
    },
}


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"docmost-clip {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to config.yaml"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log debug output to stderr."),
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Clip web pages into Docmost spaces.

    Commands:
        connect       - Log in to a Docmost server and remember it
        disconnect    - Forget the session
        clip          - Clip a page (URL, file, or browser tab)
        spaces        - List spaces
        create-space  - Create a space
        interactive   - Menu-driven clipper
    """
    try:
        loaded = get_config(config, reload=True)
    except ClipperError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    configure_logging("DEBUG" if verbose else loaded.log_level, loaded.log_file)
    ctx.obj = loaded


# ─── Helpers ──────────────────────────────────────────────────────────────────


def _print_state(state: ClipperState, theme: str = "auto") -> None:
    status = state.status
    if status is None:
        return
    style = STATUS_STYLES.get(theme, STATUS_STYLES["auto"])[status.kind]
    console.print(f"[{style}]{status.message}[/{style}]")


def _engine(config: ClipperConfig) -> TrafilaturaReadability:
    return TrafilaturaReadability.from_config(config)


async def _settle(
    session: ClipperSession,
    assume_yes: bool = False,
    attempts: int = AUTO_RETRY_ATTEMPTS,
    delay: float = AUTO_RETRY_DELAY,
) -> ClipperState:
    """Offer the pending retry until it succeeds or the user gives up.

    With assume_yes the retry runs unprompted, at most `attempts` times,
    doubling `delay` between tries.
    """
    theme = session.store.theme
    _print_state(session.state, theme)
    tries = 0
    while session.state.retry is not None:
        if assume_yes:
            if tries >= attempts:
                console.print(f"[red]Giving up after {attempts} retries.[/red]")
                break
            await asyncio.sleep(delay * 2**tries)
            tries += 1
        elif not await questionary.confirm("Retry?", default=True).ask_async():
            break
        await session.dispatch(Retry())
        _print_state(session.state, theme)
    return session.state


def _find_space(spaces: tuple[Space, ...], wanted: str) -> Space | None:
    lowered = wanted.lower()
    for space in spaces:
        if wanted == space.id or lowered in (space.slug.lower(), space.name.lower()):
            return space
    return None


def _run(coro: Coroutine[Any, Any, int]) -> None:
    code = asyncio.run(coro)
    if code:
        raise typer.Exit(code)


async def _started(config: ClipperConfig, probe: bool = True, **kwargs: Any) -> ClipperSession:
    session = ClipperSession(config, **kwargs)
    await session.start(probe=probe)
    return session


def _require_connected(session: ClipperSession) -> bool:
    if session.state.authenticated:
        return True
    _print_state(session.state, session.store.theme)
    if session.state.origin is None:
        console.print("[dim]Run 'docmost-clip connect URL' first.[/dim]")
    return False


# ─── Commands ─────────────────────────────────────────────────────────────────


@app.command()
def connect(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Docmost server URL, e.g. https://docs.example.com"),
    email: str = typer.Option(..., "--email", "-e", prompt=True),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirm a server change."),
) -> None:
    """Log in to a Docmost server and remember it."""

    async def run() -> int:
        config: ClipperConfig = ctx.obj
        session = await _started(config, probe=False)
        event = SubmitConnect(url, email, password)
        state = await session.dispatch(event)

        if state.pending_origin is not None:
            _print_state(state, session.store.theme)
            if not yes and not await questionary.confirm("Continue?", default=False).ask_async():
                return 1
            state = await session.dispatch(event)

        state = await _settle(session)
        if not state.authenticated:
            return 1
        console.print(f"[dim]{len(state.spaces)} space(s) available[/dim]")
        return 0

    _run(run())


@app.command()
def disconnect(ctx: typer.Context) -> None:
    """Forget the session cookie of the saved server."""

    async def run() -> int:
        config: ClipperConfig = ctx.obj
        session = await _started(config, probe=False)
        await session.dispatch(Disconnect())
        _print_state(session.state, session.store.theme)
        return 0

    _run(run())


@app.command()
def status(ctx: typer.Context) -> None:
    """Show the saved server and whether the session is still valid."""

    async def run() -> int:
        session = await _started(ctx.obj)
        state = await _settle(session)
        table = Table(show_header=False, box=None)
        table.add_row("Server", state.origin or "[dim]not set[/dim]")
        table.add_row("Session", "[green]valid[/green]" if state.authenticated else "[red]not connected[/red]")
        selected = state.selected_space
        table.add_row("Last space", selected.name if selected else "[dim]none[/dim]")
        table.add_row("Theme", session.store.theme)
        console.print(table)
        return 0 if state.authenticated else 1

    _run(run())


@app.command()
def spaces(ctx: typer.Context) -> None:
    """List the spaces of the saved server."""

    async def run() -> int:
        session = await _started(ctx.obj)
        await _settle(session)
        if not _require_connected(session):
            return 1
        table = Table(title="Spaces")
        table.add_column("Name", style="cyan")
        table.add_column("Slug")
        table.add_column("ID", style="dim")
        for space in session.state.spaces:
            marker = " *" if space.id == session.state.selected_space_id else ""
            table.add_row(f"{space.name}{marker}", space.slug, space.id)
        console.print(table)
        return 0

    _run(run())


@app.command("create-space")
def create_space(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the new space"),
) -> None:
    """Create a space on the saved server."""

    async def run() -> int:
        session = await _started(ctx.obj)
        await _settle(session)
        if not _require_connected(session):
            return 1
        await session.dispatch(SelectSpace(CREATE_NEW_SPACE))
        await session.dispatch(ConfirmCreateSpace(name))
        state = await _settle(session)
        return 0 if state.view is View.CLIPPER and state.selected_space_id else 1

    _run(run())


async def _open_bridge(
    config: ClipperConfig, target: str | None, cdp: bool, render: bool, pages: BrowserPages
) -> ContentBridge:
    engine = _engine(config)
    if cdp:
        return ContentBridge(PlaywrightPageChannel(await pages.attach(), engine))
    if target is None:
        raise typer.BadParameter("Give a URL or file to clip, or use --cdp.")
    if Path(target).expanduser().is_file():
        return ContentBridge(FilePageChannel(target, engine))
    if not target.startswith(("http://", "https://")):
        target = "https://" + target
    if render:
        return ContentBridge(PlaywrightPageChannel(await pages.open(target), engine))
    return ContentBridge(
        HttpPageChannel(
            target,
            engine,
            timeout=config.request_timeout,
            user_agent=config.user_agent,
        )
    )


async def _choose_space(session: ClipperSession) -> bool:
    """Prompt for a space (or a new one); return False if cancelled."""
    choices = [questionary.Choice(space.name, value=space.id) for space in session.state.spaces]
    choices.append(questionary.Choice("+ Create new space", value=CREATE_NEW_SPACE))
    picked = await questionary.select(
        "Space:", choices=choices, default=session.state.selected_space_id
    ).ask_async()
    if picked is None:
        return False
    await session.dispatch(SelectSpace(picked))
    if session.state.view is View.CREATE_SPACE:
        name = await questionary.text("New space name:").ask_async()
        if not name:
            await session.dispatch(CancelCreateSpace())
            return False
        await session.dispatch(ConfirmCreateSpace(name))
        await _settle(session)
    return session.state.view is View.CLIPPER and session.state.selected_space_id is not None


@app.command()
def clip(
    ctx: typer.Context,
    target: str | None = typer.Argument(None, help="URL or local HTML file"),
    space: str | None = typer.Option(None, "--space", "-s", help="Space id, slug or name"),
    title: str | None = typer.Option(None, "--title", "-t", help="Override the page title"),
    note: str = typer.Option("", "--note", "-n", help="Note shown above the clip"),
    selection: bool = typer.Option(False, "--selection", help="Clip only the selected text"),
    cdp: bool = typer.Option(False, "--cdp", help="Clip the active tab of a browser on the CDP port"),
    render: bool = typer.Option(False, "--render", help="Render the URL in a browser first"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Retry failures without asking"),
) -> None:
    """Clip a page into a Docmost space."""

    async def run() -> int:
        config: ClipperConfig = ctx.obj
        pages = BrowserPages(config)
        try:
            bridge = await _open_bridge(config, target, cdp, render, pages)
            session = await _started(config, bridge=bridge)
            await _settle(session, assume_yes=yes)
            if not _require_connected(session):
                return 1

            state = session.state
            if state.snapshot is None:
                return 1
            if space is not None:
                found = _find_space(state.spaces, space)
                if found is None:
                    console.print(f"[red]No space matches '{space}'.[/red]")
                    return 1
                await session.dispatch(SelectSpace(found.id))
            elif state.selected_space_id is None and not await _choose_space(session):
                _print_state(session.state, session.store.theme)
                return 1

            if selection and not state.snapshot.has_selection:
                console.print("[yellow]No selection on the page; clipping the article.[/yellow]")
            await session.dispatch(Clip(ClipOptions(title=title, note=note, use_selection=selection)))
            await _settle(session, assume_yes=yes)
            return 0 if session.closed else 1
        except ClipperError as e:
            console.print(f"[red]{e}[/red]")
            return 1
        finally:
            await pages.close()

    _run(run())


@app.command()
def theme(
    ctx: typer.Context,
    value: str | None = typer.Argument(None, help=f"One of: {', '.join(THEMES)}"),
) -> None:
    """Show or set the colour theme."""
    config: ClipperConfig = ctx.obj
    store = StateStore(config.get_state_path())
    if value is None:
        console.print(store.theme)
        return
    try:
        store.set_theme(value)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    console.print(f"Theme set to {value}")


# ─── Interactive mode ─────────────────────────────────────────────────────────


class InteractiveClipper:
    """Menu-driven front end; one run is one clipper activation."""

    def __init__(self, config: ClipperConfig, session: ClipperSession) -> None:
        self.config = config
        self.session = session

    @property
    def state(self) -> ClipperState:
        return self.session.state

    def print_header(self) -> None:
        console.clear()
        subtitle = {
            View.SETTINGS: "Settings",
            View.CLIPPER: "Clip page",
            View.CREATE_SPACE: "New space",
        }[self.state.view]
        console.print(f"[bold #5c9aff]{APP_NAME}[/bold #5c9aff]")
        console.print(f"[#6b7280]{subtitle}[/#6b7280]")
        if self.state.origin:
            marker = "[green]●[/green]" if self.state.authenticated else "[#6b7280]○[/#6b7280]"
            console.print(f"{marker} {self.state.origin}")
        snapshot = self.state.snapshot
        if self.state.view is View.CLIPPER and snapshot is not None:
            console.print(f"  [dim]{snapshot.title[:60]}[/dim]")
            selected = self.state.selected_space
            console.print(f"  [cyan]Space:[/cyan] {selected.name if selected else '-'}")
        console.print()
        _print_state(self.state, self.session.store.theme)

    def menu(self) -> list[questionary.Choice]:
        state = self.state
        choices: list[questionary.Choice] = []
        if state.retry is not None:
            choices.append(questionary.Choice("Retry", value="retry", shortcut_key="r"))
        if state.view is View.SETTINGS:
            choices.append(questionary.Choice("Connect", value="connect", shortcut_key="c"))
            if state.authenticated:
                choices.append(questionary.Choice("Back to clipper", value="close_settings", shortcut_key="b"))
                choices.append(questionary.Choice("Disconnect", value="disconnect", shortcut_key="d"))
            choices.append(questionary.Choice("Theme", value="theme", shortcut_key="t"))
        elif state.view is View.CLIPPER:
            choices.append(questionary.Choice("Select space", value="select", shortcut_key="s"))
            choices.append(questionary.Choice("Clip page", value="clip", shortcut_key="p"))
            if state.snapshot is not None and state.snapshot.has_selection:
                choices.append(questionary.Choice("Clip selection", value="clip_selection", shortcut_key="l"))
            choices.append(questionary.Choice("Settings", value="settings", shortcut_key="g"))
        else:
            choices.append(questionary.Choice("Name the space", value="create", shortcut_key="n"))
            choices.append(questionary.Choice("Cancel", value="cancel", shortcut_key="x"))
        choices.append(questionary.Choice("Quit", value="quit", shortcut_key="q"))
        return choices

    async def run(self) -> None:
        """Main loop."""
        await self.session.start()
        while not self.session.closed:
            self.print_header()
            action = await questionary.select("Action:", choices=self.menu()).ask_async()
            if action is None or action == "quit":
                break
            await self.handle(action)
        if self.session.closed:
            _print_state(self.state, self.session.store.theme)

    async def handle(self, action: str) -> None:
        """Dispatch action."""
        handlers: dict[str, Callable[[], Awaitable[None]]] = {
            "retry": self._action_retry,
            "connect": self._action_connect,
            "close_settings": lambda: self._dispatch(CloseSettings()),
            "disconnect": lambda: self._dispatch(Disconnect()),
            "theme": self._action_theme,
            "select": self._action_select,
            "clip": lambda: self._action_clip(False),
            "clip_selection": lambda: self._action_clip(True),
            "settings": lambda: self._dispatch(OpenSettings()),
            "create": self._action_create,
            "cancel": lambda: self._dispatch(CancelCreateSpace()),
        }
        handler = handlers.get(action)
        if handler:
            await handler()

    async def _dispatch(self, event: Any) -> None:
        await self.session.dispatch(event)

    async def _action_retry(self) -> None:
        await self.session.dispatch(Retry())

    async def _action_connect(self) -> None:
        url = await questionary.text("Docmost URL:", default=self.state.origin or "").ask_async()
        if not url:
            return
        email = await questionary.text("Email:").ask_async()
        password = await questionary.password("Password:").ask_async()
        if email is None or password is None:
            return
        await self.session.dispatch(SubmitConnect(url, email, password))

    async def _action_theme(self) -> None:
        store = self.session.store
        picked = await questionary.select("Theme:", choices=list(THEMES), default=store.theme).ask_async()
        if picked:
            store.set_theme(picked)

    async def _action_select(self) -> None:
        await _choose_space(self.session)

    async def _action_create(self) -> None:
        name = await questionary.text("New space name:").ask_async()
        if name is not None:
            await self.session.dispatch(ConfirmCreateSpace(name))

    async def _action_clip(self, use_selection: bool) -> None:
        snapshot = self.state.snapshot
        default_title = snapshot.title if snapshot else ""
        title = await questionary.text("Title:", default=default_title).ask_async()
        if title is None:
            return
        note = await questionary.text("Note (optional):").ask_async()
        options = ClipOptions(
            title=title if title != default_title else None,
            note=note or "",
            use_selection=use_selection,
        )
        await self.session.dispatch(Clip(options))


@app.command()
def interactive(
    ctx: typer.Context,
    target: str | None = typer.Argument(None, help="URL or local HTML file"),
    cdp: bool = typer.Option(False, "--cdp", help="Clip the active tab of a browser on the CDP port"),
    render: bool = typer.Option(False, "--render", help="Render the URL in a browser first"),
) -> None:
    """Menu-driven clipper."""

    async def run() -> int:
        config: ClipperConfig = ctx.obj
        pages = BrowserPages(config)
        try:
            bridge = None
            if cdp or target:
                bridge = await _open_bridge(config, target, cdp, render, pages)
            session = ClipperSession(config, bridge=bridge)
            await InteractiveClipper(config, session).run()
            return 0
        except ClipperError as e:
            console.print(f"[red]{e}[/red]")
            return 1
        except KeyboardInterrupt:
            return 130
        finally:
            await pages.close()

    _run(run())


def cli() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    cli()
