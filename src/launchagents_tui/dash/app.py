from __future__ import annotations

import asyncio
import logging
from asyncio import Task
from contextlib import suppress
from pathlib import Path

from rich.text import Text
from textual import events, on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.message import Message
from textual.screen import Screen
from textual.timer import Timer
from textual.widgets import DataTable, Label, LoadingIndicator, Static

from .catalog import AgentCatalog
from .document import FIELD_ORDER
from .models import Agent, AgentStatus, Category, Focus, SaveFailed, SaveOutcome
from .reload import ReloadCoordinator
from .state import AppState, Intent
from ..config import Settings
from ..launchctl import LaunchctlManager


logger = logging.getLogger(__name__)

STATUS_ICONS = {
    AgentStatus.RUNNING: ("●", "green"),
    AgentStatus.STOPPED: ("●", "red"),
    AgentStatus.ERROR: ("✗", "red"),
    AgentStatus.UNKNOWN: ("?", "grey50"),
}

HINTS = {
    Focus.SEARCH: "🔍 Type to filter agents | Enter=Focus sidebar, Tab=Next panel",
    Focus.SIDEBAR: "📋 j/k=Navigate, Enter=Load, /=Search, 1/2/3=Switch tabs, Ctrl+R=Rescan",
    Focus.FORM: "⚙️  j/k=Navigate fields, Enter=Edit, Ctrl+S=Save | Tab=Switch panel, 1/2/3=Switch tabs",
    Focus.EDITING_FIELD: "✏️  Enter=Save field, Esc=Cancel",
    Focus.EXIT_CONFIRM: "Quit? y=Yes, n=No",
}

MAX_NAME = 35

# Seconds a status message stays before the key hints come back
STATUS_TTL = 5.0


class SaveFinished(Message):
    def __init__(self, outcome: SaveOutcome) -> None:
        super().__init__()
        self.outcome = outcome


class CategoryRefreshed(Message):
    def __init__(self, category: Category) -> None:
        super().__init__()
        self.category = category


class DiscoveryFinished(Message):
    def __init__(self, error: str | None = None) -> None:
        super().__init__()
        self.error = error


def _short(name: str) -> str:
    return name if len(name) <= MAX_NAME else f"{name[:MAX_NAME - 3]}..."


def _one_line(value: str) -> str:
    return value.replace("\n", " · ")


class LoadingScreen(Screen):
    """Shown while the first scan of every category runs; q or Esc quits."""

    AUTO_FOCUS = None

    def compose(self) -> ComposeResult:
        with Container(id="loading"):
            yield Label("Discovering LaunchAgents…", id="loading-title")
            yield LoadingIndicator()
            yield Label("q/Esc to quit", id="loading-hint")

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        if event.key == "escape" or event.character == "q":
            self.app.exit()


class DashboardScreen(Screen):
    """Single screen; every key goes through AppState.handle_key."""

    AUTO_FOCUS = None

    def compose(self) -> ComposeResult:
        with Container(id="header"):
            with Horizontal(id="header-row"):
                yield Label("LaunchAgents", id="title")
                yield Static(id="categories")
            yield Static(id="search")

        with Horizontal(id="body"):
            with Container(id="content-left"):
                table = DataTable(zebra_stripes=True, cursor_type="row", id="agents")
                table.can_focus = False
                table.add_columns("St", "En", "Agent")
                yield table
            with Container(id="content-right"):
                form = DataTable(cursor_type="row", id="form")
                form.can_focus = False
                form.add_columns("Field", "Value")
                yield form
                yield Static(id="editor")

        with Container(id="exit-confirm"):
            yield Label("Quit LaunchAgents? (y/n)")
        yield Static(id="status")

    def on_mount(self) -> None:
        self.render_state()

    async def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self.app.route_key(event.key, event.character)  # type: ignore[attr-defined]

    def render_state(self) -> None:
        state: AppState = self.app.state  # type: ignore[attr-defined]
        focus = state.focus.current
        self._render_categories(state)
        self._render_search(state, focus)
        self._render_agents(state, focus)
        self._render_form(state, focus)
        self._render_editor(state, focus)
        self.query_one("#exit-confirm").display = focus is Focus.EXIT_CONFIRM
        status = state.status_message or HINTS[focus]
        self.query_one("#status", Static).update(Text(status))

    def _render_categories(self, state: AppState) -> None:
        text = Text()
        for i, category in enumerate(Category, start=1):
            style = "bold reverse" if category is state.category else "dim"
            text.append(f" {i} {category.title} ", style=style)
            text.append(" ")
        self.query_one("#categories", Static).update(text)

    def _render_search(self, state: AppState, focus: Focus) -> None:
        search = self.query_one("#search", Static)
        search.set_class(focus is Focus.SEARCH, "focused")
        if state.search.query or focus is Focus.SEARCH:
            line = Text(f"🔍 {state.search.query}")
            if focus is Focus.SEARCH:
                line.append("▏", style="bold")
        else:
            line = Text("🔍 Search name or label (/)", style="dim")
        search.update(line)

    def _render_agents(self, state: AppState, focus: Focus) -> None:
        panel = self.query_one("#content-left")
        panel.set_class(focus is Focus.SIDEBAR, "focused")
        matched, total = state.counts()
        panel.border_title = f"{state.category.title} ({matched}/{total})"
        table = self.query_one("#agents", DataTable)
        table.clear(columns=False)
        for agent in state.visible_agents():
            self._add_row(table, agent)
        row = state.selected_row()
        table.show_cursor = row is not None
        if row is not None:
            table.cursor_coordinate = (row, 0)

    def _add_row(self, table: DataTable, agent: Agent) -> None:
        icon, color = STATUS_ICONS[agent.status]
        enabled = Text("◉", style="cyan") if agent.enabled else Text("○", style="grey50")
        table.add_row(Text(icon, style=f"bold {color}"), enabled, _short(agent.display_name))

    def _render_form(self, state: AppState, focus: Focus) -> None:
        panel = self.query_one("#content-right")
        panel.set_class(focus in (Focus.FORM, Focus.EDITING_FIELD), "focused")
        form = self.query_one("#form", DataTable)
        form.clear(columns=False)
        document = state.document
        if document is None:
            panel.border_title = "Descriptor"
            form.add_row("", Text("Select an agent and press Enter", style="dim"))
            form.show_cursor = False
            return
        panel.border_title = state.open_path.name if state.open_path else "Descriptor"
        if document.dirty:
            panel.border_title += " *"
        for field in FIELD_ORDER:
            value = document.field_value(field)
            shown = Text(_one_line(value)) if value else Text("(unset)", style="dim")
            if not document.is_editable(field):
                shown.stylize("italic")
            form.add_row(field.key, shown)
        form.show_cursor = focus in (Focus.FORM, Focus.EDITING_FIELD)
        form.cursor_coordinate = (state.field_index, 0)

    def _render_editor(self, state: AppState, focus: Focus) -> None:
        editor = self.query_one("#editor", Static)
        session = state.session
        editing = focus is Focus.EDITING_FIELD and session.field is not None
        editor.display = editing
        if not editing:
            return
        field = session.field
        hint = "Enter=Save, Esc=Cancel"
        if field.multiline:  # type: ignore[union-attr]
            hint += ", Ctrl+N=New line"
        editor.border_title = f"Editing {field.key}"  # type: ignore[union-attr]
        body = Text(session.buffer)
        body.append("▏", style="bold")
        body.append(f"\n{hint}", style="dim")
        editor.update(body)


class LaunchAgentsApp(App):
    CSS_PATH = Path(__file__).with_name("app.tcss")
    TITLE = "LaunchAgents"
    ENABLE_COMMAND_PALETTE = False
    BINDINGS = [
        Binding("ctrl+c", "interrupt", "Quit", show=False, priority=True),
    ]

    def __init__(
        self,
        state: AppState,
        coordinator: ReloadCoordinator,
        status_interval: float = 10.0,
        status_ttl: float = STATUS_TTL,
        discover: bool = False,
    ) -> None:
        super().__init__()
        self.state = state
        self.coordinator = coordinator
        self.status_interval = status_interval
        self.status_ttl = status_ttl
        self.discover = discover
        self._status_task: Task | None = None
        self._tasks: set[Task] = set()
        self._status_timer: Timer | None = None
        self._status_serial = 0

    def get_default_screen(self) -> Screen:
        return DashboardScreen()

    async def on_mount(self) -> None:
        if self.discover:
            self.push_screen(LoadingScreen())
            self._spawn(self._run_discovery())
        if self.status_interval > 0:
            self._status_task = asyncio.create_task(self._periodic_status_refresh())

    async def on_unmount(self) -> None:
        if self._status_task and not self._status_task.done():
            self._status_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._status_task
        for task in list(self._tasks):
            if not task.done():
                task.cancel()

    def action_interrupt(self) -> None:
        if isinstance(self.screen, LoadingScreen):
            self.exit()
            return
        self.route_key("ctrl+c", None)

    def route_key(self, key: str, character: str | None) -> None:
        intent = self.state.handle_key(key, character)
        if intent is Intent.QUIT:
            self.exit()
            return
        if intent is Intent.SAVE:
            self._spawn(self._run_save())
        elif intent is Intent.REFRESH:
            self.state.set_status(f"Rescanning {self.state.category.title}…")
            self._spawn(self._run_refresh(self.state.category))
        self.render_state()

    def render_state(self) -> None:
        screen = self.screen
        if isinstance(screen, DashboardScreen):
            screen.render_state()
        self._arm_status_timer()

    def _arm_status_timer(self) -> None:
        serial = self.state.status_serial
        if serial == self._status_serial or not self.state.status_message or self.status_ttl <= 0:
            return
        self._status_serial = serial
        if self._status_timer is not None:
            self._status_timer.stop()
        self._status_timer = self.set_timer(self.status_ttl, lambda: self._expire_status(serial))

    def _expire_status(self, serial: int) -> None:
        if self.state.expire_status(serial):
            self.render_state()

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_save(self) -> None:
        agent, document = self.state.save_target()
        try:
            outcome = await self.coordinator.save(agent, document)
        except Exception as e:
            logger.exception("unexpected error while saving %s", agent.path)
            outcome = SaveFailed(path=agent.path, error=str(e))
        self.post_message(SaveFinished(outcome))

    async def _run_discovery(self) -> None:
        error = None
        try:
            await asyncio.gather(*(self.state.catalog.refresh(c) for c in Category))
        except Exception as e:
            logger.exception("initial discovery failed")
            error = str(e)
        self.post_message(DiscoveryFinished(error))

    async def _run_refresh(self, category: Category) -> None:
        await self.state.catalog.refresh(category)
        self.post_message(CategoryRefreshed(category))

    @on(SaveFinished)
    def _on_save_finished(self, message: SaveFinished) -> None:
        self.state.apply_save_outcome(message.outcome)
        self.render_state()

    @on(DiscoveryFinished)
    def _on_discovery_finished(self, message: DiscoveryFinished) -> None:
        if isinstance(self.screen, LoadingScreen):
            self.pop_screen()
        self.state.after_refresh(self.state.category)
        if message.error:
            self.state.set_status(f"✗ Discovery failed: {message.error}")
        self.render_state()

    @on(CategoryRefreshed)
    def _on_category_refreshed(self, message: CategoryRefreshed) -> None:
        self.state.after_refresh(message.category)
        if message.category is self.state.category and self.state.status_message.startswith("Rescanning"):
            _, total = self.state.counts()
            self.state.set_status(f"Found {total} agents")
        self.render_state()

    async def _periodic_status_refresh(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.status_interval)
                # Leave statuses alone while a field is open or a save is running
                if self.state.focus.current is Focus.EDITING_FIELD or self.state.saving:
                    continue
                await self.state.catalog.reprobe_all(self.state.category)
                self.render_state()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("periodic status refresh failed")
                continue


def build_state(settings: Settings) -> tuple[AppState, ReloadCoordinator]:
    manager = LaunchctlManager(launchctl=settings.launchctl, timeout=settings.timeout)
    catalog = AgentCatalog(roots={c: settings.root(c) for c in Category}, manager=manager)
    coordinator = ReloadCoordinator(catalog=catalog, manager=manager)
    return AppState(catalog), coordinator


def run_dash(settings: Settings) -> int:
    state, coordinator = build_state(settings)
    # Every category is scanned behind the loading screen once the app is up
    app = LaunchAgentsApp(
        state=state,
        coordinator=coordinator,
        status_interval=settings.status_interval,
        discover=True,
    )
    app.run()
    return app.return_code or 0
