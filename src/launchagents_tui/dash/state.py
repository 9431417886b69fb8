"""Application state and keyboard routing for the dashboard.

AppState is the one object the Textual app mutates. Key handling here is
synchronous; work that has to wait on launchctl is handed back to the caller
as an Intent and its result is fed in again through ``apply_save_outcome``
or ``after_refresh``.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from .catalog import AgentCatalog
from .document import FIELD_ORDER, FormField, PlistDocument
from .editing import EditSession
from .focus import FocusController
from .models import Agent, Category, Focus, Saved, SavedButReloadFailed, SaveFailed, SaveOutcome
from .search import SearchState
from ..errors import FieldCoercionError, ParseError


logger = logging.getLogger(__name__)


class Intent(Enum):
    NONE = "none"
    SAVE = "save"
    REFRESH = "refresh"
    QUIT = "quit"


CATEGORY_KEYS = {"1": Category.USER, "2": Category.GLOBAL, "3": Category.SYSTEM}

NAV_DOWN = {"down", "j"}
NAV_UP = {"up", "k"}


def _printable(character: str | None) -> bool:
    return character is not None and len(character) == 1 and character.isprintable()


class AppState:
    def __init__(self, catalog: AgentCatalog, category: Category = Category.USER) -> None:
        self.catalog = catalog
        self.category = category
        self.focus = FocusController()
        self.search = SearchState()
        self.session = EditSession()
        self.document: PlistDocument | None = None
        self.open_path: Path | None = None
        self.field_index = 0
        self.status_message = ""
        self.status_serial = 0
        self.saving = False
        # Document and revision handed to the running save
        self._saved_document: PlistDocument | None = None
        self._saved_revision = 0

    # -- derived views -----------------------------------------------------

    @property
    def agents(self) -> list[Agent]:
        return self.catalog.agents(self.category)

    def visible_indices(self) -> list[int]:
        return self.search.indices(self.agents, self.catalog.generation(self.category))

    def visible_agents(self) -> list[Agent]:
        agents = self.agents
        return [agents[i] for i in self.visible_indices()]

    def counts(self) -> tuple[int, int]:
        return self.search.counts(self.agents, self.catalog.generation(self.category))

    def selected_agent(self) -> Agent | None:
        return self.catalog.selected(self.category)

    def selected_row(self) -> int | None:
        path = self.catalog.selected_path(self.category)
        if path is None:
            return None
        for row, agent in enumerate(self.visible_agents()):
            if agent.path == path:
                return row
        return None

    @property
    def current_field(self) -> FormField:
        return FIELD_ORDER[self.field_index]

    def set_status(self, message: str) -> None:
        self.status_message = message
        self.status_serial += 1

    def expire_status(self, serial: int) -> bool:
        """Clear the status line if it still shows message number ``serial``.

        The line of a running save stays until its outcome replaces it.
        """
        if serial != self.status_serial or self.saving or not self.status_message:
            return False
        self.status_message = ""
        return True

    # -- key routing -------------------------------------------------------

    def handle_key(self, key: str, character: str | None = None) -> Intent:
        focus = self.focus.current
        if focus is Focus.EXIT_CONFIRM:
            return self._exit_keys(key, character)
        if focus is Focus.EDITING_FIELD:
            self._edit_keys(key, character)
            return Intent.NONE

        if key in ("escape", "ctrl+c") or character == "q":
            self.focus.request_exit()
            return Intent.NONE
        if key == "tab":
            self.focus.tab()
            return Intent.NONE
        if character == "/":
            self.focus.focus_search()
            return Intent.NONE
        if key == "ctrl+s":
            return self.request_save()
        if key == "ctrl+r":
            return Intent.REFRESH
        if focus is not Focus.SEARCH and character in CATEGORY_KEYS:
            self.switch_category(CATEGORY_KEYS[character])
            return Intent.NONE

        if focus is Focus.SEARCH:
            self._search_keys(key, character)
        elif focus is Focus.SIDEBAR:
            self._sidebar_keys(key, character)
        elif focus is Focus.FORM:
            self._form_keys(key, character)
        return Intent.NONE

    def _exit_keys(self, key: str, character: str | None) -> Intent:
        if character in ("y", "Y") or key == "ctrl+c":
            self.focus.confirm_exit()
            return Intent.QUIT
        if character in ("n", "N") or key == "escape":
            self.focus.cancel_exit()
        return Intent.NONE

    def _search_keys(self, key: str, character: str | None) -> None:
        if key == "enter":
            self.focus.focus_sidebar()
        elif key == "backspace":
            self.search.backspace()
            self._select_first_visible()
        elif _printable(character):
            self.search.append(character)  # type: ignore[arg-type]
            self._select_first_visible()

    def _sidebar_keys(self, key: str, character: str | None) -> None:
        visible = self.visible_agents()
        if not visible:
            return
        row = self.selected_row()
        last = len(visible) - 1
        if key in NAV_DOWN:
            row = 0 if row is None or row >= last else row + 1
        elif key in NAV_UP:
            row = last if row is None or row == 0 else row - 1
        elif character == "g":
            row = 0
        elif character == "G":
            row = last
        elif key == "enter":
            self.open_selected()
            return
        else:
            return
        self.catalog.select(self.category, visible[row].path)

    def _form_keys(self, key: str, character: str | None) -> None:
        if key in NAV_DOWN:
            self.field_index = (self.field_index + 1) % len(FIELD_ORDER)
        elif key in NAV_UP:
            self.field_index = (self.field_index - 1) % len(FIELD_ORDER)
        elif key == "enter":
            self.begin_edit()

    def _edit_keys(self, key: str, character: str | None) -> None:
        if key == "enter":
            self.commit_edit()
        elif key == "escape":
            self.cancel_edit()
        elif key == "backspace":
            self.session.backspace()
        elif key == "ctrl+n":
            self.session.newline()
        elif _printable(character):
            self.session.type_char(character)  # type: ignore[arg-type]

    # -- operations --------------------------------------------------------

    def _select_first_visible(self) -> None:
        visible = self.visible_agents()
        self.catalog.select(self.category, visible[0].path if visible else None)

    def switch_category(self, category: Category) -> None:
        if category is self.category:
            return
        self.category = category
        self.search.clear()
        self.document = None
        self.open_path = None
        self.field_index = 0
        if self.focus.current is Focus.FORM:
            self.focus.focus_sidebar()
        self._select_first_visible()

    def open_selected(self) -> bool:
        agent = self.selected_agent()
        if agent is None:
            self.set_status("✗ No agent selected")
            return False
        try:
            document = PlistDocument.load(agent.path)
        except ParseError as e:
            logger.info("could not open %s: %s", agent.path, e)
            self.set_status(f"✗ {e}")
            return False
        discarded = self.document is not None and self.document.dirty and self.open_path != agent.path
        self.document = document
        self.open_path = agent.path
        self.field_index = 0
        self.focus.open_form()
        if discarded:
            self.set_status(f"Loaded {agent.filename} (unsaved edits discarded)")
        else:
            self.set_status(f"Loaded {agent.filename}")
        return True

    def begin_edit(self) -> bool:
        if self.document is None:
            self.set_status("✗ No descriptor loaded")
            return False
        field = self.current_field
        if not self.document.is_editable(field):
            kind = type(self.document.raw(field)).__name__
            self.set_status(f"✗ {field.key} holds a {kind} value and cannot be edited here")
            return False
        self.session.begin(field, self.document.field_value(field))
        self.focus.begin_edit()
        return True

    def commit_edit(self) -> bool:
        assert self.document is not None
        try:
            field = self.session.commit(self.document)
        except FieldCoercionError as e:
            self.set_status(f"✗ {e}")
            return False
        self.focus.end_edit()
        self.set_status(f"✓ Updated {field.key}")
        return True

    def cancel_edit(self) -> None:
        self.session.cancel()
        self.focus.end_edit()
        self.set_status("✗ Edit cancelled")

    def request_save(self) -> Intent:
        if self.document is None or self.open_path is None:
            self.set_status("✗ No plist data to save")
            return Intent.NONE
        if self.saving:
            self.set_status("Save already in progress")
            return Intent.NONE
        self.saving = True
        self.set_status(f"Saving {self.open_path.name}…")
        return Intent.SAVE

    def save_target(self) -> tuple[Agent, PlistDocument]:
        assert self.document is not None and self.open_path is not None
        hit = self.catalog.find(self.open_path)
        agent = hit[1] if hit else Agent(path=self.open_path)
        self._saved_document = self.document
        self._saved_revision = self.document.revision
        return agent, self.document

    def apply_save_outcome(self, outcome: SaveOutcome) -> None:
        """Report a finished save and sync the open document with the file.

        The document is replaced by the re-read file only when it is the one
        that was saved and nothing was edited since; later edits stay dirty.
        """
        self.saving = False
        saved_document, saved_revision = self._saved_document, self._saved_revision
        self._saved_document = None
        name = outcome.path.name
        if isinstance(outcome, SaveFailed):
            self.set_status(f"✗ Save failed: {outcome.error}")
            return
        if isinstance(outcome, SavedButReloadFailed):
            message = f"✓ Saved {name} but reload failed: {outcome.diagnostic}"
        else:
            message = f"✓ Saved {name} and reloaded"

        try:
            fresh: PlistDocument | None = PlistDocument.load(outcome.path)
        except ParseError as e:
            logger.warning("re-reading %s after save failed: %s", outcome.path, e)
            fresh = None
        if fresh is not None:
            self.catalog.update_label(outcome.path, fresh.label)

        document = self.document
        if document is not None and document is saved_document and self.open_path == outcome.path:
            if document.revision != saved_revision:
                message += "; edits made while saving are not saved yet"
            elif fresh is not None:
                self.document = fresh
            else:
                document.dirty = False
        self.set_status(message)

    def after_refresh(self, category: Category) -> None:
        if category is not self.category:
            return
        if self.selected_row() is None:
            self._select_first_visible()
        if self.open_path is not None and self.catalog.find(self.open_path) is None:
            if self.document is not None and self.document.dirty:
                self.set_status(f"{self.open_path.name} is no longer on disk; unsaved edits kept")
            else:
                self.set_status(f"{self.open_path.name} is no longer on disk")
