from __future__ import annotations

from .models import Focus
from ..errors import FocusTransitionError


TAB_CYCLE = {
    Focus.SEARCH: Focus.SIDEBAR,
    Focus.SIDEBAR: Focus.FORM,
    Focus.FORM: Focus.SEARCH,
}

_LOCKED = (Focus.EDITING_FIELD, Focus.EXIT_CONFIRM)


class FocusController:
    """Owns the single active panel and the legal moves between panels.

    EDITING_FIELD and EXIT_CONFIRM are modal: only their own exits leave them.
    """

    def __init__(self) -> None:
        self.current: Focus = Focus.SIDEBAR
        self._before_exit: Focus | None = None

    @property
    def modal(self) -> bool:
        return self.current in _LOCKED

    def tab(self) -> Focus:
        if self.modal:
            raise FocusTransitionError(f"tab is not allowed in {self.current.value}")
        self.current = TAB_CYCLE[self.current]
        return self.current

    def focus_search(self) -> Focus:
        if self.modal:
            raise FocusTransitionError(f"search is not reachable from {self.current.value}")
        self.current = Focus.SEARCH
        return self.current

    def focus_sidebar(self) -> Focus:
        if self.modal:
            raise FocusTransitionError(f"sidebar is not reachable from {self.current.value}")
        self.current = Focus.SIDEBAR
        return self.current

    def open_form(self) -> Focus:
        """Sidebar -> Form, called only after the document loaded."""
        if self.current is not Focus.SIDEBAR:
            raise FocusTransitionError(f"cannot open the form from {self.current.value}")
        self.current = Focus.FORM
        return self.current

    def begin_edit(self) -> Focus:
        if self.current is not Focus.FORM:
            raise FocusTransitionError(f"cannot edit a field from {self.current.value}")
        self.current = Focus.EDITING_FIELD
        return self.current

    def end_edit(self) -> Focus:
        if self.current is not Focus.EDITING_FIELD:
            raise FocusTransitionError("no field is being edited")
        self.current = Focus.FORM
        return self.current

    def request_exit(self) -> Focus:
        if self.modal:
            raise FocusTransitionError(f"exit cannot be requested from {self.current.value}")
        self._before_exit = self.current
        self.current = Focus.EXIT_CONFIRM
        return self.current

    def cancel_exit(self) -> Focus:
        if self.current is not Focus.EXIT_CONFIRM or self._before_exit is None:
            raise FocusTransitionError("exit confirmation is not showing")
        self.current = self._before_exit
        self._before_exit = None
        return self.current

    def confirm_exit(self) -> None:
        if self.current is not Focus.EXIT_CONFIRM:
            raise FocusTransitionError("exit confirmation is not showing")
