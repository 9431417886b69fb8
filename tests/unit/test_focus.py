"""
Unit tests for FocusController transitions.
"""

import pytest

from launchagents_tui.dash.focus import FocusController
from launchagents_tui.dash.models import Focus
from launchagents_tui.errors import FocusTransitionError


class TestFocusController:
    def test_starts_on_sidebar(self):
        assert FocusController().current is Focus.SIDEBAR

    def test_tab_cycle(self):
        f = FocusController()
        assert f.tab() is Focus.FORM
        assert f.tab() is Focus.SEARCH
        assert f.tab() is Focus.SIDEBAR

    def test_search_from_any_panel(self):
        f = FocusController()
        f.tab()
        assert f.focus_search() is Focus.SEARCH

    def test_edit_round_trip(self):
        f = FocusController()
        f.open_form()
        assert f.begin_edit() is Focus.EDITING_FIELD
        assert f.modal
        assert f.end_edit() is Focus.FORM

    def test_editing_blocks_navigation(self):
        f = FocusController()
        f.open_form()
        f.begin_edit()
        for move in (f.tab, f.focus_search, f.request_exit, f.focus_sidebar):
            with pytest.raises(FocusTransitionError):
                move()
        assert f.current is Focus.EDITING_FIELD

    def test_exit_remembers_prior_state(self):
        f = FocusController()
        f.tab()
        f.tab()
        assert f.current is Focus.SEARCH
        f.request_exit()
        assert f.current is Focus.EXIT_CONFIRM
        assert f.cancel_exit() is Focus.SEARCH

    def test_exit_cannot_stack(self):
        f = FocusController()
        f.request_exit()
        with pytest.raises(FocusTransitionError):
            f.request_exit()

    def test_open_form_only_from_sidebar(self):
        f = FocusController()
        f.focus_search()
        with pytest.raises(FocusTransitionError):
            f.open_form()

    def test_begin_edit_only_from_form(self):
        with pytest.raises(FocusTransitionError):
            FocusController().begin_edit()
