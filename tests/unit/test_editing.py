"""
Unit tests for EditSession.
"""

import plistlib

import pytest

from launchagents_tui.dash.document import FormField, PlistDocument
from launchagents_tui.dash.editing import EditSession
from launchagents_tui.errors import EditSessionError, FieldCoercionError


@pytest.fixture
def doc():
    return PlistDocument.loads(plistlib.dumps({"Label": "x", "StartInterval": 60}))


class TestEditSession:
    def test_begin_fills_buffer(self):
        s = EditSession()
        s.begin(FormField.START_INTERVAL, "60")
        assert s.active
        assert s.buffer == "60"
        assert s.original == "60"

    def test_commit_writes_and_closes(self, doc):
        s = EditSession()
        s.begin(FormField.START_INTERVAL, doc.field_value(FormField.START_INTERVAL))
        s.backspace()
        s.backspace()
        for c in "120":
            s.type_char(c)
        assert s.commit(doc) is FormField.START_INTERVAL
        assert doc.raw(FormField.START_INTERVAL) == 120
        assert not s.active

    def test_rejected_commit_keeps_session_and_document(self, doc):
        before = doc.serialize()
        s = EditSession()
        s.begin(FormField.START_INTERVAL, "60")
        s.type_char("x")
        with pytest.raises(FieldCoercionError):
            s.commit(doc)
        assert s.active
        assert s.buffer == "60x"
        assert doc.serialize() == before

    def test_cancel_leaves_document_alone(self, doc):
        before = doc.serialize()
        s = EditSession()
        s.begin(FormField.LABEL, "x")
        s.type_char("y")
        s.cancel()
        assert not s.active
        assert doc.serialize() == before

    def test_second_begin_is_a_contract_violation(self):
        s = EditSession()
        s.begin(FormField.LABEL, "")
        with pytest.raises(EditSessionError):
            s.begin(FormField.PROGRAM, "")

    def test_newline_only_for_multiline_fields(self):
        s = EditSession()
        s.begin(FormField.LABEL, "a")
        s.newline()
        assert s.buffer == "a"
        s.cancel()
        s.begin(FormField.PROGRAM_ARGUMENTS, "a")
        s.newline()
        s.type_char("b")
        assert s.buffer == "a\nb"

    def test_backspace_on_empty_buffer(self):
        s = EditSession()
        s.begin(FormField.LABEL, "")
        s.backspace()
        assert s.buffer == ""

    def test_typing_without_session_raises(self):
        with pytest.raises(EditSessionError):
            EditSession().type_char("a")
