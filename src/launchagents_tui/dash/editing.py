from __future__ import annotations

from .document import FormField, PlistDocument
from ..errors import EditSessionError


class EditSession:
    """Text buffer for one field of the open document.

    At most one session is active; the controller checks ``active`` before
    calling begin. A rejected commit leaves the session open so the text can be fixed.
    """

    def __init__(self) -> None:
        self.field: FormField | None = None
        self.original: str = ""
        self.buffer: str = ""

    @property
    def active(self) -> bool:
        return self.field is not None

    def begin(self, field: FormField, current_value: str) -> None:
        if self.active:
            raise EditSessionError(f"already editing {self.field.key}")  # type: ignore[union-attr]
        self.field = field
        self.original = current_value
        self.buffer = current_value

    def type_char(self, c: str) -> None:
        self._require()
        self.buffer += c

    def newline(self) -> None:
        self._require()
        if self.field is not None and self.field.multiline:
            self.buffer += "\n"

    def backspace(self) -> None:
        self._require()
        self.buffer = self.buffer[:-1]

    def commit(self, document: PlistDocument) -> FormField:
        """Write the buffer into ``document`` and close the session.

        Raises FieldCoercionError without touching the document or closing the session.
        """
        field = self._require()
        document.set_field(field, self.buffer)
        self._reset()
        return field

    def cancel(self) -> FormField:
        field = self._require()
        self._reset()
        return field

    def _require(self) -> FormField:
        if self.field is None:
            raise EditSessionError("no field is being edited")
        return self.field

    def _reset(self) -> None:
        self.field = None
        self.original = ""
        self.buffer = ""
