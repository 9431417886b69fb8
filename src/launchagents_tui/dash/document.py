from __future__ import annotations

import plistlib
from enum import Enum
from pathlib import Path
from typing import Any
from xml.parsers.expat import ExpatError

from ..errors import FieldCoercionError, ParseError


class FieldKind(Enum):
    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    LIST = "list"
    STRING_OR_LIST = "string_or_list"
    MAPPING = "mapping"


class FormField(Enum):
    """Editable descriptor keys, in form order."""

    LABEL = ("Label", FieldKind.STRING)
    PROGRAM = ("Program", FieldKind.STRING)
    PROGRAM_ARGUMENTS = ("ProgramArguments", FieldKind.LIST)
    START_INTERVAL = ("StartInterval", FieldKind.INTEGER)
    THROTTLE_INTERVAL = ("ThrottleInterval", FieldKind.INTEGER)
    RUN_AT_LOAD = ("RunAtLoad", FieldKind.BOOLEAN)
    KEEP_ALIVE = ("KeepAlive", FieldKind.BOOLEAN)
    ABANDON_PROCESS_GROUP = ("AbandonProcessGroup", FieldKind.BOOLEAN)
    STANDARD_OUT_PATH = ("StandardOutPath", FieldKind.STRING)
    STANDARD_ERROR_PATH = ("StandardErrorPath", FieldKind.STRING)
    WORKING_DIRECTORY = ("WorkingDirectory", FieldKind.STRING)
    POSIX_SPAWN_TYPE = ("POSIXSpawnType", FieldKind.STRING)
    ENABLE_PRESSURED_EXIT = ("EnablePressuredExit", FieldKind.BOOLEAN)
    ENABLE_TRANSACTIONS = ("EnableTransactions", FieldKind.BOOLEAN)
    EVENT_MONITOR = ("EventMonitor", FieldKind.BOOLEAN)
    LIMIT_LOAD_TO_SESSION_TYPE = ("LimitLoadToSessionType", FieldKind.STRING_OR_LIST)
    ASSOCIATED_BUNDLE_IDENTIFIERS = ("AssociatedBundleIdentifiers", FieldKind.LIST)
    ENVIRONMENT_VARIABLES = ("EnvironmentVariables", FieldKind.MAPPING)

    def __init__(self, key: str, kind: FieldKind) -> None:
        self.key = key
        self.kind = kind

    @property
    def multiline(self) -> bool:
        return self.kind in (FieldKind.LIST, FieldKind.STRING_OR_LIST, FieldKind.MAPPING)

    @property
    def non_negative(self) -> bool:
        return self in (FormField.START_INTERVAL, FormField.THROTTLE_INTERVAL)


FIELD_ORDER: tuple[FormField, ...] = tuple(FormField)

# plist integers are signed 64-bit, or unsigned 64-bit for large positives
INT_MIN = -(1 << 63)
INT_MAX = (1 << 64) - 1

TRUE_TOKENS = frozenset({"true", "yes", "on", "1"})
FALSE_TOKENS = frozenset({"false", "no", "off", "0"})


def _lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def coerce(field: FormField, text: str) -> Any:
    """Convert edit text to the stored value for ``field``.

    Returns None when the text clears the field. Raises FieldCoercionError
    when the text does not fit the field's type.
    """
    kind = field.kind
    if kind is FieldKind.STRING:
        return text if text else None
    if kind is FieldKind.INTEGER:
        raw = text.strip()
        if not raw:
            return None
        try:
            value = int(raw)
        except ValueError:
            raise FieldCoercionError(field.key, f"expected an integer, got {raw!r}")
        if not INT_MIN <= value <= INT_MAX:
            raise FieldCoercionError(field.key, f"{value} does not fit in a property list integer")
        if field.non_negative and value < 0:
            raise FieldCoercionError(field.key, f"must not be negative, got {value}")
        return value
    if kind is FieldKind.BOOLEAN:
        raw = text.strip().lower()
        if not raw:
            return None
        if raw in TRUE_TOKENS:
            return True
        if raw in FALSE_TOKENS:
            return False
        raise FieldCoercionError(field.key, f"expected true or false, got {text.strip()!r}")
    if kind is FieldKind.LIST:
        items = _lines(text)
        return items or None
    if kind is FieldKind.STRING_OR_LIST:
        items = _lines(text)
        if not items:
            return None
        return items[0] if len(items) == 1 else items
    # MAPPING
    env: dict[str, str] = {}
    for line in _lines(text):
        if "=" not in line:
            raise FieldCoercionError(field.key, f"expected KEY=VALUE, got {line!r}")
        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            raise FieldCoercionError(field.key, f"empty variable name in {line!r}")
        env[key] = value.strip()
    return env or None


def _shape_ok(kind: FieldKind, value: Any) -> bool:
    if kind is FieldKind.STRING:
        return isinstance(value, str)
    if kind is FieldKind.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if kind is FieldKind.BOOLEAN:
        return isinstance(value, bool)
    if kind is FieldKind.LIST:
        return isinstance(value, list) and all(isinstance(v, str) for v in value)
    if kind is FieldKind.STRING_OR_LIST:
        return isinstance(value, str) or (isinstance(value, list) and all(isinstance(v, str) for v in value))
    return isinstance(value, dict) and all(isinstance(k, str) and isinstance(v, str) for k, v in value.items())


def format_value(field: FormField, value: Any) -> str:
    if value is None:
        return ""
    if not _shape_ok(field.kind, value):
        return repr(value)
    kind = field.kind
    if kind is FieldKind.BOOLEAN:
        return "true" if value else "false"
    if kind is FieldKind.INTEGER:
        return str(value)
    if kind in (FieldKind.LIST, FieldKind.STRING_OR_LIST):
        return value if isinstance(value, str) else "\n".join(value)
    if kind is FieldKind.MAPPING:
        return "\n".join(f"{k}={v}" for k, v in value.items())
    return value


class PlistDocument:
    """In-memory copy of one descriptor.

    Keeps the whole parsed dictionary so keys outside FormField pass through
    a save untouched and in their original order. Nothing here writes to disk.
    """

    def __init__(self, data: dict[str, Any], fmt: plistlib.PlistFormat = plistlib.FMT_XML, path: Path | None = None) -> None:
        self._data = data
        self.fmt = fmt
        self.path = path
        self.dirty = False
        # Bumped on every mutation; a save records it to tell later edits apart
        self.revision = 0

    @classmethod
    def loads(cls, raw: bytes, path: Path | None = None) -> "PlistDocument":
        fmt = plistlib.FMT_BINARY if raw.startswith(b"bplist00") else plistlib.FMT_XML
        try:
            data = plistlib.loads(raw, fmt=fmt)
        except (plistlib.InvalidFileException, ExpatError, ValueError, TypeError, KeyError) as e:
            where = f"{path.name}: " if path else ""
            raise ParseError(f"{where}malformed property list ({e})") from e
        if not isinstance(data, dict):
            where = f"{path.name}: " if path else ""
            raise ParseError(f"{where}top-level object is {type(data).__name__}, expected a dictionary")
        return cls(data, fmt=fmt, path=path)

    @classmethod
    def load(cls, path: Path) -> "PlistDocument":
        try:
            raw = Path(path).read_bytes()
        except OSError as e:
            raise ParseError(f"{Path(path).name}: cannot read ({e.strerror or e})") from e
        return cls.loads(raw, path=Path(path))

    @property
    def label(self) -> str | None:
        value = self._data.get(FormField.LABEL.key)
        return value if isinstance(value, str) else None

    def raw(self, field: FormField) -> Any:
        return self._data.get(field.key)

    def keys(self) -> list[str]:
        return list(self._data)

    def is_editable(self, field: FormField) -> bool:
        value = self._data.get(field.key)
        return value is None or _shape_ok(field.kind, value)

    def field_value(self, field: FormField) -> str:
        return format_value(field, self._data.get(field.key))

    def set_field(self, field: FormField, text: str) -> None:
        value = coerce(field, text)
        if value is None:
            if field.key in self._data:
                del self._data[field.key]
                self._touch()
            return
        if self._data.get(field.key) != value or field.key not in self._data:
            self._data[field.key] = value
            self._touch()

    def _touch(self) -> None:
        self.dirty = True
        self.revision += 1

    def serialize(self) -> bytes:
        return plistlib.dumps(self._data, fmt=self.fmt, sort_keys=False)
