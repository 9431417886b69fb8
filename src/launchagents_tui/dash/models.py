from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union


class Category(Enum):
    USER = "user"
    GLOBAL = "global"
    SYSTEM = "system"

    @property
    def title(self) -> str:
        return _CATEGORY_TITLES[self]


_CATEGORY_TITLES = {
    Category.USER: "👤 User",
    Category.GLOBAL: "🌐 Global",
    Category.SYSTEM: "🍎 System",
}


class AgentStatus(Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"
    UNKNOWN = "unknown"


class Focus(Enum):
    SEARCH = "search"
    SIDEBAR = "sidebar"
    FORM = "form"
    EDITING_FIELD = "editing_field"
    EXIT_CONFIRM = "exit_confirm"


@dataclass(slots=True)
class Agent:
    path: Path
    label: str | None = None
    status: AgentStatus = AgentStatus.UNKNOWN
    enabled: bool = False

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def display_name(self) -> str:
        return self.label or self.filename


@dataclass(frozen=True, slots=True)
class ProbeResult:
    status: AgentStatus
    loaded: bool


@dataclass(frozen=True, slots=True)
class Saved:
    path: Path


@dataclass(frozen=True, slots=True)
class SavedButReloadFailed:
    path: Path
    diagnostic: str


@dataclass(frozen=True, slots=True)
class SaveFailed:
    path: Path
    error: str


SaveOutcome = Union[Saved, SavedButReloadFailed, SaveFailed]
