"""
Shared fixtures for launchagents-tui unit tests.

Agents live in temporary directories and launchctl is replaced by FakeManager,
so nothing here touches the real launchd.
"""

import asyncio
import plistlib
from pathlib import Path

import pytest

from launchagents_tui.dash.catalog import AgentCatalog
from launchagents_tui.dash.models import AgentStatus, Category, ProbeResult
from launchagents_tui.dash.reload import ReloadCoordinator
from launchagents_tui.dash.state import AppState
from launchagents_tui.errors import DaemonLoadError, DaemonUnloadError


class FakeManager:
    """In-memory stand-in for LaunchctlManager that records every call."""

    def __init__(self, statuses=None, disabled=None, unload_error=None, load_error=None):
        self.statuses = dict(statuses or {})
        self.disabled = set(disabled or ())
        self.unload_error = unload_error
        self.load_error = load_error
        self.calls = []

    async def unload(self, path):
        self.calls.append(("unload", Path(path)))
        if self.unload_error is not None:
            raise DaemonUnloadError(self.unload_error)

    async def load(self, path):
        self.calls.append(("load", Path(path)))
        if self.load_error is not None:
            raise DaemonLoadError(self.load_error)

    async def status(self, label):
        self.calls.append(("status", label))
        value = self.statuses.get(label, ProbeResult(AgentStatus.STOPPED, loaded=False))
        if isinstance(value, Exception):
            raise value
        return value

    async def disabled_labels(self):
        return set(self.disabled)

    def ops(self):
        return [op for op, _ in self.calls if op in ("unload", "load")]


def write_plist(path: Path, data: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(plistlib.dumps(data))
    return path


@pytest.fixture
def roots(tmp_path):
    dirs = {c: tmp_path / c.value for c in Category}
    for d in dirs.values():
        d.mkdir()
    return dirs


@pytest.fixture
def manager():
    return FakeManager()


@pytest.fixture
def catalog(roots, manager):
    return AgentCatalog(roots=roots, manager=manager)


@pytest.fixture
def user_agents(roots):
    """Three user agents; one of them (sync) is only findable by label."""
    d = roots[Category.USER]
    write_plist(d / "A.plist", {"Label": "com.example.a", "RunAtLoad": True, "StartInterval": 60})
    write_plist(d / "backup.plist", {"Label": "com.example.backup", "Program": "/usr/local/bin/backup"})
    write_plist(d / "net.apple.sync.plist", {"Label": "Backblaze sync helper", "KeepAlive": {"SuccessfulExit": False}})
    return d


@pytest.fixture
def app_state(catalog, user_agents):
    asyncio.run(catalog.refresh(Category.USER))
    return AppState(catalog)


@pytest.fixture
def coordinator(catalog, manager):
    return ReloadCoordinator(catalog=catalog, manager=manager)
