"""
Environment-driven settings.
"""

from pathlib import Path

from launchagents_tui.config import (
    DEFAULT_STATUS_INTERVAL,
    DEFAULT_TIMEOUT,
    Settings,
    default_root,
    load_settings,
    resolve_launchctl_bin,
)
from launchagents_tui.dash.models import Category


ENV = (
    "LAUNCHAGENTS_USER_DIR",
    "LAUNCHAGENTS_GLOBAL_DIR",
    "LAUNCHAGENTS_SYSTEM_DIR",
    "LAUNCHAGENTS_LAUNCHCTL",
    "LAUNCHAGENTS_TIMEOUT",
    "LAUNCHAGENTS_STATUS_INTERVAL",
    "LAUNCHAGENTS_LOG_FILE",
)


def _clean(monkeypatch):
    for name in ENV:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    _clean(monkeypatch)
    s = load_settings()
    assert s.root(Category.USER) == Path.home() / "Library" / "LaunchAgents"
    assert s.root(Category.GLOBAL) == Path("/Library/LaunchAgents")
    assert s.root(Category.SYSTEM) == Path("/System/Library/LaunchAgents")
    assert s.timeout == DEFAULT_TIMEOUT
    assert s.status_interval == DEFAULT_STATUS_INTERVAL
    assert s.log_file is None


def test_overrides(monkeypatch, tmp_path):
    _clean(monkeypatch)
    monkeypatch.setenv("LAUNCHAGENTS_SYSTEM_DIR", str(tmp_path))
    monkeypatch.setenv("LAUNCHAGENTS_TIMEOUT", "1.5")
    monkeypatch.setenv("LAUNCHAGENTS_STATUS_INTERVAL", "0")
    monkeypatch.setenv("LAUNCHAGENTS_LOG_FILE", str(tmp_path / "x.log"))
    s = load_settings()
    assert s.root(Category.SYSTEM) == tmp_path
    assert s.timeout == 1.5
    assert s.status_interval == 0
    assert s.log_file == tmp_path / "x.log"


def test_bad_numbers_fall_back(monkeypatch):
    _clean(monkeypatch)
    monkeypatch.setenv("LAUNCHAGENTS_TIMEOUT", "soon")
    monkeypatch.setenv("LAUNCHAGENTS_STATUS_INTERVAL", "-3")
    s = load_settings()
    assert s.timeout == DEFAULT_TIMEOUT
    assert s.status_interval == DEFAULT_STATUS_INTERVAL


def test_launchctl_path_used_verbatim(monkeypatch):
    monkeypatch.setenv("LAUNCHAGENTS_LAUNCHCTL", "/opt/bin/launchctl")
    assert resolve_launchctl_bin() == "/opt/bin/launchctl"


def test_settings_root_falls_back_to_default():
    assert Settings().root(Category.GLOBAL) == default_root(Category.GLOBAL)
