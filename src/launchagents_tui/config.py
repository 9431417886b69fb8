import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .dash.models import Category


DEFAULT_TIMEOUT = 5.0
DEFAULT_STATUS_INTERVAL = 10.0


def default_root(category: Category) -> Path:
    if category is Category.USER:
        return Path.home() / "Library" / "LaunchAgents"
    if category is Category.GLOBAL:
        return Path("/Library/LaunchAgents")
    return Path("/System/Library/LaunchAgents")


_ROOT_ENV = {
    Category.USER: "LAUNCHAGENTS_USER_DIR",
    Category.GLOBAL: "LAUNCHAGENTS_GLOBAL_DIR",
    Category.SYSTEM: "LAUNCHAGENTS_SYSTEM_DIR",
}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


def resolve_launchctl_bin() -> str:
    """Resolve the launchctl binary. Honors LAUNCHAGENTS_LAUNCHCTL, falls back to PATH lookup."""
    prefer = os.getenv("LAUNCHAGENTS_LAUNCHCTL", "launchctl").strip() or "launchctl"
    if os.path.sep in prefer:
        return prefer
    which = shutil.which(prefer)
    return which or prefer


@dataclass(frozen=True)
class Settings:
    roots: dict[Category, Path] = field(default_factory=dict)
    launchctl: str = "launchctl"
    timeout: float = DEFAULT_TIMEOUT
    status_interval: float = DEFAULT_STATUS_INTERVAL
    log_file: Optional[Path] = None

    def root(self, category: Category) -> Path:
        return self.roots.get(category) or default_root(category)


def load_settings() -> Settings:
    roots: dict[Category, Path] = {}
    for category, env_name in _ROOT_ENV.items():
        override = os.getenv(env_name, "").strip()
        roots[category] = Path(override).expanduser() if override else default_root(category)
    log_file = os.getenv("LAUNCHAGENTS_LOG_FILE", "").strip()
    return Settings(
        roots=roots,
        launchctl=resolve_launchctl_bin(),
        timeout=_env_float("LAUNCHAGENTS_TIMEOUT", DEFAULT_TIMEOUT) or DEFAULT_TIMEOUT,
        status_interval=_env_float("LAUNCHAGENTS_STATUS_INTERVAL", DEFAULT_STATUS_INTERVAL),
        log_file=Path(log_file).expanduser() if log_file else None,
    )
