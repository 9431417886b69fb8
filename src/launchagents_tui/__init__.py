"""Terminal dashboard for launchd LaunchAgents."""

from importlib.metadata import PackageNotFoundError, version as _pkg_version

__all__ = ["__version__"]

try:
    __version__ = _pkg_version("launchagents-tui")
except PackageNotFoundError:
    # Source checkout without installed metadata
    __version__ = "0.0.0+dev"
