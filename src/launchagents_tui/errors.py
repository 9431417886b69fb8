"""Exception hierarchy for launchagents-tui."""

from __future__ import annotations


class LaunchAgentsError(Exception):
    """Base exception for all launchagents-tui errors."""


class ParseError(LaunchAgentsError):
    """Raised when a descriptor cannot be read or is not a valid property list."""


class FieldCoercionError(LaunchAgentsError):
    """Raised when edit text cannot be converted to the field's type."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class FileWriteError(LaunchAgentsError):
    """Raised when a serialized descriptor cannot be written to disk."""


class DaemonError(LaunchAgentsError):
    """Raised when a launchctl operation fails.

    ``diagnostic`` carries the text launchctl reported, unmodified.
    """

    def __init__(self, diagnostic: str) -> None:
        super().__init__(diagnostic)
        self.diagnostic = diagnostic


class DaemonUnloadError(DaemonError):
    """Raised when ``launchctl unload`` fails."""


class DaemonLoadError(DaemonError):
    """Raised when ``launchctl load`` fails."""


class ProbeError(LaunchAgentsError):
    """Raised when the live status of a service cannot be determined."""


class FocusTransitionError(LaunchAgentsError):
    """Raised on a focus change the state machine does not allow."""


class EditSessionError(LaunchAgentsError):
    """Raised when an edit session is opened while another one is active."""
