import asyncio
import logging
import os
import re
from asyncio.subprocess import PIPE
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from .dash.models import AgentStatus, ProbeResult
from .errors import DaemonLoadError, DaemonUnloadError, ProbeError


logger = logging.getLogger(__name__)

NOT_FOUND_MARKERS = ("Could not find service", "No such service", "Could not find specified service")

_STATE_RE = re.compile(r"^\s*state\s*=\s*(?P<state>.+?)\s*$", re.MULTILINE)
_LAST_EXIT_RE = re.compile(r"^\s*last exit code\s*=\s*(?P<code>-?\d+)", re.MULTILINE)
_DISABLED_RE = re.compile(r'^\s*"(?P<label>[^"]+)"\s*(?:=>|:)\s*(?P<value>\w+)', re.MULTILINE)


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    def diagnostic(self) -> str:
        text = self.stderr.strip() or self.stdout.strip()
        return text or f"exit status {self.returncode}"


class ServiceManager(Protocol):
    """The operations the dashboard needs from the service-management daemon."""

    async def unload(self, path: Path) -> None: ...

    async def load(self, path: Path) -> None: ...

    async def status(self, label: str) -> ProbeResult: ...

    async def disabled_labels(self) -> set[str]: ...


async def run_command(argv: list[str], timeout: Optional[float] = None) -> CommandResult:
    """Run a command to completion, capturing both streams.

    Raises asyncio.TimeoutError when ``timeout`` elapses; the process is killed first.
    """
    proc = await asyncio.create_subprocess_exec(*argv, stdout=PIPE, stderr=PIPE)
    try:
        out, err = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
        raise
    return CommandResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=out.decode(errors="ignore"),
        stderr=err.decode(errors="ignore"),
    )


def gui_domain(uid: Optional[int] = None) -> str:
    return f"gui/{os.getuid() if uid is None else uid}"


def parse_print_output(result: CommandResult) -> ProbeResult:
    """Map ``launchctl print gui/<uid>/<label>`` output to a status.

    - not found in the domain: STOPPED and not loaded
    - ``state = running``: RUNNING
    - any other state: STOPPED, or ERROR when the last exit code is non-zero
    - anything else is unrecognized and raises ProbeError
    """
    combined = f"{result.stdout}\n{result.stderr}"
    if any(marker in combined for marker in NOT_FOUND_MARKERS):
        return ProbeResult(AgentStatus.STOPPED, loaded=False)
    if result.returncode != 0:
        raise ProbeError(result.diagnostic())
    m = _STATE_RE.search(result.stdout)
    if not m:
        raise ProbeError("no state in launchctl print output")
    state = m.group("state").lower()
    if state == "running":
        return ProbeResult(AgentStatus.RUNNING, loaded=True)
    code = _LAST_EXIT_RE.search(result.stdout)
    if code and int(code.group("code")) != 0:
        return ProbeResult(AgentStatus.ERROR, loaded=True)
    return ProbeResult(AgentStatus.STOPPED, loaded=True)


def parse_disabled_output(text: str) -> set[str]:
    """Labels marked disabled by ``launchctl print-disabled``.

    Newer launchctl prints ``"label" => disabled``; older releases print
    ``"label" => true`` where true means disabled.
    """
    disabled = set()
    for m in _DISABLED_RE.finditer(text):
        if m.group("value").lower() in {"disabled", "true"}:
            disabled.add(m.group("label"))
    return disabled


class LaunchctlManager:
    """ServiceManager backed by the launchctl binary."""

    def __init__(self, launchctl: str = "launchctl", timeout: float = 5.0, uid: Optional[int] = None) -> None:
        self.launchctl = launchctl
        self.timeout = timeout
        self.domain = gui_domain(uid)

    async def _run(self, *args: str) -> CommandResult:
        return await run_command([self.launchctl, *args], timeout=self.timeout)

    async def unload(self, path: Path) -> None:
        try:
            result = await self._run("unload", str(path))
        except asyncio.TimeoutError:
            raise DaemonUnloadError(f"launchctl unload timed out after {self.timeout:g}s")
        except OSError as e:
            raise DaemonUnloadError(f"Failed to run launchctl unload: {e}")
        if result.returncode != 0 or result.stderr.strip():
            raise DaemonUnloadError(result.diagnostic())

    async def load(self, path: Path) -> None:
        try:
            result = await self._run("load", str(path))
        except asyncio.TimeoutError:
            raise DaemonLoadError(f"launchctl load timed out after {self.timeout:g}s")
        except OSError as e:
            raise DaemonLoadError(f"Failed to run launchctl load: {e}")
        # launchctl load reports most failures on stderr with a zero exit status
        if result.returncode != 0 or result.stderr.strip():
            raise DaemonLoadError(result.diagnostic())

    async def status(self, label: str) -> ProbeResult:
        try:
            result = await self._run("print", f"{self.domain}/{label}")
        except asyncio.TimeoutError:
            raise ProbeError(f"launchctl print timed out after {self.timeout:g}s")
        except OSError as e:
            raise ProbeError(f"Failed to run launchctl print: {e}")
        return parse_print_output(result)

    async def disabled_labels(self) -> set[str]:
        try:
            result = await self._run("print-disabled", self.domain)
        except asyncio.TimeoutError:
            raise ProbeError(f"launchctl print-disabled timed out after {self.timeout:g}s")
        except OSError as e:
            raise ProbeError(f"Failed to run launchctl print-disabled: {e}")
        if result.returncode != 0:
            raise ProbeError(result.diagnostic())
        return parse_disabled_output(result.stdout)
