from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable

from .catalog import AgentCatalog
from .document import PlistDocument
from .models import Agent, Saved, SavedButReloadFailed, SaveFailed, SaveOutcome
from ..errors import DaemonLoadError, DaemonUnloadError, FileWriteError
from ..launchctl import ServiceManager


logger = logging.getLogger(__name__)


def write_file(path: Path, content: bytes) -> None:
    try:
        path.write_bytes(content)
    except OSError as e:
        raise FileWriteError(f"{path.name}: {e.strerror or e}") from e


class ReloadCoordinator:
    """Save a document and bring launchd in line with it.

    1. write the file (a failure stops here)
    2. launchctl unload (failures ignored: usually "not loaded")
    3. launchctl load (failure reported verbatim, the file stays saved)
    4. re-probe the agent's status

    One save at a time; ``busy`` tells callers to refuse a second request.
    """

    def __init__(
        self,
        catalog: AgentCatalog,
        manager: ServiceManager,
        writer: Callable[[Path, bytes], None] = write_file,
    ) -> None:
        self.catalog = catalog
        self.manager = manager
        self.writer = writer
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def save(self, agent: Agent, document: PlistDocument) -> SaveOutcome:
        async with self._lock:
            path = agent.path
            try:
                self.writer(path, document.serialize())
            except (FileWriteError, ValueError, TypeError, OverflowError) as e:
                logger.warning("save of %s failed: %s", path, e)
                return SaveFailed(path=path, error=str(e))

            try:
                await self.manager.unload(path)
            except DaemonUnloadError as e:
                logger.debug("unload of %s failed (ignored): %s", path, e.diagnostic)

            outcome: SaveOutcome
            try:
                await self.manager.load(path)
            except DaemonLoadError as e:
                logger.warning("load of %s failed: %s", path, e.diagnostic)
                outcome = SavedButReloadFailed(path=path, diagnostic=e.diagnostic)
            else:
                logger.info("saved and reloaded %s", path)
                outcome = Saved(path=path)

            await self.catalog.reprobe(path)
            return outcome
