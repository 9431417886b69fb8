from __future__ import annotations

import asyncio
import itertools
import logging
import plistlib
from pathlib import Path
from typing import Callable, Iterable, Mapping

from .models import Agent, AgentStatus, Category
from ..errors import ProbeError
from ..launchctl import ServiceManager


logger = logging.getLogger(__name__)

PROBE_CONCURRENCY = 8

_generations = itertools.count(1)


def list_descriptor_files(root: Path) -> list[Path]:
    """Return ``*.plist`` files directly under root, sorted by filename.

    A missing or unreadable root yields an empty list.
    """
    try:
        entries = list(root.iterdir())
    except OSError:
        return []
    files = [p for p in entries if p.suffix == ".plist" and p.is_file()]
    files.sort(key=lambda p: p.name)
    return files


def read_label(path: Path) -> str | None:
    try:
        with path.open("rb") as fh:
            data = plistlib.load(fh)
    except Exception:
        return None
    if isinstance(data, dict):
        label = data.get("Label")
        if isinstance(label, str) and label:
            return label
    return None


def probe_name(agent: Agent) -> str:
    # launchd identifies services by label; fall back to the file stem like launchctl users do
    return agent.label or agent.path.stem


class AgentCatalog:
    """Discovered agents per category, with their last-probed status.

    One Agent per path per category, ordered by filename. Selection is kept by
    path so a refresh does not move the cursor unless the selected file is gone.
    """

    def __init__(
        self,
        roots: Mapping[Category, Path],
        manager: ServiceManager,
        lister: Callable[[Path], list[Path]] = list_descriptor_files,
        labeler: Callable[[Path], str | None] = read_label,
    ) -> None:
        self.roots = dict(roots)
        self.manager = manager
        self.lister = lister
        self.labeler = labeler
        self._agents: dict[Category, list[Agent]] = {c: [] for c in Category}
        self._selected: dict[Category, Path | None] = {c: None for c in Category}
        self._generation: dict[Category, int] = {c: next(_generations) for c in Category}

    def agents(self, category: Category) -> list[Agent]:
        return self._agents[category]

    def generation(self, category: Category) -> int:
        return self._generation[category]

    def find(self, path: Path) -> tuple[Category, Agent] | None:
        for category, agents in self._agents.items():
            for agent in agents:
                if agent.path == path:
                    return category, agent
        return None

    def status_of(self, path: Path) -> AgentStatus:
        hit = self.find(path)
        return hit[1].status if hit else AgentStatus.UNKNOWN

    def selected_path(self, category: Category) -> Path | None:
        return self._selected[category]

    def selected(self, category: Category) -> Agent | None:
        path = self._selected[category]
        if path is None:
            return None
        for agent in self._agents[category]:
            if agent.path == path:
                return agent
        return None

    def select(self, category: Category, path: Path | None) -> None:
        if path is not None and not any(a.path == path for a in self._agents[category]):
            raise KeyError(path)
        self._selected[category] = path

    def update_label(self, path: Path, label: str | None) -> bool:
        """Set the label of the agent at ``path`` after its file changed.

        Bumps the category generation so cached search results are dropped.
        Returns False when the path is unknown or the label is unchanged.
        """
        hit = self.find(path)
        if hit is None or hit[1].label == label:
            return False
        category, agent = hit
        agent.label = label
        self._generation[category] = next(_generations)
        return True

    async def refresh(self, category: Category) -> list[Agent]:
        root = self.roots[category]
        paths = self.lister(root)
        # Deduplicate by path while keeping lister order
        seen: set[Path] = set()
        agents: list[Agent] = []
        for path in paths:
            if path in seen:
                continue
            seen.add(path)
            agents.append(Agent(path=path, label=self.labeler(path)))
        agents.sort(key=lambda a: a.filename)

        await self._probe_many(agents)

        previous = self._selected[category]
        self._agents[category] = agents
        self._generation[category] = next(_generations)
        if previous is not None and previous in seen:
            self._selected[category] = previous
        else:
            self._selected[category] = agents[0].path if agents else None
        logger.info("refreshed %s: %d agents under %s", category.value, len(agents), root)
        return agents

    async def reprobe(self, path: Path) -> AgentStatus:
        hit = self.find(path)
        if hit is None:
            return AgentStatus.UNKNOWN
        agent = hit[1]
        await self._probe_many([agent])
        return agent.status

    async def reprobe_all(self, category: Category) -> None:
        await self._probe_many(self._agents[category])

    async def _probe_many(self, agents: Iterable[Agent]) -> None:
        agents = list(agents)
        if not agents:
            return
        try:
            disabled = await self.manager.disabled_labels()
        except ProbeError as e:
            logger.warning("cannot read disabled overrides: %s", e)
            disabled = set()
        sem = asyncio.Semaphore(PROBE_CONCURRENCY)

        async def probe_one(agent: Agent) -> None:
            async with sem:
                name = probe_name(agent)
                try:
                    result = await self.manager.status(name)
                except ProbeError as e:
                    logger.warning("status probe failed for %s: %s", name, e)
                    agent.status = AgentStatus.UNKNOWN
                    agent.enabled = False
                    return
                agent.status = result.status
                agent.enabled = result.loaded and name not in disabled

        await asyncio.gather(*(probe_one(a) for a in agents))
