from __future__ import annotations

from typing import Sequence

from .models import Agent


def matches(query: str, agent: Agent) -> bool:
    q = query.lower()
    if not q:
        return True
    if q in agent.filename.lower():
        return True
    return bool(agent.label) and q in agent.label.lower()  # type: ignore[union-attr]


def filter_indices(query: str, agents: Sequence[Agent]) -> list[int]:
    """Indices of agents whose filename or label contains ``query``, case-insensitively.

    Always an order-preserving subset of ``range(len(agents))``.
    """
    return [i for i, agent in enumerate(agents) if matches(query, agent)]


class SearchState:
    """Query text plus the indices it selects from the active category.

    Only the latest (query, catalog generation) result is cached. The catalog
    bumps its generation on every refresh or label change, so stale results
    are never returned.
    """

    def __init__(self) -> None:
        self.query: str = ""
        self._cache_key: tuple[str, int] | None = None
        self._cache: list[int] = []

    def append(self, c: str) -> None:
        self.query += c

    def backspace(self) -> None:
        self.query = self.query[:-1]

    def clear(self) -> None:
        self.query = ""

    def indices(self, agents: Sequence[Agent], generation: int) -> list[int]:
        key = (self.query, generation)
        if key != self._cache_key:
            self._cache = filter_indices(self.query, agents)
            self._cache_key = key
        return list(self._cache)

    def counts(self, agents: Sequence[Agent], generation: int) -> tuple[int, int]:
        return len(self.indices(agents, generation)), len(agents)
