"""Search engine contract and registry.

A search engine takes an opaque query string and returns candidate
torrents. Engines are unreliable individually; the acquisition layer
queries all registered engines at once and tolerates failures.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass

import structlog

from getme.store.models import MediaItem

logger = structlog.get_logger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class SearchEngineError(Exception):
    """Base exception for search engine failures."""

    pass


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class Torrent:
    """A candidate release returned by a search engine.

    Attributes:
        url: Magnet link or .torrent download URL.
        original_name: Release name as published.
        seeds: Number of seeders, used for ranking.
        source: Name of the engine that returned it.
        associated_media: Episode or season the torrent was chosen for.
    """

    url: str
    original_name: str
    seeds: int = 0
    source: str = ""
    associated_media: MediaItem | None = None

    @property
    def is_magnet(self) -> bool:
        return self.url.startswith("magnet:")


# =============================================================================
# Engine Contract
# =============================================================================


class SearchEngine(ABC):
    """Abstract base class for search engines.

    Implementations must be safe to call concurrently and repeatedly.
    """

    name: str = ""

    @abstractmethod
    async def search(self, query: str) -> list[Torrent]:
        """Search for torrents matching a query.

        Args:
            query: Free-text search term; matching is up to the engine.

        Returns:
            Candidate torrents in any order.

        Raises:
            SearchEngineError: If the engine could not be queried.
        """
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


class SearchEngineRegistry:
    """Named set of search engines handed to the fan-out coordinator."""

    def __init__(self, engines: list[SearchEngine] | None = None) -> None:
        self._engines: dict[str, SearchEngine] = {}
        for engine in engines or []:
            self.register(engine)

    def register(self, engine: SearchEngine) -> None:
        """Add an engine.

        Raises:
            ValueError: If the engine has no name or the name is taken.
        """
        if not engine.name:
            raise ValueError(f"Search engine {engine!r} has no name")
        if engine.name in self._engines:
            raise ValueError(f"Search engine '{engine.name}' is already registered")
        self._engines[engine.name] = engine
        logger.debug("search_engine_registered", search_engine=engine.name)

    def unregister(self, name: str) -> None:
        self._engines.pop(name, None)

    def get(self, name: str) -> SearchEngine | None:
        return self._engines.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._engines)

    def __iter__(self) -> Iterator[SearchEngine]:
        return iter(list(self._engines.values()))

    def __len__(self) -> int:
        return len(self._engines)
