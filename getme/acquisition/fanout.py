"""Concurrent search across all registered engines.

Every engine gets the same query at the same time. Engines that fail
contribute nothing; engines that are still busy when the time budget runs
out are cancelled and contribute nothing either.
"""

import asyncio

import structlog

from getme.acquisition.errors import NoTorrentsFoundError
from getme.acquisition.filters import apply_filter, select_best
from getme.search.base import SearchEngine, SearchEngineRegistry, Torrent

logger = structlog.get_logger(__name__)

# Seconds to wait for all engines on one query
SEARCH_TIMEOUT = 5.0

# Seconds granted to cancelled engine calls to unwind
CANCEL_GRACE = 1.0


class FanOutCoordinator:
    """Sends one query to every engine of a registry and picks a winner.

    Example:
        coordinator = FanOutCoordinator(default_registry(settings))
        torrent = await coordinator.execute("The Wire S01E01")
    """

    def __init__(self, registry: SearchEngineRegistry, timeout: float = SEARCH_TIMEOUT) -> None:
        """Initialize the coordinator.

        Args:
            registry: Engines to query.
            timeout: Time budget in seconds for one query across all engines.
        """
        self._registry = registry
        self._timeout = timeout

    @property
    def registry(self) -> SearchEngineRegistry:
        return self._registry

    async def gather(self, query: str) -> list[Torrent]:
        """Collect torrents from all engines, in order of engine completion.

        Args:
            query: Search query passed verbatim to every engine.

        Returns:
            Unfiltered torrents of every engine that answered in time.
        """
        engines = list(self._registry)
        if not engines:
            logger.warning("no_search_engines_registered", query=query)
            return []

        merged: list[Torrent] = []

        async def run(engine: SearchEngine) -> None:
            try:
                torrents = await engine.search(query)
            except Exception as e:
                logger.error(
                    "search_engine_error",
                    search_engine=engine.name,
                    query=query,
                    error=str(e),
                )
                return
            logger.debug(
                "search_engine_answered",
                search_engine=engine.name,
                query=query,
                count=len(torrents),
            )
            merged.extend(torrents)

        tasks = {
            asyncio.create_task(run(engine), name=f"search:{engine.name}"): engine
            for engine in engines
        }
        _done, pending = await asyncio.wait(tasks, timeout=self._timeout)

        # Late answers must not leak into this result
        results = list(merged)

        if pending:
            logger.error(
                "search_timed_out",
                query=query,
                timeout=self._timeout,
                search_engines=sorted(tasks[task].name for task in pending),
            )
            for task in pending:
                task.cancel()
            await asyncio.wait(pending, timeout=CANCEL_GRACE)

        return results

    async def execute(self, query: str) -> Torrent:
        """Search all engines and return the best acceptable torrent.

        Raises:
            NoTorrentsFoundError: If no engine returned an acceptable torrent.
        """
        torrents = apply_filter(await self.gather(query))
        best = select_best(torrents)
        if best is None:
            raise NoTorrentsFoundError(query)

        logger.info(
            "torrent_selected",
            query=query,
            name=best.original_name,
            seeds=best.seeds,
            source=best.source,
            candidates=len(torrents),
        )
        return best
