"""TorAPI search engine.

TorAPI (https://github.com/Lifailon/TorAPI) is a JSON gateway in front of
several trackers (RuTracker, Kinozal, RuTor, NoNameClub). One request with
the ``all`` provider searches every tracker at once.

Public instance: https://torapi.vercel.app
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
import structlog

from getme.search.base import SearchEngine, SearchEngineError, Torrent

logger = structlog.get_logger(__name__)

TORAPI_BASE_URL = "https://torapi.vercel.app"

DEFAULT_TIMEOUT = 10.0

MAX_RESULTS = 50


class TorAPIError(SearchEngineError):
    """Raised when TorAPI cannot be queried or answers garbage."""

    pass


class TorAPIProvider(str, Enum):
    """Available torrent providers.

    Note: API endpoints use lowercase names.
    """

    RUTRACKER = "rutracker"
    KINOZAL = "kinozal"
    RUTOR = "rutor"
    NONAMECLUB = "nonameclub"
    ALL = "all"


@dataclass
class TorAPIResult:
    """Search result from TorAPI."""

    name: str
    torrent_id: str
    url: str
    torrent_url: str
    size: str
    seeds: int
    peers: int
    provider: str
    magnet: str | None = None

    @property
    def download_url(self) -> str:
        """Magnet link when the tracker exposes one, .torrent URL otherwise."""
        return self.magnet or self.torrent_url


class TorAPIClient:
    """Client for a TorAPI instance."""

    def __init__(
        self,
        base_url: str = TORAPI_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "TorAPIClient":
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={
                "User-Agent": "getme/0.1",
                "Accept": "application/json",
            },
        )
        return self

    async def __aexit__(self, *args) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._client is None:
            raise RuntimeError("Client not initialized. Use async context manager.")
        return self._client

    async def search(
        self,
        query: str,
        provider: TorAPIProvider = TorAPIProvider.ALL,
    ) -> list[TorAPIResult]:
        """Search for torrents.

        Args:
            query: Search query.
            provider: Torrent provider to search (default: all of them).

        Returns:
            Results sorted by seeds (descending).

        Raises:
            TorAPIError: If the request fails or the response is not JSON.
        """
        url = f"{self.base_url}/api/search/title/{provider.value}"

        try:
            response = await self.client.get(url, params={"query": query})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise TorAPIError(f"TorAPI request failed: {e}") from e
        except ValueError as e:
            raise TorAPIError(f"TorAPI returned invalid JSON: {e}") from e

        results: list[TorAPIResult] = []

        if isinstance(data, dict):
            # Response of the "all" provider: {"RuTracker": [...], "Kinozal": [...]}
            for prov_name, prov_results in data.items():
                if isinstance(prov_results, list):
                    results.extend(self._parse_items(prov_results, prov_name.lower()))
        elif isinstance(data, list):
            results.extend(self._parse_items(data, provider.value))

        results.sort(key=lambda r: r.seeds, reverse=True)
        logger.debug("torapi_results_found", query=query, count=len(results))
        return results[:MAX_RESULTS]

    def _parse_items(self, items: list[Any], provider: str) -> list[TorAPIResult]:
        parsed = []
        for item in items:
            result = self._parse_result(item, provider)
            if result is not None:
                parsed.append(result)
        return parsed

    def _parse_result(self, item: Any, provider: str) -> TorAPIResult | None:
        if not isinstance(item, dict):
            return None
        name = item.get("Name", "")
        if not name:
            return None

        try:
            seeds = int(item.get("Seeds", 0) or 0)
            peers = int(item.get("Peers", 0) or 0)
        except (TypeError, ValueError):
            logger.warning("torapi_item_invalid", provider=provider, name=name)
            return None

        return TorAPIResult(
            name=name,
            torrent_id=str(item.get("Id", "")),
            url=item.get("Url", ""),
            torrent_url=item.get("Torrent", ""),
            size=item.get("Size", ""),
            seeds=seeds,
            peers=peers,
            provider=provider,
            magnet=item.get("Magnet") or None,
        )


class TorAPIEngine(SearchEngine):
    """TorAPI exposed through the search engine contract."""

    name = "torapi"

    def __init__(
        self,
        base_url: str = TORAPI_BASE_URL,
        provider: TorAPIProvider = TorAPIProvider.ALL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._base_url = base_url
        self._provider = provider
        self._timeout = timeout

    async def search(self, query: str) -> list[Torrent]:
        async with TorAPIClient(self._base_url, self._timeout) as client:
            results = await client.search(query, self._provider)
        return [
            Torrent(
                url=r.download_url,
                original_name=r.name,
                seeds=r.seeds,
                source=f"{self.name}:{r.provider}",
            )
            for r in results
            if r.download_url
        ]
