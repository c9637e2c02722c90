"""PirateBay search engine.

Queries the apibay.org JSON API first. When the API is unavailable, falls
back to scraping the HTML search page of a list of mirrors.

Note: PirateBay mirrors change frequently and most of them render results
with JavaScript, so the HTML fallback succeeds only on classic-layout mirrors.
"""

import asyncio
import contextlib
from urllib.parse import quote_plus

import httpx
import structlog
from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, Field

from getme.search.base import SearchEngine, SearchEngineError, Torrent

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

PIRATEBAY_API_URL = "https://apibay.org"

# API retry settings (API is flaky, returns 502 sometimes)
API_MAX_RETRIES = 2
API_RETRY_DELAY = 0.5  # seconds

# Mirrors with the classic table layout, ordered by reliability
PIRATEBAY_MIRRORS = [
    "https://thepiratebay10.org",
    "https://tpb.party",
    "https://pirateproxy.live",
]

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

REQUEST_TIMEOUT = 10.0

MAX_RESULTS = 30

# Public trackers added to magnet links built from an info hash
TRACKERS = [
    "udp://tracker.opentrackr.org:1337/announce",
    "udp://open.stealth.si:80/announce",
    "udp://tracker.torrent.eu.org:451/announce",
    "udp://exodus.desync.com:6969/announce",
]


# =============================================================================
# Exceptions
# =============================================================================


class PirateBayError(SearchEngineError):
    """Base exception for PirateBay errors."""

    pass


class PirateBayUnavailableError(PirateBayError):
    """Raised when PirateBay is unavailable or blocked."""

    pass


# =============================================================================
# Data Models
# =============================================================================


class PirateBayResult(BaseModel):
    """A single PirateBay search result."""

    title: str = Field(..., description="Full title of the torrent")
    seeds: int = Field(default=0, ge=0, description="Number of seeders")
    magnet: str = Field(default="", description="Magnet link")

    def to_torrent(self, source: str) -> Torrent:
        return Torrent(url=self.magnet, original_name=self.title, seeds=self.seeds, source=source)


# =============================================================================
# Helper Functions
# =============================================================================


def build_magnet_link(info_hash: str, name: str = "") -> str:
    """Build a magnet link from info hash.

    Args:
        info_hash: BitTorrent info hash (40 hex characters).
        name: Optional display name for the torrent.

    Returns:
        Complete magnet URI.
    """
    magnet = f"magnet:?xt=urn:btih:{info_hash}"
    if name:
        magnet += f"&dn={quote_plus(name)}"
    for tracker in TRACKERS:
        magnet += f"&tr={quote_plus(tracker)}"
    return magnet


def extract_magnet_link(element: Tag) -> str:
    """Extract magnet link from a result element, or "" if there is none."""
    magnet_elem = element.select_one('a[href^="magnet:"]')
    if magnet_elem:
        href = magnet_elem.get("href")
        if isinstance(href, str):
            return href
        if isinstance(href, list) and href:
            return href[0]
    return ""


# =============================================================================
# PirateBay Client
# =============================================================================


class PirateBayClient:
    """Async client for searching PirateBay.

    Example:
        async with PirateBayClient() as client:
            results = await client.search("The Wire S01E01")
    """

    def __init__(
        self,
        api_url: str = PIRATEBAY_API_URL,
        mirrors: list[str] | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.mirrors = [m.rstrip("/") for m in (PIRATEBAY_MIRRORS if mirrors is None else mirrors)]
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "PirateBayClient":
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={
                "User-Agent": USER_AGENT,
                "Accept": "text/html,application/json;q=0.9,*/*;q=0.8",
            },
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, ensuring it's initialized.

        Raises:
            RuntimeError: If client is not initialized (not in context manager).
        """
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")
        return self._client

    async def _search_api(self, query: str) -> list[PirateBayResult]:
        """Search using the apibay.org API.

        Raises:
            PirateBayUnavailableError: If the API is unavailable.
            PirateBayError: If the response cannot be parsed.
        """
        api_url = f"{self.api_url}/q.php"
        response: httpx.Response | None = None

        for attempt in range(API_MAX_RETRIES):
            try:
                response = await self.client.get(api_url, params={"q": query})
                response.raise_for_status()
                break
            except httpx.HTTPStatusError as e:
                if e.response.status_code in (502, 503, 504) and attempt < API_MAX_RETRIES - 1:
                    logger.warning(
                        "piratebay_api_retry",
                        attempt=attempt + 1,
                        status=e.response.status_code,
                    )
                    await asyncio.sleep(API_RETRY_DELAY * (attempt + 1))
                    continue
                raise PirateBayUnavailableError(
                    f"PirateBay API returned error {e.response.status_code}"
                ) from e
            except httpx.TransportError as e:
                raise PirateBayUnavailableError(f"Cannot reach PirateBay API: {e}") from e

        if response is None:
            raise PirateBayUnavailableError("No response received from API")

        try:
            data = response.json()
        except ValueError as e:
            raise PirateBayError(f"Failed to parse API response: {e}") from e

        # No hits is reported as [{"id": "0", "name": "No results returned", ...}]
        if not data or (len(data) == 1 and str(data[0].get("id")) == "0"):
            return []

        results: list[PirateBayResult] = []
        for item in data[:MAX_RESULTS]:
            try:
                info_hash = item.get("info_hash", "")
                name = item.get("name", "")
                if not name or len(info_hash) != 40:
                    continue

                results.append(
                    PirateBayResult(
                        title=name,
                        seeds=int(item.get("seeders", 0)),
                        magnet=build_magnet_link(info_hash, name),
                    )
                )
            except (ValueError, TypeError) as e:
                logger.warning("piratebay_api_item_invalid", error=str(e))
                continue

        return results

    async def _search_html(self, query: str) -> list[PirateBayResult]:
        """Search the HTML page of each mirror until one answers.

        Raises:
            PirateBayUnavailableError: If no mirror answers.
        """
        last_error: Exception | None = None

        for mirror in self.mirrors:
            url = f"{mirror}/search/{quote_plus(query)}/0/7/0"
            try:
                response = await self.client.get(url)
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.warning("piratebay_mirror_unavailable", mirror=mirror, error=str(e))
                last_error = e
                continue

            html = response.text
            if "Cloudflare" in html and "challenge" in html.lower():
                logger.warning("piratebay_cloudflare_protection", mirror=mirror)
                last_error = PirateBayUnavailableError(f"{mirror} is behind Cloudflare")
                continue

            return parse_search_results(html)

        raise PirateBayUnavailableError(f"All PirateBay mirrors are unavailable: {last_error}")

    async def search(self, query: str) -> list[PirateBayResult]:
        """Search for torrents.

        Args:
            query: Search query.

        Returns:
            Results sorted by seeds (descending).

        Raises:
            PirateBayUnavailableError: If neither the API nor any mirror answers.
        """
        try:
            results = await self._search_api(query)
        except PirateBayError as e:
            logger.warning("piratebay_api_failed_trying_html", error=str(e))
            results = await self._search_html(query)

        results.sort(key=lambda r: r.seeds, reverse=True)
        logger.debug("piratebay_results_found", query=query, count=len(results))
        return results


def parse_search_results(html: str) -> list[PirateBayResult]:
    """Parse the classic ``table#searchResult`` layout."""
    soup = BeautifulSoup(html, "lxml")
    results: list[PirateBayResult] = []

    for row in soup.select("table#searchResult tr"):
        result = _parse_result_row(row)
        if result is not None:
            results.append(result)
        if len(results) >= MAX_RESULTS:
            break

    return results


def _parse_result_row(row: Tag) -> PirateBayResult | None:
    if row.select_one("th"):
        return None

    title_elem = row.select_one("a.detLink") or row.select_one('a[href*="/torrent/"]')
    if not title_elem:
        return None
    title = title_elem.get_text(strip=True)
    magnet = extract_magnet_link(row)
    if not title or not magnet:
        return None

    seeds = 0
    cells = row.select("td")
    if len(cells) >= 3:
        with contextlib.suppress(ValueError):
            seeds = int(cells[-2].get_text(strip=True).replace(",", ""))

    return PirateBayResult(title=title, seeds=seeds, magnet=magnet)


# =============================================================================
# Search Engine
# =============================================================================


class PirateBayEngine(SearchEngine):
    """PirateBay exposed through the search engine contract."""

    name = "piratebay"

    def __init__(
        self,
        api_url: str = PIRATEBAY_API_URL,
        mirrors: list[str] | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self._api_url = api_url
        self._mirrors = mirrors
        self._timeout = timeout

    async def search(self, query: str) -> list[Torrent]:
        async with PirateBayClient(self._api_url, self._mirrors, self._timeout) as client:
            results = await client.search(query)
        return [r.to_torrent(self.name) for r in results if r.magnet]
