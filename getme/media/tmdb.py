"""TMDB (The Movie Database) TV lookup.

Finds a show by title and lists its seasons and episodes, which is all
the acquisition engine needs to know about a show.

API Documentation: https://developers.themoviedb.org/3
"""

from datetime import UTC, datetime
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

from getme.store.models import Episode, Season, Show

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

TMDB_BASE_URL = "https://api.themoviedb.org/3"

REQUEST_TIMEOUT = 15.0

DEFAULT_LANGUAGE = "en-US"


# =============================================================================
# Exceptions
# =============================================================================


class TMDBError(Exception):
    """Base exception for TMDB API errors."""

    pass


class TMDBNotFoundError(TMDBError):
    """Raised when a resource is not found."""

    pass


class TMDBAuthError(TMDBError):
    """Raised when the API key is rejected."""

    pass


# =============================================================================
# Data Models
# =============================================================================


class ShowMatch(BaseModel):
    """A TV search hit."""

    id: int
    name: str
    first_air_date: str | None = None
    vote_count: int = 0
    popularity: float = 0.0

    @property
    def year(self) -> int | None:
        if self.first_air_date and len(self.first_air_date) >= 4:
            try:
                return int(self.first_air_date[:4])
            except ValueError:
                return None
        return None


class EpisodeInfo(BaseModel):
    episode_number: int
    name: str | None = None
    air_date: str | None = None


class SeasonInfo(BaseModel):
    season_number: int
    episodes: list[EpisodeInfo] = Field(default_factory=list)


def _parse_air_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=UTC)
    except ValueError:
        return None


def build_show(match: ShowMatch, seasons: list[SeasonInfo], now: datetime | None = None) -> Show:
    """Create a show whose aired episodes are all pending.

    Episodes without an air date or airing after ``now`` are left out;
    they are picked up when the show is refreshed.
    """
    if now is None:
        now = datetime.now(UTC)

    show = Show(title=match.name, tmdb_id=match.id)
    for info in sorted(seasons, key=lambda s: s.season_number):
        season = Season(season=info.season_number)
        for ep in sorted(info.episodes, key=lambda e: e.episode_number):
            air_date = _parse_air_date(ep.air_date)
            if air_date is None or air_date > now:
                continue
            season.episodes.append(
                Episode(
                    season=info.season_number,
                    episode=ep.episode_number,
                    title=ep.name,
                    air_date=air_date,
                )
            )
        if season.episodes:
            show.seasons.append(season)
    return show


def merge_show(existing: Show, fresh: Show) -> Show:
    """Add episodes of ``fresh`` that ``existing`` does not know yet.

    Acquisition state and snippets of ``existing`` are kept.
    """
    for fresh_season in fresh.seasons:
        season = existing.season(fresh_season.season)
        if season is None:
            existing.seasons.append(fresh_season)
            continue
        known = {e.episode for e in season.episodes}
        season.episodes.extend(e for e in fresh_season.episodes if e.episode not in known)
        season.episodes.sort(key=lambda e: e.episode)
    existing.seasons.sort(key=lambda s: s.season)
    return existing


# =============================================================================
# TMDB Client
# =============================================================================


class TMDBClient:
    """Async client for the TMDB TV endpoints.

    Example:
        async with TMDBClient(api_key) as client:
            matches = await client.search_tv("The Wire")
            seasons = await client.get_seasons(matches[0].id)
    """

    def __init__(
        self,
        api_key: str,
        language: str = DEFAULT_LANGUAGE,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._language = language
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "TMDBClient":
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")
        return self._client

    async def _request(self, endpoint: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make authenticated request to TMDB API.

        Raises:
            TMDBNotFoundError: Resource not found (404)
            TMDBAuthError: Invalid API key (401)
            TMDBError: Other API errors
        """
        full_params: dict[str, Any] = {"api_key": self._api_key, "language": self._language}
        if params:
            full_params.update(params)

        url = f"{TMDB_BASE_URL}{endpoint}"
        logger.debug("tmdb_request", endpoint=endpoint, params=params)

        try:
            response = await self.client.get(url, params=full_params)
        except httpx.TimeoutException as e:
            logger.warning("tmdb_timeout", endpoint=endpoint)
            raise TMDBError(f"Request timeout: {e}") from e
        except httpx.HTTPError as e:
            logger.warning("tmdb_http_error", endpoint=endpoint, error=str(e))
            raise TMDBError(f"HTTP error: {e}") from e

        if response.status_code == 200:
            try:
                return response.json()
            except ValueError as e:
                raise TMDBError(f"Invalid JSON response: {e}") from e
        if response.status_code == 401:
            raise TMDBAuthError("Invalid TMDB API key")
        if response.status_code == 404:
            raise TMDBNotFoundError(f"Resource not found: {endpoint}")

        error_msg = response.text[:200] if response.text else "Unknown error"
        raise TMDBError(f"TMDB API error {response.status_code}: {error_msg}")

    async def search_tv(self, query: str) -> list[ShowMatch]:
        """Search TV shows by title.

        Returns:
            Matches ordered by vote count, most voted first.
        """
        data = await self._request("/search/tv", {"query": query})
        matches = [ShowMatch(**item) for item in data.get("results", []) if item.get("name")]
        matches.sort(key=lambda m: m.vote_count, reverse=True)
        logger.info("tmdb_tv_search", query=query, count=len(matches))
        return matches

    async def get_seasons(self, tv_id: int) -> list[SeasonInfo]:
        """Seasons of a show with their episodes."""
        details = await self._request(f"/tv/{tv_id}")
        seasons = []
        for summary in details.get("seasons", []):
            number = summary.get("season_number")
            if number is None:
                continue
            data = await self._request(f"/tv/{tv_id}/season/{number}")
            seasons.append(SeasonInfo(season_number=number, episodes=data.get("episodes", [])))
        return seasons

    async def lookup_show(self, match: ShowMatch) -> Show:
        """Show with all aired episodes of a search match."""
        return build_show(match, await self.get_seasons(match.id))
