"""Domain models for tracked shows.

A show owns its seasons, a season owns its episodes. Each show also
remembers which query shape found a release last time (one snippet for
season packs, one for single episodes) so later runs start from it.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol


class MediaKind(str, Enum):
    """Granularity of a searchable media item.

    Doubles as the name of the snippet slot a successful search writes to.
    """

    SEASON = "season"
    EPISODE = "episode"


class MediaItem(Protocol):
    """Anything that can be searched for and marked as acquired."""

    @property
    def template_slot(self) -> MediaKind: ...

    def done(self) -> None: ...


@dataclass
class Snippet:
    """Query shape that produced a usable release.

    Attributes:
        title_snippet: Key of the title transform (see ``TITLE_ALTERNATIVES``).
        format_snippet: Key of the query format for the slot.
        score: Seed count of the release the snippet found.
    """

    title_snippet: str
    format_snippet: str
    score: int = 0


@dataclass
class QuerySnippets:
    """Remembered snippets of a show, at most one per slot."""

    for_season: Snippet | None = None
    for_episode: Snippet | None = None


@dataclass
class Episode:
    """A single episode of a season."""

    season: int
    episode: int
    air_date: datetime | None = None
    title: str | None = None
    pending: bool = True

    @property
    def template_slot(self) -> MediaKind:
        return MediaKind.EPISODE

    def done(self) -> None:
        """Mark the episode as acquired."""
        self.pending = False

    def __str__(self) -> str:
        return f"S{self.season:02d}E{self.episode:02d}"


@dataclass
class Season:
    """A season of a show, searchable as a single season pack."""

    season: int
    episodes: list[Episode] = field(default_factory=list)

    @property
    def template_slot(self) -> MediaKind:
        return MediaKind.SEASON

    def done(self) -> None:
        """Mark every episode of the season as acquired."""
        for episode in self.episodes:
            episode.done()

    def pending_episodes(self) -> list[Episode]:
        return [e for e in self.episodes if e.pending]

    def is_complete_pending(self) -> bool:
        """True when the season has episodes and none of them is acquired yet."""
        return bool(self.episodes) and all(e.pending for e in self.episodes)

    def __str__(self) -> str:
        return f"Season {self.season}"


@dataclass
class Show:
    """A tracked series.

    Attributes:
        title: Show title as used in search queries.
        seasons: Seasons ordered by season number.
        tmdb_id: TMDB identifier, if the show was added through TMDB.
        query_snippets: Remembered query shapes.
    """

    title: str
    seasons: list[Season] = field(default_factory=list)
    tmdb_id: int | None = None
    query_snippets: QuerySnippets = field(default_factory=QuerySnippets)

    @property
    def display_title(self) -> str:
        return self.title

    def episodes(self) -> list[Episode]:
        """All episodes of all seasons."""
        return [episode for season in self.seasons for episode in season.episodes]

    def _ordered_seasons(self) -> list[Season]:
        return sorted(self.seasons, key=lambda s: s.season)

    def pending_seasons(self) -> list[Season]:
        """Seasons to be searched as a whole.

        The last season is never returned: it is assumed to still be airing,
        so its episodes are searched one by one. Earlier seasons qualify only
        when every one of their episodes is pending.
        """
        return [s for s in self._ordered_seasons()[:-1] if s.is_complete_pending()]

    def pending_episodes(self) -> list[Episode]:
        """Pending episodes not covered by a pending season."""
        ordered = self._ordered_seasons()
        pending: list[Episode] = []
        for index, season in enumerate(ordered):
            is_last = index == len(ordered) - 1
            if not is_last and season.is_complete_pending():
                continue
            pending.extend(season.pending_episodes())
        return pending

    def store_season_snippet(self, snippet: Snippet) -> None:
        """Remember the season snippet, replacing any previous one."""
        self.query_snippets.for_season = snippet

    def store_episode_snippet(self, snippet: Snippet) -> None:
        """Remember the episode snippet, replacing any previous one."""
        self.query_snippets.for_episode = snippet

    def season(self, number: int) -> Season | None:
        for season in self.seasons:
            if season.season == number:
                return season
        return None


def sort_by_air_date(episodes: Iterable[Episode]) -> list[Episode]:
    """Order episodes most recently aired first.

    Episodes without an air date sort last.
    """
    return sorted(
        episodes,
        key=lambda e: (e.air_date is not None, e.air_date.timestamp() if e.air_date else 0.0),
        reverse=True,
    )
