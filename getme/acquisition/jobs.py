"""Query jobs for the pending media of a show."""

from dataclasses import dataclass

from getme.acquisition.queries import resolve_query
from getme.store.models import Episode, MediaItem, Season, Show, Snippet, sort_by_air_date

# Maximum number of episodes searched in one run. Long running shows
# catch up over several runs, newest episodes first.
EPISODE_BATCH_SIZE = 50


@dataclass
class QueryJob:
    """One search to run: the item it is for, the snippet used, the query."""

    media: MediaItem
    snippet: Snippet
    query: str


def resolve_pending(show: Show) -> tuple[list[Season], list[Episode]]:
    """Seasons to search as packs and episodes to search one by one."""
    return show.pending_seasons(), show.pending_episodes()


def queries_for_seasons(show: Show, seasons: list[Season]) -> list[QueryJob]:
    jobs = []
    for season in seasons:
        # Season 0 holds specials, rarely found and rarely interesting
        if season.season == 0:
            continue
        snippet, query = resolve_query(show, season)
        jobs.append(QueryJob(media=season, snippet=snippet, query=query))
    return jobs


def queries_for_episodes(
    show: Show, episodes: list[Episode], batch_size: int = EPISODE_BATCH_SIZE
) -> list[QueryJob]:
    jobs = []
    for episode in sort_by_air_date(episodes)[:batch_size]:
        snippet, query = resolve_query(show, episode)
        jobs.append(QueryJob(media=episode, snippet=snippet, query=query))
    return jobs


def create_query_jobs(show: Show, batch_size: int = EPISODE_BATCH_SIZE) -> list[QueryJob]:
    """Season jobs followed by at most ``batch_size`` episode jobs."""
    seasons, episodes = resolve_pending(show)
    return queries_for_seasons(show, seasons) + queries_for_episodes(show, episodes, batch_size)
