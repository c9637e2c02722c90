"""Search query construction.

A query is a title transform applied to the show title, combined with a
format for the media item ("The Wire S01E02", "The Wire 1x02", ...).
Which transform and which format to use is remembered per show as a
``Snippet``; shows without one start from the defaults.
"""

import dataclasses
import re
from collections.abc import Callable, Iterator

from getme.acquisition.errors import UnknownMediaKindError, UnknownSnippetError
from getme.store.models import Episode, MediaItem, MediaKind, Season, Show, Snippet

DEFAULT_TITLE_SNIPPET = "original"
DEFAULT_SEASON_FORMAT = "season"
DEFAULT_EPISODE_FORMAT = "s%02de%02d"


def _alphanumeric(title: str) -> str:
    kept = "".join(c for c in title if c.isalnum() or c.isspace())
    return " ".join(kept.split())


def _first_words(count: int) -> Callable[[str], str]:
    def transform(title: str) -> str:
        return " ".join(title.split()[:count])

    return transform


TITLE_ALTERNATIVES: dict[str, Callable[[str], str]] = {
    "original": lambda title: title,
    "alphanumeric": _alphanumeric,
    "first_5_words": _first_words(5),
    "first_4_words": _first_words(4),
    "first_3_words": _first_words(3),
}


def _season_format(title: str, season: Season) -> str | None:
    return f"{title} season {season.season}"


def _sxe_padded(title: str, episode: Episode) -> str | None:
    return f"{title} S{episode.season:02d}E{episode.episode:02d}"


def _sxe_short(title: str, episode: Episode) -> str | None:
    return f"{title} {episode.season}x{episode.episode}"


def _air_date(title: str, episode: Episode) -> str | None:
    # Daily shows are released by date; no date, no query.
    if episode.air_date is None:
        return None
    date = episode.air_date
    return f"{title} {date.year} {date.month:02d} {date.day:02d}"


SEASON_QUERY_ALTERNATIVES: dict[str, Callable[[str, Season], str | None]] = {
    "season": _season_format,
}

EPISODE_QUERY_ALTERNATIVES: dict[str, Callable[[str, Episode], str | None]] = {
    "s%02de%02d": _sxe_padded,
    "%dx%d": _sxe_short,
    "%d %02d %02d": _air_date,
}


def _formats_for(slot: MediaKind) -> dict[str, Callable]:
    match slot:
        case MediaKind.SEASON:
            return SEASON_QUERY_ALTERNATIVES
        case MediaKind.EPISODE:
            return EPISODE_QUERY_ALTERNATIVES
        case _:
            raise UnknownMediaKindError(f"Unknown media kind: {slot!r}")


def default_snippet(slot: MediaKind) -> Snippet:
    match slot:
        case MediaKind.SEASON:
            return Snippet(DEFAULT_TITLE_SNIPPET, DEFAULT_SEASON_FORMAT)
        case MediaKind.EPISODE:
            return Snippet(DEFAULT_TITLE_SNIPPET, DEFAULT_EPISODE_FORMAT)
        case _:
            raise UnknownMediaKindError(f"Unknown media kind: {slot!r}")


def remembered_snippet(show: Show, slot: MediaKind) -> Snippet | None:
    """The snippet stored on the show for a slot, if any."""
    match slot:
        case MediaKind.SEASON:
            return show.query_snippets.for_season
        case MediaKind.EPISODE:
            return show.query_snippets.for_episode
        case _:
            raise UnknownMediaKindError(f"Unknown media kind: {slot!r}")


def select_snippet(show: Show, slot: MediaKind) -> Snippet:
    """Snippet to start from: the remembered one, else the default.

    Returns a copy, so callers may set its score freely.
    """
    snippet = remembered_snippet(show, slot)
    if snippet is None:
        return default_snippet(slot)
    return dataclasses.replace(snippet)


def render_query(snippet: Snippet, title: str, media: MediaItem) -> str | None:
    """Apply a snippet to a show title and a media item.

    Returns:
        The query, or None when the format does not apply to the item
        (date format for an episode without air date).

    Raises:
        UnknownSnippetError: If the snippet names an unregistered transform or format.
    """
    formats = _formats_for(media.template_slot)
    try:
        transform = TITLE_ALTERNATIVES[snippet.title_snippet]
    except KeyError:
        raise UnknownSnippetError(f"Unknown title snippet: {snippet.title_snippet!r}") from None
    try:
        query_format = formats[snippet.format_snippet]
    except KeyError:
        raise UnknownSnippetError(f"Unknown format snippet: {snippet.format_snippet!r}") from None

    query = query_format(transform(title), media)
    if query is None:
        return None
    return re.sub(r"\s+", " ", query).strip()


def resolve_query(show: Show, media: MediaItem) -> tuple[Snippet, str]:
    """Snippet and query string for a media item of a show.

    Falls back to the default snippet when the remembered one does not
    apply to this item.
    """
    slot = media.template_slot
    snippet = select_snippet(show, slot)
    query = render_query(snippet, show.title, media)
    if query is None:
        snippet = default_snippet(slot)
        query = render_query(snippet, show.title, media)
    if query is None:
        raise UnknownSnippetError(f"Default snippet does not apply to {media}")
    return snippet, query


def build_query(show: Show, media: MediaItem) -> str:
    """Search query for a media item of a show."""
    return resolve_query(show, media)[1]


def discovery_ladder(show: Show, media: MediaItem) -> Iterator[tuple[Snippet, str]]:
    """Every snippet worth trying for a media item, most likely first.

    Starts with the snippet ``resolve_query`` would use, then walks every
    title transform for every format. Snippets that render the same query
    as an earlier one are skipped.
    """
    seen: set[str] = set()

    first = resolve_query(show, media)
    seen.add(first[1].lower())
    yield first

    for format_snippet in _formats_for(media.template_slot):
        for title_snippet in TITLE_ALTERNATIVES:
            snippet = Snippet(title_snippet, format_snippet)
            query = render_query(snippet, show.title, media)
            if query is None or query.lower() in seen:
                continue
            seen.add(query.lower())
            yield snippet, query
