"""Show metadata from TMDB."""

from getme.media.tmdb import (
    EpisodeInfo,
    SeasonInfo,
    ShowMatch,
    TMDBAuthError,
    TMDBClient,
    TMDBError,
    TMDBNotFoundError,
    build_show,
    merge_show,
)

__all__ = [
    "TMDBClient",
    "TMDBError",
    "TMDBAuthError",
    "TMDBNotFoundError",
    "ShowMatch",
    "SeasonInfo",
    "EpisodeInfo",
    "build_show",
    "merge_show",
]
