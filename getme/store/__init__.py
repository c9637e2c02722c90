"""Tracked shows and their persistence.

Provides the show/season/episode models, the remembered query snippets,
and SQLite storage for them.
"""

from getme.store.models import (
    Episode,
    MediaItem,
    MediaKind,
    QuerySnippets,
    Season,
    Show,
    Snippet,
    sort_by_air_date,
)
from getme.store.storage import ShowStorage, get_storage

__all__ = [
    # Models
    "Show",
    "Season",
    "Episode",
    "MediaItem",
    "MediaKind",
    "Snippet",
    "QuerySnippets",
    "sort_by_air_date",
    # Storage
    "ShowStorage",
    "get_storage",
]
