"""Acquisition of releases for tracked shows.

Turns the pending media of a show into search queries, runs each query
against all search engines at once, and keeps the best English release.
"""

from getme.acquisition.engine import AcquisitionEngine
from getme.acquisition.errors import (
    AcquisitionError,
    AcquisitionInvariantError,
    NoTorrentsFoundError,
    UnknownMediaKindError,
    UnknownSnippetError,
)
from getme.acquisition.fanout import SEARCH_TIMEOUT, FanOutCoordinator
from getme.acquisition.filters import apply_filter, is_english, select_best
from getme.acquisition.jobs import EPISODE_BATCH_SIZE, QueryJob, create_query_jobs, resolve_pending
from getme.acquisition.queries import build_query, discovery_ladder, select_snippet

__all__ = [
    # Engine
    "AcquisitionEngine",
    "FanOutCoordinator",
    "SEARCH_TIMEOUT",
    # Jobs and queries
    "EPISODE_BATCH_SIZE",
    "QueryJob",
    "create_query_jobs",
    "resolve_pending",
    "build_query",
    "discovery_ladder",
    "select_snippet",
    # Filtering
    "apply_filter",
    "is_english",
    "select_best",
    # Errors
    "AcquisitionError",
    "AcquisitionInvariantError",
    "NoTorrentsFoundError",
    "UnknownMediaKindError",
    "UnknownSnippetError",
]
