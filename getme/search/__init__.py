"""Search engines for torrent releases.

Each engine implements the ``SearchEngine`` contract; ``default_registry``
builds the set of engines enabled in the configuration.
"""

from typing import TYPE_CHECKING

from getme.search.base import SearchEngine, SearchEngineError, SearchEngineRegistry, Torrent
from getme.search.piratebay import (
    PirateBayClient,
    PirateBayEngine,
    PirateBayError,
    PirateBayUnavailableError,
)
from getme.search.torapi import TorAPIClient, TorAPIEngine, TorAPIError, TorAPIProvider

if TYPE_CHECKING:
    from getme.config import Settings


def default_registry(settings: "Settings") -> SearchEngineRegistry:
    """Build a registry with every engine enabled in ``settings``."""
    registry = SearchEngineRegistry()
    timeout = settings.search_timeout
    if settings.piratebay_enabled:
        registry.register(PirateBayEngine(api_url=settings.piratebay_api_url, timeout=timeout))
    if settings.torapi_enabled:
        registry.register(TorAPIEngine(base_url=settings.torapi_base_url, timeout=timeout))
    return registry


__all__ = [
    # Contract
    "SearchEngine",
    "SearchEngineError",
    "SearchEngineRegistry",
    "Torrent",
    "default_registry",
    # PirateBay
    "PirateBayClient",
    "PirateBayEngine",
    "PirateBayError",
    "PirateBayUnavailableError",
    # TorAPI
    "TorAPIClient",
    "TorAPIEngine",
    "TorAPIError",
    "TorAPIProvider",
]
