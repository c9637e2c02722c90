"""Release filtering and selection.

Only English releases are wanted. Names are matched loosely: a show with
"french" in its title would be filtered out too.
"""

import re

from getme.search.base import Torrent

# Matched case-insensitively anywhere in the name
UNWANTED_SUBSTRINGS = (
    "french",
    "spanish",
    "español",
    # Version Originale Sous-Titrée en FRançais, hard coded French subtitles
    "vostfr",
)

# Matched case-sensitively as whole words: Italian dubs, hard coded subtitles
UNWANTED_TOKENS = re.compile(r"\b(?:ITA|HC)\b")


def is_english(name: str) -> bool:
    """Whether a release name looks like an English, unsubtitled release."""
    lowered = name.lower()
    if any(unwanted in lowered for unwanted in UNWANTED_SUBSTRINGS):
        return False
    return UNWANTED_TOKENS.search(name) is None


def apply_filter(torrents: list[Torrent]) -> list[Torrent]:
    """Drop unwanted releases, keeping the order of the rest."""
    return [t for t in torrents if is_english(t.original_name)]


def select_best(torrents: list[Torrent]) -> Torrent | None:
    """Torrent with the most seeds; the earliest one wins a tie."""
    if not torrents:
        return None
    return max(torrents, key=lambda t: t.seeds)
