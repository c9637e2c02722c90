"""Tests for release filtering and selection."""

import pytest

from getme.acquisition.filters import apply_filter, is_english, select_best
from getme.search.base import Torrent


def torrent(name: str, seeds: int = 0, url: str = "") -> Torrent:
    return Torrent(url=url or f"magnet:?xt=urn:btih:{name}", original_name=name, seeds=seeds)


class TestIsEnglish:
    """Tests for the English release filter."""

    @pytest.mark.parametrize(
        "name",
        [
            "Show.S01E01.VOSTFR.720p",
            "Show S01E01 FRENCH 1080p",
            "Show S01E01 Spanish",
            "Show S01E01 Español",
            "Show.S01E01.ITA.ENG.720p",
            "Show S01E01 HC 1080p",
        ],
    )
    def test_rejected(self, name):
        assert is_english(name) is False

    @pytest.mark.parametrize(
        "name",
        [
            "Show S01E01 720p",
            "Capital S01E01",
            "Italian Job S01E01",
            "Chc S01E01",
            "Show.S01E01.ita.720p",
        ],
    )
    def test_accepted(self, name):
        assert is_english(name) is True


class TestApplyFilter:
    """Tests for apply_filter."""

    def test_keeps_order(self):
        torrents = [torrent("A", 1), torrent("B VOSTFR", 2), torrent("C", 3)]

        assert [t.original_name for t in apply_filter(torrents)] == ["A", "C"]

    def test_empty(self):
        assert apply_filter([]) == []


class TestSelectBest:
    """Tests for select_best."""

    def test_most_seeds(self):
        torrents = [torrent("A", 12), torrent("B", 87), torrent("C", 3)]

        assert select_best(torrents).original_name == "B"

    def test_tie_keeps_first(self):
        torrents = [torrent("A", 5), torrent("B", 5)]

        assert select_best(torrents).original_name == "A"

    def test_zero_seeds_still_selected(self):
        assert select_best([torrent("A", 0)]).original_name == "A"

    def test_empty(self):
        assert select_best([]) is None
