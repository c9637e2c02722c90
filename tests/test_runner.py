"""Tests for acquisition runs, the scheduler and the command line."""

from unittest.mock import AsyncMock, patch

import pytest

from getme.config import Settings
from getme.download import HandOffResult, HandOffStatus
from getme.main import build_parser, format_show, run_cli
from getme.runner import build_engine, run_acquisition
from getme.scheduler import AcquisitionScheduler
from getme.search.base import SearchEngine, SearchEngineRegistry, Torrent
from getme.store import Episode, Season, Show, ShowStorage, Snippet


class FixedEngine(SearchEngine):
    name = "fixed"

    def __init__(self, answers: dict[str, list[Torrent]]):
        self.answers = answers

    async def search(self, query: str) -> list[Torrent]:
        return list(self.answers.get(query, []))


def make_settings(tmp_path, **overrides) -> Settings:
    return Settings(
        _env_file=None,
        database_path=str(tmp_path / "shows.db"),
        download_dir=str(tmp_path / "downloads"),
        **overrides,
    )


def two_episode_show(title: str = "X") -> Show:
    return Show(title=title, seasons=[Season(season=1, episodes=[Episode(1, 1), Episode(1, 2)])])


@pytest.fixture
async def storage(tmp_path):
    async with ShowStorage(tmp_path / "shows.db") as s:
        yield s


# =============================================================================
# Runner Tests
# =============================================================================


class TestBuildEngine:
    """Tests for build_engine."""

    def test_uses_settings(self, tmp_path):
        config = make_settings(tmp_path, search_timeout=1.5)
        registry = SearchEngineRegistry([FixedEngine({})])

        engine = build_engine(config, registry)

        assert engine._coordinator.registry is registry
        assert engine._coordinator._timeout == 1.5

    def test_default_registry_from_settings(self, tmp_path):
        config = make_settings(tmp_path, piratebay_enabled=False)

        engine = build_engine(config)

        assert engine._coordinator.registry.names == ["torapi"]

    def test_engines_use_search_timeout(self, tmp_path):
        config = make_settings(tmp_path, search_timeout=2.5)

        engine = build_engine(config)

        registry = engine._coordinator.registry
        assert registry.names == ["piratebay", "torapi"]
        assert [e._timeout for e in registry] == [2.5, 2.5]


class TestRunAcquisition:
    """Tests for run_acquisition."""

    @pytest.mark.asyncio
    async def test_found_torrents_handed_off_and_show_saved(self, storage, tmp_path):
        config = make_settings(tmp_path, discover_templates=False)
        await storage.save_show(two_episode_show())
        magnet = "magnet:?xt=urn:btih:x1"
        engine = build_engine(
            config,
            SearchEngineRegistry([FixedEngine({"X S01E01": [Torrent(magnet, "X S01E01", 9)]})]),
        )

        reports = await run_acquisition(storage, engine, config)

        assert len(reports) == 1
        assert [t.original_name for t in reports[0].torrents] == ["X S01E01"]
        assert reports[0].hand_offs == [HandOffResult(HandOffStatus.MAGNET, magnet)]
        assert reports[0].failed_hand_offs == 0

        saved = await storage.get_show("X")
        assert [e.pending for e in saved.episodes()] == [False, True]
        assert saved.query_snippets.for_episode == Snippet("original", "s%02de%02d", score=9)

    @pytest.mark.asyncio
    async def test_no_download(self, storage, tmp_path):
        config = make_settings(tmp_path, discover_templates=False)
        await storage.save_show(two_episode_show())
        engine = build_engine(
            config,
            SearchEngineRegistry(
                [FixedEngine({"X S01E02": [Torrent("magnet:?xt=urn:btih:x2", "X S01E02", 1)]})]
            ),
        )

        with patch("getme.runner.hand_off", new_callable=AsyncMock) as mock_hand_off:
            reports = await run_acquisition(storage, engine, config, download=False)

        mock_hand_off.assert_not_awaited()
        assert len(reports[0].torrents) == 1
        assert reports[0].hand_offs == []

    @pytest.mark.asyncio
    async def test_show_saved_when_hand_off_raises(self, storage, tmp_path):
        config = make_settings(tmp_path, discover_templates=False)
        await storage.save_show(two_episode_show())
        engine = build_engine(
            config,
            SearchEngineRegistry(
                [FixedEngine({"X S01E01": [Torrent("magnet:?xt=urn:btih:x1", "X S01E01", 9)]})]
            ),
        )

        with patch(
            "getme.runner.hand_off", new_callable=AsyncMock, side_effect=RuntimeError("boom")
        ):
            with pytest.raises(RuntimeError, match="boom"):
                await run_acquisition(storage, engine, config)

        saved = await storage.get_show("X")
        assert [e.pending for e in saved.episodes()] == [False, True]

    @pytest.mark.asyncio
    async def test_single_title(self, storage, tmp_path):
        config = make_settings(tmp_path)
        await storage.save_show(two_episode_show("X"))
        await storage.save_show(two_episode_show("Y"))
        engine = build_engine(config, SearchEngineRegistry([FixedEngine({})]))

        reports = await run_acquisition(storage, engine, config, title="Y")

        assert [r.title for r in reports] == ["Y"]
        assert await run_acquisition(storage, engine, config, title="Z") == []


class TestAcquisitionScheduler:
    """Tests for AcquisitionScheduler."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, tmp_path):
        config = make_settings(tmp_path)
        scheduler = AcquisitionScheduler(
            config, build_engine(config, SearchEngineRegistry([FixedEngine({})]))
        )

        scheduler.start()
        assert scheduler.is_running is True
        scheduler.stop()
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_run_now(self, tmp_path):
        config = make_settings(tmp_path)
        scheduler = AcquisitionScheduler(
            config, build_engine(config, SearchEngineRegistry([FixedEngine({})]))
        )

        assert await scheduler.run_now() == []


# =============================================================================
# Command Line Tests
# =============================================================================


class TestCommandLine:
    """Tests for the getme command."""

    def test_parser(self):
        args = build_parser().parse_args(["run", "--title", "X", "--no-download"])

        assert args.command == "run"
        assert args.title == "X"
        assert args.download is False

    def test_list_and_remove(self, tmp_path, capsys):
        config = make_settings(tmp_path)

        assert run_cli(["list"], config) == 0
        assert "No shows tracked." in capsys.readouterr().out

        assert run_cli(["remove", "X"], config) == 1

    def test_add_requires_tmdb_key(self, tmp_path, capsys):
        assert run_cli(["add", "The Wire"], make_settings(tmp_path)) == 2
        assert "TMDB_API_KEY" in capsys.readouterr().err

    def test_format_show(self):
        show = two_episode_show()
        show.store_episode_snippet(Snippet("original", "%dx%d", score=4))

        text = format_show(show)

        assert text.startswith("X: 1 seasons, 0 pending seasons, 2 pending episodes")
        assert "episode query: original / %dx%d (seeds 4)" in text
