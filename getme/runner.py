"""One acquisition pass over the tracked shows.

Loads each show, runs the acquisition engine on it, hands the found
torrents off and saves the show with its new state and snippets.
"""

from dataclasses import dataclass, field

import structlog

from getme.acquisition import AcquisitionEngine, FanOutCoordinator
from getme.config import Settings
from getme.download import HandOffResult, HandOffStatus, hand_off
from getme.search import SearchEngineRegistry, Torrent, default_registry
from getme.store import ShowStorage

logger = structlog.get_logger(__name__)


@dataclass
class ShowReport:
    title: str
    torrents: list[Torrent] = field(default_factory=list)
    hand_offs: list[HandOffResult] = field(default_factory=list)

    @property
    def failed_hand_offs(self) -> int:
        return sum(1 for r in self.hand_offs if r.status is HandOffStatus.ERROR)


def build_engine(
    config: Settings, registry: SearchEngineRegistry | None = None
) -> AcquisitionEngine:
    """Acquisition engine wired according to the configuration."""
    if registry is None:
        registry = default_registry(config)
    coordinator = FanOutCoordinator(registry, timeout=config.search_timeout)
    return AcquisitionEngine(
        coordinator,
        episode_batch_size=config.episode_batch_size,
        discover=config.discover_templates,
    )


async def run_acquisition(
    storage: ShowStorage,
    engine: AcquisitionEngine,
    config: Settings,
    title: str | None = None,
    download: bool = True,
) -> list[ShowReport]:
    """Search all tracked shows (or one) and hand off what was found.

    Args:
        storage: Connected show storage.
        engine: Engine to search with.
        config: Settings used for the hand-off.
        title: Only process the show with this title.
        download: Hand found torrents off; when False they are only reported.

    Returns:
        One report per processed show.
    """
    if title is not None:
        show = await storage.get_show(title)
        if show is None:
            logger.warning("show_not_tracked", title=title)
        shows = [show] if show is not None else []
    else:
        shows = await storage.list_shows()

    reports = []
    for show in shows:
        with structlog.contextvars.bound_contextvars(show=show.title):
            torrents = await engine.search(show)
            report = ShowReport(title=show.title, torrents=torrents)
            try:
                if download:
                    for torrent in torrents:
                        report.hand_offs.append(await hand_off(torrent, config))
            finally:
                await storage.save_show(show)
        reports.append(report)

    logger.info(
        "acquisition_run_finished",
        shows=len(reports),
        torrents=sum(len(r.torrents) for r in reports),
    )
    return reports
