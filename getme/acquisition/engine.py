"""Acquisition engine.

Finds torrents for everything a show still misses:

1. Resolve which seasons and episodes are pending.
2. Build one query job per season pack and per episode (newest first,
   capped per run).
3. Run the jobs one after another; each job searches all engines at once.
4. For each winner, mark its season or episode as done and remember the
   snippet that found it on the show.

Jobs that find nothing leave their media pending for the next run.
"""

import structlog

from getme.acquisition.errors import NoTorrentsFoundError, UnknownMediaKindError
from getme.acquisition.fanout import FanOutCoordinator
from getme.acquisition.jobs import EPISODE_BATCH_SIZE, QueryJob, create_query_jobs
from getme.acquisition.queries import discovery_ladder, remembered_snippet, resolve_query
from getme.search.base import Torrent
from getme.store.models import MediaKind, Show, Snippet

logger = structlog.get_logger(__name__)


class AcquisitionEngine:
    """Runs the query jobs of a show against a fan-out coordinator."""

    def __init__(
        self,
        coordinator: FanOutCoordinator,
        episode_batch_size: int = EPISODE_BATCH_SIZE,
        discover: bool = True,
    ) -> None:
        """Initialize the engine.

        Args:
            coordinator: Coordinator used for every search.
            episode_batch_size: Maximum number of episodes searched per run.
            discover: Try alternative snippets for a slot the show has no
                remembered snippet for.
        """
        self._coordinator = coordinator
        self._episode_batch_size = episode_batch_size
        self._discover = discover

    async def search(self, show: Show) -> list[Torrent]:
        """Search torrents for all pending media of a show.

        Mutates the show: acquired media are marked done and snippets are
        stored. Persisting the show is up to the caller.

        Returns:
            Torrents found, each associated with its media item.

        Raises:
            UnknownMediaKindError: If a media item has an unknown snippet slot.
        """
        jobs = create_query_jobs(show, self._episode_batch_size)
        logger.info("query_jobs_created", show=show.title, jobs=len(jobs))

        # Slots whose discovery failed this run; later jobs only try the default
        exhausted: set[MediaKind] = set()
        torrents: list[Torrent] = []

        for job in jobs:
            torrent = await self.execute_job(show, job, exhausted)
            if torrent is not None:
                torrents.append(torrent)

        logger.info(
            "acquisition_finished",
            show=show.title,
            jobs=len(jobs),
            found=len(torrents),
        )
        return torrents

    async def execute_job(
        self,
        show: Show,
        job: QueryJob,
        exhausted: set[MediaKind] | None = None,
    ) -> Torrent | None:
        """Run one job and record its outcome on the show.

        Returns:
            The selected torrent, or None if nothing acceptable was found.

        Raises:
            UnknownMediaKindError: If the job's media has an unknown snippet slot.
        """
        slot = job.media.template_slot
        self._check_slot(slot)
        if exhausted is None:
            exhausted = set()

        # The template may have changed since the job was built
        job.snippet, job.query = resolve_query(show, job.media)

        discovering = (
            self._discover and slot not in exhausted and remembered_snippet(show, slot) is None
        )
        if discovering:
            attempts = discovery_ladder(show, job.media)
        else:
            attempts = iter([(job.snippet, job.query)])

        for snippet, query in attempts:
            try:
                torrent = await self._coordinator.execute(query)
            except NoTorrentsFoundError:
                logger.info(
                    "no_torrents_found",
                    show=show.title,
                    media=str(job.media),
                    query=query,
                )
                continue

            job.snippet, job.query = snippet, query
            self._record(show, job, torrent)
            return torrent

        if discovering:
            exhausted.add(slot)
        return None

    def _record(self, show: Show, job: QueryJob, torrent: Torrent) -> None:
        torrent.associated_media = job.media
        job.media.done()

        snippet = Snippet(
            title_snippet=job.snippet.title_snippet,
            format_snippet=job.snippet.format_snippet,
            score=torrent.seeds,
        )
        match job.media.template_slot:
            case MediaKind.SEASON:
                show.store_season_snippet(snippet)
            case MediaKind.EPISODE:
                show.store_episode_snippet(snippet)
            case unknown:
                raise UnknownMediaKindError(f"Unknown media kind: {unknown!r}")

        logger.info(
            "media_acquired",
            show=show.title,
            media=str(job.media),
            query=job.query,
            torrent=torrent.original_name,
            seeds=torrent.seeds,
            source=torrent.source,
        )

    @staticmethod
    def _check_slot(slot: object) -> None:
        match slot:
            case MediaKind.SEASON | MediaKind.EPISODE:
                return
            case _:
                raise UnknownMediaKindError(f"Unknown media kind: {slot!r}")
