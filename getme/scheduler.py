"""Periodic acquisition runs using APScheduler.

Usage:
    from getme.scheduler import AcquisitionScheduler

    scheduler = AcquisitionScheduler(settings)
    scheduler.start()

    # On shutdown:
    scheduler.stop()
"""

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from getme.acquisition import AcquisitionEngine
from getme.config import Settings
from getme.runner import ShowReport, build_engine, run_acquisition
from getme.store import get_storage

logger = structlog.get_logger(__name__)


class AcquisitionScheduler:
    """Runs an acquisition pass over all tracked shows at a fixed interval."""

    def __init__(self, config: Settings, engine: AcquisitionEngine | None = None):
        """Initialize the scheduler.

        Args:
            config: Settings; ``check_interval_hours`` sets the interval.
            engine: Engine to search with; built from ``config`` if omitted.
        """
        self._config = config
        self._engine = engine or build_engine(config)
        self._scheduler: AsyncIOScheduler | None = None
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        """Start the scheduler. Must be called with a running event loop."""
        if self._is_running:
            logger.warning("scheduler_already_running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_now,
            trigger=IntervalTrigger(hours=self._config.check_interval_hours),
            id="acquisition",
            name="Acquisition Run",
            replace_existing=True,
            max_instances=1,
        )
        self._scheduler.start()
        self._is_running = True

        logger.info(
            "acquisition_scheduler_started",
            interval_hours=self._config.check_interval_hours,
        )

    def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if self._scheduler and self._is_running:
            self._scheduler.shutdown(wait=False)
            self._is_running = False
            logger.info("acquisition_scheduler_stopped")

    async def run_now(self) -> list[ShowReport]:
        """Run one acquisition pass immediately."""
        logger.info("scheduled_acquisition_started")
        async with get_storage(self._config.database_path) as storage:
            return await run_acquisition(storage, self._engine, self._config)
