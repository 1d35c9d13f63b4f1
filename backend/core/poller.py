"""
Background poller that feeds pending processing jobs to the pipeline.

Single-process and best-effort: no distributed lock, so two pollers running
against the same database can pick up the same job.
"""
import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from core.config import POLL_INTERVAL_SECONDS
from core.gateways import ProcessingJobRepository
from core.pipeline import PipelineOrchestrator
from models.transcript_models import utc_now

logger = logging.getLogger(__name__)


class JobPoller:
    """Runs the oldest pending job once per tick until stopped."""

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        job_repository: ProcessingJobRepository,
        interval_seconds: float = POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.orchestrator = orchestrator
        self.job_repository = job_repository
        self.interval_seconds = interval_seconds
        self.sleep = sleep
        self.clock = clock
        self.last_tick_at: Optional[datetime] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            logger.warning("Poller already running")
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"Poller started (interval {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Poller stopped")

    async def tick(self) -> Optional[str]:
        """
        Process at most one pending job.

        Returns the id of the job attempted, or None when the queue was empty.
        A failing job is logged and never propagates out of the tick.
        """
        self.last_tick_at = self.clock()
        job_id = None
        try:
            job = await self.job_repository.find_oldest_pending()
            if job is None:
                return None
            job_id = job.id
            logger.info(f"Poller picked job {job_id}")
            await self.orchestrator.run(job_id)
        except Exception:
            logger.exception(f"Poller tick failed (job {job_id})")
        return job_id

    async def _loop(self) -> None:
        while True:
            await self.tick()
            await self.sleep(self.interval_seconds)
