"""Background packet worker.

Runs the queue poll cycle and the maintenance sweep on APScheduler
interval jobs inside the API process.
"""

from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from packet_engine.config.settings import settings
from packet_engine.queue.job_queue import PacketJobQueue


class PacketWorker:
    def __init__(
        self,
        queue: PacketJobQueue | None = None,
        poll_interval_seconds: int | None = None,
        sweep_interval_seconds: int | None = None,
    ):
        self.queue = queue or PacketJobQueue()
        self.poll_interval_seconds = poll_interval_seconds or settings.queue_poll_interval_seconds
        self.sweep_interval_seconds = sweep_interval_seconds or settings.queue_sweep_interval_seconds
        self._scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self.running:
            logger.warning("[SCHEDULER] Packet worker already running")
            return

        scheduler = BackgroundScheduler()
        scheduler.add_job(
            self.queue.process_pending_jobs,
            trigger=IntervalTrigger(seconds=self.poll_interval_seconds),
            id="packet_queue_poll",
            name="Packet Queue Poller",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.add_job(
            self.queue.run_maintenance,
            trigger=IntervalTrigger(seconds=self.sweep_interval_seconds),
            id="packet_queue_maintenance",
            name="Packet Queue Maintenance",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info(f"[SCHEDULER] Started packet worker (poll every {self.poll_interval_seconds}s)")

    def stop(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("[SCHEDULER] Stopped packet worker")
