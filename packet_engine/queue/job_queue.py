"""Packet job queue.

The queue has no table of its own: a packet in PENDING whose retry is due is
a job. Workers claim jobs with a conditional PENDING -> GENERATING update, so
several poller processes can share the packets table without double
processing.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, replace
from datetime import timedelta

from loguru import logger
from sqlalchemy import or_, select, update

from packet_engine.config.settings import settings
from packet_engine.core.clock import Clock, utcnow
from packet_engine.db.models import Packet
from packet_engine.db.session import get_session
from packet_engine.notifications.service import NotificationService
from packet_engine.packets.enums import PacketStatus
from packet_engine.packets.errors import GenerationTimeoutError, PacketNotFoundError
from packet_engine.queue.error_handler import ErrorHandler
from packet_engine.queue.retry import RetryService


@dataclass(frozen=True)
class JobData:
    packet_id: str
    client_id: str
    document_type: str
    retry_count: int


@dataclass
class PollCycleResult:
    skipped: bool = False
    claimed: int = 0
    succeeded: int = 0
    failed: int = 0
    retried: int = 0
    abandoned: int = 0


Processor = Callable[[JobData], None]


def _default_processor(job: JobData) -> None:
    from packet_engine.generation.orchestrator import PacketGenerationService

    PacketGenerationService().orchestrate(job.client_id, job.packet_id, job.document_type, attempt=job.retry_count)


class PacketJobQueue:
    """Poll, claim and process pending packets."""

    def __init__(
        self,
        processor: Processor | None = None,
        retry_service: RetryService | None = None,
        error_handler: ErrorHandler | None = None,
        notifier: NotificationService | None = None,
        batch_size: int | None = None,
        max_attempts: int | None = None,
        processing_timeout_seconds: float | None = None,
        clock: Clock = utcnow,
    ):
        self.processor = processor or _default_processor
        self.clock = clock
        self.retry_service = retry_service or RetryService(clock=clock)
        self.error_handler = error_handler or ErrorHandler(clock=clock)
        self.notifier = notifier or NotificationService(clock=clock)
        self.batch_size = batch_size or settings.queue_batch_size
        self.max_attempts = max_attempts or settings.queue_max_attempts
        self.processing_timeout_seconds = processing_timeout_seconds or settings.processing_timeout_seconds
        self._cycle_lock = threading.Lock()

    # -----------------------------
    # Job bookkeeping
    # -----------------------------
    def enqueue(self, packet_id: str) -> None:
        """Put an existing packet (back) in the queue for immediate processing.

        Raises:
            PacketNotFoundError: If the packet does not exist
        """
        with get_session() as db:
            result = db.execute(
                update(Packet)
                .where(Packet.id == packet_id)
                .values(status=PacketStatus.PENDING.value, next_retry_at=None)
            )
            if result.rowcount != 1:
                raise PacketNotFoundError(packet_id)
        logger.bind(packet_id=packet_id).info("[QUEUE] Packet enqueued")

    def fetch_due_jobs(self) -> list[JobData]:
        """Due PENDING packets below the attempt limit, oldest first."""
        now = self.clock()
        with get_session() as db:
            query = (
                select(Packet)
                .where(
                    Packet.status == PacketStatus.PENDING.value,
                    Packet.retry_count < self.max_attempts,
                    or_(Packet.next_retry_at.is_(None), Packet.next_retry_at <= now),
                )
                .order_by(Packet.created_at.asc())
                .limit(self.batch_size)
            )
            return [
                JobData(
                    packet_id=packet.id,
                    client_id=packet.client_id,
                    document_type=packet.document_type,
                    retry_count=packet.retry_count,
                )
                for packet in db.execute(query).scalars().all()
            ]

    def claim(self, packet_id: str) -> bool:
        """Atomically move a packet from PENDING to GENERATING.

        Returns:
            True if this caller owns the attempt, False if another worker won
        """
        with get_session() as db:
            result = db.execute(
                update(Packet)
                .where(Packet.id == packet_id, Packet.status == PacketStatus.PENDING.value)
                .values(status=PacketStatus.GENERATING.value, next_retry_at=None, updated_at=self.clock())
            )
            return result.rowcount == 1

    def _claimed_retry_count(self, packet_id: str) -> int | None:
        with get_session() as db:
            return db.execute(
                select(Packet.retry_count).where(
                    Packet.id == packet_id,
                    Packet.status == PacketStatus.GENERATING.value,
                )
            ).scalar_one_or_none()

    # -----------------------------
    # Processing
    # -----------------------------
    def _run_with_timeout(self, job: JobData) -> None:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"packet-{job.packet_id[:8]}")
        try:
            future = executor.submit(self.processor, job)
            try:
                future.result(timeout=self.processing_timeout_seconds)
            except FutureTimeoutError as e:
                raise GenerationTimeoutError(job.packet_id, self.processing_timeout_seconds) from e
        finally:
            # A timed-out attempt keeps running in the background; its writes
            # are fenced by the claimed retry count and become no-ops.
            executor.shutdown(wait=False)

    def _ensure_failure_recorded(self, job: JobData, error: Exception) -> None:
        """Record the failure unless the processor already did.

        The orchestrator records its own failures; a packet still GENERATING
        under this attempt means the attempt was abandoned or the processor
        did not report the error.
        """
        if self._claimed_retry_count(job.packet_id) == job.retry_count:
            self.error_handler.handle(error, job.packet_id, job.client_id, job.document_type, attempt=job.retry_count)

    def _after_failure(self, job: JobData, result: PollCycleResult) -> None:
        if self.retry_service.should_retry(job.packet_id):
            if self.retry_service.schedule_retry(job.packet_id):
                result.retried += 1
            return
        logger.bind(packet_id=job.packet_id, document_type=job.document_type).warning(
            "[QUEUE] Packet failed permanently, alerting admins"
        )
        self.notifier.notify_admins_failed(job.packet_id, self.retry_service.config.max_retries)

    def process_job(self, job: JobData, result: PollCycleResult | None = None) -> bool:
        """Claim and process a single job. Returns True on success."""
        result = result if result is not None else PollCycleResult()
        if not self.claim(job.packet_id):
            logger.bind(packet_id=job.packet_id).debug("[QUEUE] Packet already claimed, skipping")
            return False
        result.claimed += 1

        # The attempt is fenced by the retry count it was claimed under
        retry_count = self._claimed_retry_count(job.packet_id)
        if retry_count is None:
            return False
        job = replace(job, retry_count=retry_count)

        log = logger.bind(packet_id=job.packet_id, document_type=job.document_type, attempt=job.retry_count + 1)
        log.info("[QUEUE] Processing packet")
        try:
            self._run_with_timeout(job)
        except GenerationTimeoutError as e:
            result.abandoned += 1
            result.failed += 1
            log.error(f"[QUEUE] {e}")
            self._ensure_failure_recorded(job, e)
            self._after_failure(job, result)
            return False
        except Exception as e:
            result.failed += 1
            log.warning(f"[QUEUE] Packet processing failed: {e}")
            self._ensure_failure_recorded(job, e)
            self._after_failure(job, result)
            return False

        result.succeeded += 1
        log.info("[QUEUE] Packet processed")
        return True

    def process_pending_jobs(self) -> PollCycleResult:
        """Run one poll cycle.

        Single-flight per queue instance: a cycle that starts while another is
        still running returns immediately with `skipped=True`.
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.debug("[QUEUE] Previous poll cycle still running, skipping")
            return PollCycleResult(skipped=True)

        result = PollCycleResult()
        try:
            jobs = self.fetch_due_jobs()
            if jobs:
                logger.info(f"[QUEUE] Found {len(jobs)} pending packet(s)")
            for job in jobs:
                self.process_job(job, result)
        except Exception as e:
            logger.exception(f"[QUEUE] Poll cycle failed: {e}")
        finally:
            self._cycle_lock.release()
        return result

    # -----------------------------
    # Maintenance
    # -----------------------------
    def release_stale_claims(self) -> int:
        """Fail packets stuck in GENERATING, e.g. after a worker crash.

        A claim is stale once it is older than twice the processing timeout.
        """
        cutoff = self.clock() - timedelta(seconds=self.processing_timeout_seconds * 2)
        with get_session() as db:
            stale = db.execute(
                select(Packet.id, Packet.client_id, Packet.document_type, Packet.retry_count).where(
                    Packet.status == PacketStatus.GENERATING.value,
                    Packet.updated_at < cutoff,
                )
            ).all()

        released = 0
        for packet_id, client_id, document_type, retry_count in stale:
            classified = self.error_handler.handle(
                GenerationTimeoutError(packet_id, self.processing_timeout_seconds),
                packet_id,
                client_id,
                document_type,
                attempt=retry_count,
            )
            if not classified.recorded:
                continue
            released += 1
            job = JobData(packet_id=packet_id, client_id=client_id, document_type=document_type, retry_count=retry_count + 1)
            self._after_failure(job, PollCycleResult())

        if released:
            logger.warning(f"[QUEUE] Released {released} stale GENERATING packet(s)")
        return released

    def run_maintenance(self) -> None:
        """Heal state the poll cycle cannot: stale claims, missed retries, missed admin alerts."""
        try:
            self.release_stale_claims()
            self.retry_service.requeue_retryable_packets()
            self.notifier.process_pending_notifications(self.retry_service.config.max_retries)
        except Exception as e:
            logger.exception(f"[QUEUE] Maintenance sweep failed: {e}")
