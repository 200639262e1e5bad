"""Retry policy for failed packets.

Backoff is durable: a scheduled retry is stored as `next_retry_at` on the
packet and the poller only picks the packet up once that time has passed,
so pending retries survive process restarts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from loguru import logger
from sqlalchemy import select, update

from packet_engine.config.settings import settings
from packet_engine.core.clock import Clock, utcnow
from packet_engine.db.models import Packet
from packet_engine.db.session import get_session
from packet_engine.packets.enums import ErrorKind, PacketStatus, is_retryable
from packet_engine.packets.errors import PacketAlreadyReadyError, PacketNotFoundError
from packet_engine.queue.error_handler import classify_message


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    base_delay_seconds: float = 5.0
    max_delay_seconds: float = 300.0
    exponential_base: float = 2.0

    @classmethod
    def from_settings(cls) -> RetryConfig:
        return cls(
            max_retries=settings.retry_max_retries,
            base_delay_seconds=settings.retry_base_delay_seconds,
            max_delay_seconds=settings.retry_max_delay_seconds,
            exponential_base=settings.retry_exponential_base,
        )


def _packet_error_kind(packet: Packet) -> ErrorKind | None:
    if packet.error_kind:
        try:
            return ErrorKind(packet.error_kind)
        except ValueError:
            pass
    if packet.last_error:
        return classify_message(packet.last_error)
    return None


class RetryService:
    def __init__(self, config: RetryConfig | None = None, clock: Clock = utcnow):
        self.config = config or RetryConfig.from_settings()
        self.clock = clock

    def calculate_delay(self, retry_count: int) -> timedelta:
        """Exponential backoff capped at the configured maximum."""
        seconds = self.config.base_delay_seconds * (self.config.exponential_base ** max(0, retry_count))
        return timedelta(seconds=min(seconds, self.config.max_delay_seconds))

    def _is_retryable_packet(self, packet: Packet) -> bool:
        if packet.status == PacketStatus.READY.value:
            return False
        if packet.retry_count >= self.config.max_retries:
            return False
        kind = _packet_error_kind(packet)
        return kind is None or is_retryable(kind)

    def should_retry(self, packet_id: str) -> bool:
        """Decide whether a failed packet gets another automatic attempt."""
        with get_session() as db:
            packet = db.get(Packet, packet_id)
            if packet is None:
                logger.bind(packet_id=packet_id).warning("[RETRY] Packet not found, not retrying")
                return False
            retry = self._is_retryable_packet(packet)
            logger.bind(
                packet_id=packet_id,
                retry_count=packet.retry_count,
                error_kind=packet.error_kind,
            ).debug(f"[RETRY] should_retry={retry}")
            return retry

    def schedule_retry(self, packet_id: str) -> datetime | None:
        """Re-arm a FAILED packet after its backoff delay.

        The status flip and the due time are written in one conditional
        update, so a packet that is no longer FAILED (already retried,
        regenerated or READY) is left untouched.

        Returns:
            The time the packet becomes due, or None if nothing was scheduled
        """
        with get_session() as db:
            packet = db.get(Packet, packet_id)
            if packet is None or packet.status != PacketStatus.FAILED.value or not self._is_retryable_packet(packet):
                return None

            due_at = self.clock() + self.calculate_delay(packet.retry_count)
            result = db.execute(
                update(Packet)
                .where(Packet.id == packet_id, Packet.status == PacketStatus.FAILED.value)
                .values(status=PacketStatus.PENDING.value, next_retry_at=due_at)
            )
            if result.rowcount != 1:
                return None

        logger.bind(packet_id=packet_id, due_at=due_at.isoformat()).info("[RETRY] Scheduled packet retry")
        return due_at

    def retry_now(self, packet_id: str, reset_count: bool = False) -> None:
        """Queue a packet for immediate regeneration, bypassing backoff.

        Raises:
            PacketNotFoundError: If the packet does not exist
            PacketAlreadyReadyError: If the packet already succeeded
        """
        with get_session() as db:
            packet = db.get(Packet, packet_id)
            if packet is None:
                raise PacketNotFoundError(packet_id)
            if packet.status == PacketStatus.READY.value:
                raise PacketAlreadyReadyError(packet_id)

            packet.status = PacketStatus.PENDING.value
            packet.next_retry_at = None
            packet.last_error = None
            packet.error_kind = None
            packet.admin_notified_at = None
            if reset_count:
                packet.retry_count = 0
            packet.updated_at = self.clock()

        logger.bind(packet_id=packet_id, reset_count=reset_count).info("[RETRY] Manual retry queued")

    def get_retryable_packets(self) -> list[str]:
        """IDs of FAILED packets that are still eligible for automatic retry."""
        with get_session() as db:
            packets = db.execute(
                select(Packet)
                .where(Packet.status == PacketStatus.FAILED.value, Packet.retry_count < self.config.max_retries)
                .order_by(Packet.updated_at)
            ).scalars().all()
            return [packet.id for packet in packets if self._is_retryable_packet(packet)]

    def requeue_retryable_packets(self) -> int:
        """Schedule retries for FAILED packets that never got one (e.g. after a crash)."""
        scheduled = sum(1 for packet_id in self.get_retryable_packets() if self.schedule_retry(packet_id))
        if scheduled:
            logger.info(f"[RETRY] Re-armed {scheduled} failed packet(s)")
        return scheduled

    def get_retry_stats(self) -> dict[str, Any]:
        with get_session() as db:
            failed = db.execute(select(Packet).where(Packet.status == PacketStatus.FAILED.value)).scalars().all()
            exceeded = [packet for packet in failed if packet.retry_count >= self.config.max_retries]
            retryable = [packet for packet in failed if self._is_retryable_packet(packet)]
            total_retries = sum(packet.retry_count for packet in failed)

        return {
            "total_failed": len(failed),
            "retryable": len(retryable),
            "non_retryable": len(failed) - len(retryable),
            "exceeded_max_retries": len(exceeded),
            "average_retry_count": round(total_retries / len(failed), 2) if failed else 0.0,
        }
