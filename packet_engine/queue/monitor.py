"""Queue statistics and health assessment."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from sqlalchemy import func, select

from packet_engine.config.settings import settings
from packet_engine.db.models import Packet
from packet_engine.db.session import get_session
from packet_engine.packets.enums import PacketStatus

PENDING_WARNING_THRESHOLD = 50
PENDING_CRITICAL_THRESHOLD = 100
FAILURE_RATE_WARNING = 0.10
FAILURE_RATE_CRITICAL = 0.20

HealthStatus = Literal["healthy", "warning", "critical"]


@dataclass(frozen=True)
class QueueStats:
    pending: int
    generating: int
    ready: int
    failed: int
    exhausted: int


@dataclass
class QueueHealth:
    status: HealthStatus
    stats: QueueStats
    failure_rate: float
    issues: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def get_queue_stats(max_attempts: int | None = None) -> QueueStats:
    """Count packets per queue state.

    `exhausted` counts FAILED packets that reached the attempt limit.
    """
    limit = settings.queue_max_attempts if max_attempts is None else max_attempts
    with get_session() as db:
        counts = dict(db.execute(select(Packet.status, func.count(Packet.id)).group_by(Packet.status)).all())
        exhausted = db.execute(
            select(func.count(Packet.id)).where(
                Packet.status == PacketStatus.FAILED.value,
                Packet.retry_count >= limit,
            )
        ).scalar_one()

    return QueueStats(
        pending=counts.get(PacketStatus.PENDING.value, 0),
        generating=counts.get(PacketStatus.GENERATING.value, 0),
        ready=counts.get(PacketStatus.READY.value, 0),
        failed=counts.get(PacketStatus.FAILED.value, 0),
        exhausted=exhausted,
    )


def _escalate(current: HealthStatus, new: HealthStatus) -> HealthStatus:
    order = ("healthy", "warning", "critical")
    return new if order.index(new) > order.index(current) else current


def assess_health(stats: QueueStats) -> QueueHealth:
    status: HealthStatus = "healthy"
    issues: list[str] = []

    if stats.pending > PENDING_CRITICAL_THRESHOLD:
        status = _escalate(status, "critical")
        issues.append(f"Queue backlog is critical: {stats.pending} pending packets")
    elif stats.pending > PENDING_WARNING_THRESHOLD:
        status = _escalate(status, "warning")
        issues.append(f"Queue backlog is growing: {stats.pending} pending packets")

    finished = stats.ready + stats.failed
    failure_rate = stats.failed / finished if finished else 0.0
    if failure_rate > FAILURE_RATE_CRITICAL:
        status = _escalate(status, "critical")
        issues.append(f"Failure rate is critical: {failure_rate:.0%}")
    elif failure_rate > FAILURE_RATE_WARNING:
        status = _escalate(status, "warning")
        issues.append(f"Failure rate is elevated: {failure_rate:.0%}")

    if stats.generating == 0 and stats.pending > 0:
        status = _escalate(status, "warning")
        issues.append("Queue may be stalled: pending packets but none generating")

    return QueueHealth(status=status, stats=stats, failure_rate=round(failure_rate, 4), issues=issues)


def get_queue_health() -> QueueHealth:
    return assess_health(get_queue_stats())
