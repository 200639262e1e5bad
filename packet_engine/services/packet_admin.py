"""Admin operations on packets: regeneration and manual content edits."""

from __future__ import annotations

from typing import Any

from loguru import logger

from packet_engine.core.clock import Clock, utcnow
from packet_engine.db.models import Packet
from packet_engine.db.session import get_session
from packet_engine.notifications.service import NotificationService
from packet_engine.packets.enums import GeneratedBy, GenerationMethod, PacketStatus
from packet_engine.packets.errors import InvalidPacketStateError, PacketNotFoundError
from packet_engine.templates.schemas import PacketContent

REGENERATABLE_STATUSES = frozenset({PacketStatus.READY.value, PacketStatus.FAILED.value, PacketStatus.PENDING.value})


def get_packet(packet_id: str) -> Packet:
    with get_session() as db:
        packet = db.get(Packet, packet_id)
        if packet is None:
            raise PacketNotFoundError(packet_id)
        return packet


def regenerate_packet(packet_id: str, clock: Clock = utcnow) -> int:
    """Send a packet back through generation.

    Bumps the version and resets retry bookkeeping. The previous content
    stays in place until the new attempt succeeds.

    Returns:
        The new version number

    Raises:
        PacketNotFoundError: If the packet does not exist
        InvalidPacketStateError: If the packet is being generated right now
    """
    with get_session() as db:
        packet = db.get(Packet, packet_id)
        if packet is None:
            raise PacketNotFoundError(packet_id)
        if packet.status not in REGENERATABLE_STATUSES:
            raise InvalidPacketStateError(f"Packet {packet_id} is {packet.status} and cannot be regenerated")

        packet.previous_version_id = f"{packet.id}@v{packet.version}"
        packet.version += 1
        packet.status = PacketStatus.PENDING.value
        packet.retry_count = 0
        packet.last_error = None
        packet.error_kind = None
        packet.next_retry_at = None
        packet.admin_notified_at = None
        packet.updated_at = clock()
        version = packet.version

    logger.bind(packet_id=packet_id, version=version).info("Packet queued for regeneration")
    return version


def update_packet_content(
    packet_id: str,
    content: dict[str, Any] | PacketContent,
    mark_ready: bool = True,
    notifier: NotificationService | None = None,
    clock: Clock = utcnow,
) -> Packet:
    """Replace packet content by hand, bypassing rendering.

    Content is validated against the content tree schema. When the edit
    marks the packet READY the version is bumped and the client notified.

    Raises:
        PacketNotFoundError: If the packet does not exist
        pydantic.ValidationError: If the content does not match the schema
    """
    validated = content if isinstance(content, PacketContent) else PacketContent.model_validate(content)

    with get_session() as db:
        packet = db.get(Packet, packet_id)
        if packet is None:
            raise PacketNotFoundError(packet_id)

        packet.content = validated.model_dump(mode="json")
        packet.generation_method = GenerationMethod.MANUAL.value
        packet.generated_by = GeneratedBy.ADMIN.value
        packet.updated_at = clock()
        if mark_ready:
            packet.status = PacketStatus.READY.value
            packet.version += 1
            packet.last_error = None
            packet.error_kind = None
            packet.next_retry_at = None
        db.flush()
        updated = packet

    logger.bind(packet_id=packet_id, version=updated.version, ready=mark_ready).info("Packet content updated by admin")
    if mark_ready:
        (notifier or NotificationService()).notify_client_updated(packet_id)
    return updated
