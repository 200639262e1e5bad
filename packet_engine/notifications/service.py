"""Client and admin notifications for packet lifecycle events.

All operations are best-effort: failures are logged and never propagate
into generation or queue processing.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from sqlalchemy import or_, select, update

from packet_engine.audit.audit_log import ADMIN_NOTIFICATION_SENT, record_audit
from packet_engine.config.settings import settings
from packet_engine.core.clock import Clock, utcnow
from packet_engine.db.models import Client, Packet
from packet_engine.db.session import get_session
from packet_engine.notifications.channels import (
    ADMIN_PACKET_FAILED,
    CLIENT_PACKET_READY,
    CLIENT_PACKET_UPDATED,
    Notification,
    NotificationChannel,
    build_default_channel,
)
from packet_engine.packets.enums import NON_RETRYABLE_ERROR_KINDS, DocumentType, PacketStatus


@dataclass(frozen=True)
class _PacketSummary:
    packet_id: str
    client_id: str
    document_type: str
    status: str
    retry_count: int
    last_error: str | None
    client_name: str
    client_email: str | None


def _display_name(document_type: str) -> str:
    try:
        return DocumentType(document_type).display_name
    except ValueError:
        return document_type.title()


class NotificationService:
    def __init__(
        self,
        channel: NotificationChannel | None = None,
        admin_emails: list[str] | None = None,
        clock: Clock = utcnow,
    ):
        self.channel = channel or build_default_channel()
        self.admin_emails = settings.admin_email_list if admin_emails is None else admin_emails
        self.clock = clock

    def _load(self, packet_id: str) -> _PacketSummary | None:
        with get_session() as db:
            row = db.execute(
                select(Packet, Client).join(Client, Client.id == Packet.client_id).where(Packet.id == packet_id)
            ).first()
            if row is None:
                return None
            packet, client = row
            return _PacketSummary(
                packet_id=packet.id,
                client_id=client.id,
                document_type=packet.document_type,
                status=packet.status,
                retry_count=packet.retry_count,
                last_error=packet.last_error,
                client_name=client.full_name or "Client",
                client_email=client.email,
            )

    def _notify_client(self, packet_id: str, kind: str, verb: str) -> bool:
        try:
            summary = self._load(packet_id)
            if summary is None:
                logger.bind(packet_id=packet_id).warning("Cannot notify client: packet not found")
                return False
            if not summary.client_email:
                logger.bind(packet_id=packet_id, client_id=summary.client_id).info("Client has no e-mail, skipping notification")
                return False

            name = _display_name(summary.document_type)
            self.channel.send(
                Notification(
                    kind=kind,
                    recipients=[summary.client_email],
                    subject=f"Your {name} packet is {verb}",
                    body=(
                        f"Hi {summary.client_name}, your {name} packet is {verb}. "
                        f"View it at {settings.app_base_url}/packets/{packet_id}"
                    ),
                    metadata={"packet_id": packet_id, "document_type": summary.document_type},
                )
            )
            return True
        except Exception as e:
            logger.bind(packet_id=packet_id, error=str(e)).warning("Failed to send client notification")
            return False

    def notify_client_ready(self, packet_id: str) -> bool:
        """Tell the client their packet is ready. Returns whether a notification was sent."""
        return self._notify_client(packet_id, CLIENT_PACKET_READY, "ready")

    def notify_client_updated(self, packet_id: str) -> bool:
        """Tell the client an admin updated their packet."""
        return self._notify_client(packet_id, CLIENT_PACKET_UPDATED, "updated")

    def _claim_admin_notification(self, packet_id: str) -> bool:
        with get_session() as db:
            result = db.execute(
                update(Packet)
                .where(
                    Packet.id == packet_id,
                    Packet.status == PacketStatus.FAILED.value,
                    Packet.admin_notified_at.is_(None),
                )
                .values(admin_notified_at=self.clock())
            )
            return result.rowcount == 1

    def _release_admin_notification(self, packet_id: str) -> None:
        with get_session() as db:
            db.execute(update(Packet).where(Packet.id == packet_id).values(admin_notified_at=None))

    def notify_admins_failed(self, packet_id: str, max_retries: int) -> bool:
        """Alert admins that a packet failed for good.

        The packet's `admin_notified_at` marker is claimed with a conditional
        update before sending, so concurrent or repeated calls alert at most
        once per failure episode. A failed send releases the marker so the
        pending-notification sweep can try again.

        Returns:
            True if a notification was sent by this call
        """
        try:
            if not self.admin_emails:
                logger.bind(packet_id=packet_id).warning("No admin e-mails configured, cannot alert about failed packet")
                return False

            if not self._claim_admin_notification(packet_id):
                logger.bind(packet_id=packet_id).debug("Admin alert already sent or packet no longer FAILED")
                return False

            summary = self._load(packet_id)
            if summary is None:
                return False

            name = _display_name(summary.document_type)
            try:
                self.channel.send(
                    Notification(
                        kind=ADMIN_PACKET_FAILED,
                        recipients=list(self.admin_emails),
                        subject=f"Packet generation failed: {name} for {summary.client_name}",
                        body=(
                            f"Packet {packet_id} failed after {summary.retry_count} attempt(s) "
                            f"(max {max_retries}). Last error: {summary.last_error or 'unknown'}. "
                            f"Review it at {settings.app_base_url}/admin/packets/{packet_id}"
                        ),
                        metadata={
                            "packet_id": packet_id,
                            "client_id": summary.client_id,
                            "document_type": summary.document_type,
                            "retry_count": summary.retry_count,
                        },
                    )
                )
            except Exception:
                self._release_admin_notification(packet_id)
                raise

            record_audit(
                ADMIN_NOTIFICATION_SENT,
                packet_id,
                {
                    "client_id": summary.client_id,
                    "document_type": summary.document_type,
                    "recipients": list(self.admin_emails),
                    "retry_count": summary.retry_count,
                    "last_error": summary.last_error,
                },
            )
            logger.bind(packet_id=packet_id, recipients=len(self.admin_emails)).info("[NOTIFY] Admins alerted about failed packet")
            return True
        except Exception as e:
            logger.bind(packet_id=packet_id, error=str(e)).warning("Failed to alert admins about failed packet")
            return False

    def get_packets_needing_notification(self, max_retries: int) -> list[str]:
        """IDs of terminally failed packets that have not been reported yet.

        Terminal means the retries are used up or the error kind is never retried.
        """
        with get_session() as db:
            query = (
                select(Packet.id)
                .where(
                    Packet.status == PacketStatus.FAILED.value,
                    or_(
                        Packet.retry_count >= max_retries,
                        Packet.error_kind.in_([kind.value for kind in NON_RETRYABLE_ERROR_KINDS]),
                    ),
                    Packet.admin_notified_at.is_(None),
                )
                .order_by(Packet.updated_at)
            )
            return list(db.execute(query).scalars().all())

    def process_pending_notifications(self, max_retries: int) -> int:
        """Send admin alerts that were missed or failed earlier. Returns how many were sent."""
        sent = 0
        for packet_id in self.get_packets_needing_notification(max_retries):
            if self.notify_admins_failed(packet_id, max_retries):
                sent += 1
        if sent:
            logger.info(f"[NOTIFY] Sent {sent} pending admin alert(s)")
        return sent
