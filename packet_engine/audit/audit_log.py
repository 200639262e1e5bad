"""Audit logging.

Append-only log of generation failures and notifications sent, kept so
admins can reconstruct what happened to a packet.
"""

from typing import Any

from loguru import logger

from packet_engine.db.models import AuditLog
from packet_engine.db.session import get_session

PACKET_GENERATION_ERROR = "PACKET_GENERATION_ERROR"
ADMIN_NOTIFICATION_SENT = "ADMIN_NOTIFICATION_SENT"

RESOURCE_PACKET = "PACKET"


def record_audit(
    action: str,
    resource_id: str | None,
    details: dict[str, Any],
    resource_type: str = RESOURCE_PACKET,
) -> None:
    """Persist an audit entry.

    Never raises: a failed audit write is logged and dropped so it cannot
    mask the failure being audited.

    Args:
        action: Audit action (e.g., PACKET_GENERATION_ERROR)
        resource_id: ID of the affected resource
        details: JSON-serializable payload
        resource_type: Kind of resource the entry refers to
    """
    try:
        with get_session() as session:
            session.add(
                AuditLog(
                    action=action,
                    resource_type=resource_type,
                    resource_id=resource_id,
                    details=details,
                )
            )
    except Exception as e:
        logger.bind(action=action, resource_id=resource_id, error=str(e)).warning("Failed to write audit log entry")
