"""Generation failure handling.

Classifies failures, records them on the packet and in the audit log. The
classification is the single source of truth for retryability: the retry
service consults the persisted error kind instead of re-parsing messages.
"""

from __future__ import annotations

import re
import traceback
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Any

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from packet_engine.audit.audit_log import PACKET_GENERATION_ERROR, record_audit
from packet_engine.config.settings import settings
from packet_engine.core.clock import Clock, utcnow
from packet_engine.db.models import AuditLog, Packet
from packet_engine.db.session import get_session
from packet_engine.integrations.pdf_export import PdfExportError
from packet_engine.packets.enums import ErrorKind, PacketStatus, is_retryable
from packet_engine.packets.errors import ClientNotFoundError, TemplateNotFoundError

ERROR_TYPES: tuple[tuple[type[BaseException], ErrorKind], ...] = (
    (TemplateNotFoundError, ErrorKind.TEMPLATE_ERROR),
    (ClientNotFoundError, ErrorKind.DATA_ERROR),
    (PdfExportError, ErrorKind.EXPORT_ERROR),
    (SQLAlchemyError, ErrorKind.DATABASE_ERROR),
)

# Case-sensitive message patterns, checked in order; first match wins.
# "data", "AI" and "API" only match as whole words so that "database",
# "metadata" or "FAILED" do not pick up the wrong kind. Substrings such as
# "OpenAI" are therefore UNKNOWN_ERROR, which is still retried.
ERROR_PATTERNS: tuple[tuple[re.Pattern[str], ErrorKind], ...] = (
    (re.compile(r"template|Template"), ErrorKind.TEMPLATE_ERROR),
    (re.compile(r"Client not found|\bdata\b"), ErrorKind.DATA_ERROR),
    (re.compile(r"\bAI\b|\bAPI\b"), ErrorKind.AI_ERROR),
    (re.compile(r"PDF|export"), ErrorKind.EXPORT_ERROR),
    (re.compile(r"database|Database|SQL"), ErrorKind.DATABASE_ERROR),
)

RECENT_ERRORS_LIMIT = 20


@dataclass(frozen=True)
class ClassifiedError:
    kind: ErrorKind
    message: str
    retryable: bool
    recorded: bool = True


def classify_message(message: str) -> ErrorKind:
    for pattern, kind in ERROR_PATTERNS:
        if pattern.search(message or ""):
            return kind
    return ErrorKind.UNKNOWN_ERROR


def classify_error(error: BaseException | str) -> ClassifiedError:
    """Assign an error kind: known exception types first, then message keywords."""
    if isinstance(error, str):
        message = error
        kind = classify_message(message)
    else:
        message = str(error) or type(error).__name__
        kind = next((k for error_type, k in ERROR_TYPES if isinstance(error, error_type)), None)
        if kind is None:
            kind = classify_message(message)
    return ClassifiedError(kind=kind, message=message, retryable=is_retryable(kind))


def _format_traceback(error: BaseException | str) -> str | None:
    if isinstance(error, BaseException) and error.__traceback__ is not None:
        return "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return None


class ErrorHandler:
    def __init__(self, clock: Clock = utcnow, max_error_length: int | None = None):
        self.clock = clock
        self.max_error_length = max_error_length or settings.error_message_max_length

    def handle(
        self,
        error: BaseException | str,
        packet_id: str,
        client_id: str | None = None,
        document_type: str | None = None,
        attempt: int | None = None,
    ) -> ClassifiedError:
        """Record a failed generation attempt.

        Marks the packet FAILED, stores the truncated message and error kind,
        increments `retry_count` in SQL and writes an audit entry with the full
        traceback. Never raises: persistence problems are logged.

        Args:
            error: The failure
            packet_id: Packet the attempt was generating
            client_id: Owner of the packet, for the audit entry
            document_type: Packet type, for the audit entry
            attempt: `retry_count` of the packet when the attempt claimed it.
                When given, the failure is only recorded while the packet is
                still GENERATING under that attempt; a stale failure from an
                abandoned attempt is discarded without an audit entry.

        Returns:
            The classification of the error, with `recorded=False` when it was discarded
        """
        classified = classify_error(error)
        now = self.clock()
        log = logger.bind(
            packet_id=packet_id,
            client_id=client_id,
            document_type=document_type,
            error_kind=classified.kind.value,
            retryable=classified.retryable,
        )

        query = update(Packet).where(Packet.id == packet_id)
        if attempt is not None:
            query = query.where(Packet.status == PacketStatus.GENERATING.value, Packet.retry_count == attempt)

        try:
            with get_session() as db:
                result = db.execute(
                    query.values(
                        status=PacketStatus.FAILED.value,
                        last_error=classified.message[: self.max_error_length],
                        error_kind=classified.kind.value,
                        retry_count=Packet.retry_count + 1,
                        next_retry_at=None,
                        updated_at=now,
                    )
                )
                updated = result.rowcount == 1
        except Exception as e:
            log.bind(error=str(e)).error("Failed to record packet failure")
            updated = True

        if attempt is not None and not updated:
            log.warning(f"[GENERATION] Attempt no longer owns the packet, discarding stale failure: {classified.message}")
            return replace(classified, recorded=False)

        log.error(f"[GENERATION] Packet generation failed: {classified.message}")
        record_audit(
            PACKET_GENERATION_ERROR,
            packet_id,
            {
                "client_id": client_id,
                "document_type": document_type,
                "error_kind": classified.kind.value,
                "message": classified.message,
                "traceback": _format_traceback(error),
                "retryable": classified.retryable,
                "timestamp": now.isoformat(),
            },
        )
        return classified

    def get_error_stats(self, hours: int = 24) -> dict[str, Any]:
        """Summarize generation errors logged in the last `hours`."""
        since = self.clock() - timedelta(hours=hours)
        with get_session() as db:
            entries = db.execute(
                select(AuditLog)
                .where(AuditLog.action == PACKET_GENERATION_ERROR, AuditLog.created_at >= since)
                .order_by(AuditLog.created_at.desc())
            ).scalars().all()

        by_kind: dict[str, int] = {}
        by_document_type: dict[str, int] = {}
        for entry in entries:
            details = entry.details or {}
            kind = details.get("error_kind") or ErrorKind.UNKNOWN_ERROR.value
            document_type = details.get("document_type") or "UNKNOWN"
            by_kind[kind] = by_kind.get(kind, 0) + 1
            by_document_type[document_type] = by_document_type.get(document_type, 0) + 1

        return {
            "total": len(entries),
            "by_kind": by_kind,
            "by_document_type": by_document_type,
            "recent": [
                {
                    "packet_id": entry.resource_id,
                    "error_kind": (entry.details or {}).get("error_kind"),
                    "message": (entry.details or {}).get("message"),
                    "created_at": entry.created_at.isoformat(),
                }
                for entry in entries[:RECENT_ERRORS_LIMIT]
            ],
        }


def get_failed_packets_needing_attention(max_retries: int | None = None) -> list[Packet]:
    """FAILED packets that used up their retries, most recently failed first."""
    limit = settings.retry_max_retries if max_retries is None else max_retries
    with get_session() as db:
        query = (
            select(Packet)
            .where(Packet.status == PacketStatus.FAILED.value, Packet.retry_count >= limit)
            .order_by(Packet.updated_at.desc())
        )
        return list(db.execute(query).scalars().all())


def has_exceeded_max_retries(packet_id: str, max_retries: int | None = None) -> bool:
    limit = settings.retry_max_retries if max_retries is None else max_retries
    with get_session() as db:
        retry_count = db.execute(select(Packet.retry_count).where(Packet.id == packet_id)).scalar_one_or_none()
    return retry_count is not None and retry_count >= limit

