"""Packet generation orchestrator.

Coordinates one generation attempt: load the client, resolve the template,
build the context, render, enrich, export and persist. Failures are recorded
through the error handler and re-raised to the queue.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from loguru import logger
from sqlalchemy import select, update

from packet_engine.config.settings import settings
from packet_engine.core.clock import Clock, utcnow
from packet_engine.db.models import Client, Packet
from packet_engine.db.session import get_session
from packet_engine.generation.context import build_context
from packet_engine.generation.enrichment import Enricher, enrich
from packet_engine.integrations.pdf_export import PdfExporter, PdfExportOptions, build_default_exporter
from packet_engine.notifications.service import NotificationService
from packet_engine.packets.enums import DocumentType, GenerationMethod, PacketStatus
from packet_engine.packets.errors import ClientNotFoundError
from packet_engine.queue.error_handler import ErrorHandler
from packet_engine.templates.loader import resolve_template
from packet_engine.templates.renderer import render_template
from packet_engine.templates.schemas import PacketContent, TemplateDefinition

TemplateResolver = Callable[[str, str | None], TemplateDefinition]


def _display_name(document_type: str) -> str:
    try:
        return DocumentType(document_type).display_name
    except ValueError:
        return document_type.title()


class PacketGenerationService:
    def __init__(
        self,
        template_resolver: TemplateResolver = resolve_template,
        enrichers: dict[DocumentType, Enricher] | None = None,
        pdf_exporter: PdfExporter | None = None,
        notifier: NotificationService | None = None,
        error_handler: ErrorHandler | None = None,
        clock: Clock = utcnow,
    ):
        self.template_resolver = template_resolver
        self.enrichers = enrichers
        self.pdf_exporter = pdf_exporter if pdf_exporter is not None else build_default_exporter()
        self.notifier = notifier or NotificationService(clock=clock)
        self.error_handler = error_handler or ErrorHandler(clock=clock)
        self.clock = clock

    def _load_client(self, client_id: str) -> Client:
        with get_session() as db:
            client = db.get(Client, client_id)
            if client is None:
                raise ClientNotFoundError(client_id)
            return client

    def _build(self, client: Client, document_type: str) -> PacketContent:
        template = self.template_resolver(document_type, client.classification)
        context = build_context(client, self.clock().date())
        content = render_template(template, context)
        content = enrich(document_type, content, context, self.enrichers)
        content.metadata.update(
            {
                "document_type": document_type,
                "template_id": template.id,
                "template_name": template.name,
                "template_version": template.version,
                "generated_at": self.clock().isoformat(),
            }
        )
        return content

    def generate_packet(self, client_id: str, document_type: DocumentType | str) -> PacketContent:
        """Render a packet for a client without persisting anything.

        Raises:
            ClientNotFoundError: If the client does not exist
            TemplateNotFoundError: If no template exists for the document type
        """
        client = self._load_client(client_id)
        return self._build(client, str(document_type))

    def _export_pdf(self, packet_id: str, content: dict[str, Any], client_name: str, document_type: str) -> str | None:
        if self.pdf_exporter is None:
            logger.bind(packet_id=packet_id).debug("PDF export not configured, skipping")
            return None
        name = _display_name(document_type)
        options = PdfExportOptions(
            title=f"{name} Plan - {client_name}",
            author=settings.pdf_author,
            subject=f"Personalized {name} Packet",
        )
        try:
            return self.pdf_exporter.export(packet_id, content, client_name, document_type, options)
        except Exception as e:
            logger.bind(packet_id=packet_id, error=str(e)).warning("PDF export failed, packet will be saved without a PDF")
            return None

    def _claimed_attempt(self, packet_id: str) -> int | None:
        """`retry_count` of the packet if it is GENERATING, otherwise None."""
        with get_session() as db:
            return db.execute(
                select(Packet.retry_count).where(
                    Packet.id == packet_id,
                    Packet.status == PacketStatus.GENERATING.value,
                )
            ).scalar_one_or_none()

    def _persist(self, packet_id: str, attempt: int, content: dict[str, Any], pdf_url: str | None) -> bool:
        now = self.clock()
        with get_session() as db:
            result = db.execute(
                update(Packet)
                .where(
                    Packet.id == packet_id,
                    Packet.status == PacketStatus.GENERATING.value,
                    Packet.retry_count == attempt,
                )
                .values(
                    content=content,
                    pdf_url=pdf_url,
                    status=PacketStatus.READY.value,
                    generation_method=GenerationMethod.TEMPLATE.value,
                    generated_at=now,
                    last_error=None,
                    error_kind=None,
                    next_retry_at=None,
                    updated_at=now,
                )
            )
            return result.rowcount == 1

    def orchestrate(
        self,
        client_id: str,
        packet_id: str,
        document_type: DocumentType | str,
        attempt: int | None = None,
    ) -> PacketContent | None:
        """Generate, export and persist a claimed packet.

        The packet must already be GENERATING. `attempt` is its `retry_count`
        at claim time and is read from the packet when omitted. Both the final
        write and the failure record only apply while that attempt still owns
        the packet, so an attempt the queue abandoned after a timeout cannot
        overwrite later state.

        Returns:
            The generated content, or None if the packet was not GENERATING

        Raises:
            Exception: Any generation or persistence error, after it was recorded
        """
        document_type = str(document_type)
        log = logger.bind(packet_id=packet_id, client_id=client_id, document_type=document_type)

        if attempt is None:
            attempt = self._claimed_attempt(packet_id)
        if attempt is None:
            log.warning("[GENERATION] Packet is not GENERATING, skipping")
            return None

        log.info("[GENERATION] Generating packet")
        try:
            client = self._load_client(client_id)
            content = self._build(client, document_type)
            payload = content.model_dump(mode="json")
            pdf_url = self._export_pdf(packet_id, payload, client.full_name or "Client", document_type)
            persisted = self._persist(packet_id, attempt, payload, pdf_url)
        except Exception as e:
            self.error_handler.handle(e, packet_id, client_id, document_type, attempt=attempt)
            raise

        if not persisted:
            log.warning("[GENERATION] Attempt no longer owns the packet, discarding result")
            return content

        log.bind(sections=len(content.sections), pdf=bool(pdf_url)).info("[GENERATION] Packet ready")
        self.notifier.notify_client_ready(packet_id)
        return content
