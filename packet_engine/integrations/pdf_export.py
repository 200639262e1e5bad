"""PDF export client.

Layout and storage belong to an external rendering service; this module only
sends the structured content and returns the URL of the stored document.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Protocol

import httpx
from loguru import logger

from packet_engine.config.settings import settings


class PdfExportError(RuntimeError):
    """Raised when the PDF service rejects or fails a request."""


@dataclass(frozen=True)
class PdfExportOptions:
    title: str
    author: str
    subject: str = ""


class PdfExporter(Protocol):
    def export(
        self,
        packet_id: str,
        content: dict[str, Any],
        client_name: str,
        document_type: str,
        options: PdfExportOptions,
    ) -> str: ...


class HttpPdfExporter:
    """Render packets through the HTTP PDF service."""

    def __init__(self, base_url: str, timeout: float = 30.0, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def export(
        self,
        packet_id: str,
        content: dict[str, Any],
        client_name: str,
        document_type: str,
        options: PdfExportOptions,
    ) -> str:
        """Request a PDF rendering and return its URL.

        Raises:
            PdfExportError: On transport errors, non-2xx responses or a response without a URL
        """
        payload = {
            "packet_id": packet_id,
            "client_name": client_name,
            "document_type": document_type,
            "content": content,
            "options": asdict(options),
        }
        try:
            if self._client is not None:
                response = self._client.post(f"{self.base_url}/packets", json=payload, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(f"{self.base_url}/packets", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise PdfExportError(f"PDF export request failed for packet {packet_id}: {e}") from e

        url = response.json().get("url")
        if not url:
            raise PdfExportError(f"PDF export response for packet {packet_id} did not include a URL")

        logger.bind(packet_id=packet_id, url=url).debug("PDF export completed")
        return url


def build_default_exporter() -> PdfExporter | None:
    """Return the configured exporter, or None when no PDF service is configured."""
    if not settings.pdf_export_url:
        return None
    return HttpPdfExporter(settings.pdf_export_url, timeout=settings.pdf_export_timeout_seconds)
