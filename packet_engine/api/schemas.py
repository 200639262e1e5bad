"""Request and response models for the HTTP API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from packet_engine.packets.enums import DocumentType


class IntakeSubmission(BaseModel):
    owner_id: str = Field(..., description="ID of the user submitting the intake")
    classification: str = Field(..., description="Intake path, e.g. FULL_PROGRAM")
    full_name: str | None = None
    email: str | None = None
    profile: dict[str, Any] = Field(default_factory=dict, description="Intake-derived client attributes")
    answers: dict[str, Any] = Field(default_factory=dict, description="Raw answers keyed by question id")


class IntakeResponse(BaseModel):
    client_id: str
    packet_ids: list[str]
    document_types: list[DocumentType]


class GeneratePacketRequest(BaseModel):
    client_id: str
    document_type: DocumentType


class PacketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: str
    document_type: str
    status: str
    version: int
    retry_count: int
    last_error: str | None = None
    error_kind: str | None = None
    pdf_url: str | None = None
    generation_method: str
    content: dict[str, Any] | None = None
    next_retry_at: datetime | None = None
    generated_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class RetryResponse(BaseModel):
    packet_id: str
    status: str = "queued"
    reset_count: bool


class RegenerateResponse(BaseModel):
    packet_id: str
    version: int
    status: str = "queued"
