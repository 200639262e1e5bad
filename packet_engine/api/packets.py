from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from packet_engine.api.schemas import GeneratePacketRequest, PacketResponse
from packet_engine.generation.orchestrator import PacketGenerationService
from packet_engine.packets.errors import ClientNotFoundError, PacketNotFoundError, TemplateNotFoundError
from packet_engine.packets.routing import get_client_packets
from packet_engine.services.packet_admin import get_packet

router = APIRouter(tags=["packets"])


@router.get("/packets/{packet_id}", response_model=PacketResponse)
def read_packet(packet_id: str):
    try:
        return get_packet(packet_id)
    except PacketNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.get("/clients/{client_id}/packets", response_model=list[PacketResponse])
def list_client_packets(client_id: str):
    return get_client_packets(client_id)


@router.post("/packets/generate")
def preview_packet(request: GeneratePacketRequest) -> dict[str, Any]:
    """Render a packet synchronously without saving it."""
    try:
        content = PacketGenerationService().generate_packet(request.client_id, request.document_type)
    except ClientNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except TemplateNotFoundError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return content.model_dump(mode="json")
