from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from packet_engine.api.schemas import PacketResponse, RegenerateResponse, RetryResponse
from packet_engine.packets.errors import InvalidPacketStateError, PacketAlreadyReadyError, PacketNotFoundError
from packet_engine.queue.error_handler import ErrorHandler, get_failed_packets_needing_attention
from packet_engine.queue.monitor import get_queue_health
from packet_engine.queue.retry import RetryService
from packet_engine.services.packet_admin import regenerate_packet, update_packet_content

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/packets/{packet_id}/retry", response_model=RetryResponse)
def retry_packet(packet_id: str, reset_count: bool = False):
    try:
        RetryService().retry_now(packet_id, reset_count=reset_count)
    except PacketNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except PacketAlreadyReadyError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return RetryResponse(packet_id=packet_id, reset_count=reset_count)


@router.post("/packets/{packet_id}/regenerate", response_model=RegenerateResponse)
def regenerate(packet_id: str):
    try:
        version = regenerate_packet(packet_id)
    except PacketNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidPacketStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return RegenerateResponse(packet_id=packet_id, version=version)


@router.put("/packets/{packet_id}/content", response_model=PacketResponse)
def edit_content(packet_id: str, content: dict[str, Any], mark_ready: bool = True):
    try:
        return update_packet_content(packet_id, content, mark_ready=mark_ready)
    except PacketNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False)) from e


@router.get("/packets/failed", response_model=list[PacketResponse])
def failed_packets(max_retries: int | None = None):
    return get_failed_packets_needing_attention(max_retries)


@router.get("/packets/errors")
def error_stats(hours: int = 24) -> dict[str, Any]:
    return ErrorHandler().get_error_stats(hours)


@router.get("/queue/health")
def queue_health() -> dict[str, Any]:
    return get_queue_health().as_dict()
