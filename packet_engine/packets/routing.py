"""Routing decision engine.

Maps a client's intake classification and answers to the set of packets
that must be generated, and creates those packets in PENDING so the
background queue picks them up.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from sqlalchemy import select

from packet_engine.db.models import Packet
from packet_engine.db.session import get_session
from packet_engine.packets.enums import (
    Classification,
    DocumentType,
    GeneratedBy,
    GenerationMethod,
    PacketStatus,
)

INCLUDE_NUTRITION_KEY = "include-nutrition"
WELLNESS_FOCUS_KEY = "wellness-focus"
RECOVERY_GOALS_KEY = "recovery-goals"

WELLNESS_FITNESS_FOCUS = frozenset({"strength", "endurance", "mobility"})
WELLNESS_NUTRITION_FOCUS = frozenset({"weight", "energy"})


@dataclass(frozen=True)
class RoutingResult:
    packet_ids: list[str] = field(default_factory=list)
    document_types: list[DocumentType] = field(default_factory=list)


def _parse_classification(classification: Classification | str | None) -> Classification | None:
    if isinstance(classification, Classification):
        return classification
    try:
        return Classification(classification)
    except ValueError:
        return None


def _focus_values(answers: Mapping[str, Any]) -> set[str]:
    focus = answers.get(WELLNESS_FOCUS_KEY)
    if not isinstance(focus, list):
        return set()
    return {str(item) for item in focus}


def _dedupe(document_types: Iterable[DocumentType]) -> list[DocumentType]:
    ordered: list[DocumentType] = []
    for document_type in document_types:
        if document_type not in ordered:
            ordered.append(document_type)
    return ordered


def required_document_types(
    classification: Classification | str | None,
    answers: Mapping[str, Any] | None = None,
) -> list[DocumentType]:
    """Decide which packets a client needs.

    Pure and total: unknown classifications fall back to an introduction
    packet and malformed answers never raise.

    Args:
        classification: Client intake classification
        answers: Raw intake answers keyed by question id

    Returns:
        Ordered list of document types without duplicates
    """
    answers = answers if isinstance(answers, Mapping) else {}
    parsed = _parse_classification(classification)

    if parsed is Classification.NUTRITION_ONLY:
        return [DocumentType.NUTRITION]
    if parsed is Classification.WORKOUT_ONLY:
        return [DocumentType.WORKOUT]
    if parsed is Classification.FULL_PROGRAM:
        return [DocumentType.NUTRITION, DocumentType.WORKOUT]
    if parsed is Classification.YOUTH:
        return [DocumentType.YOUTH]

    if parsed is Classification.ATHLETE_PERFORMANCE:
        types = [DocumentType.PERFORMANCE]
        if answers.get(INCLUDE_NUTRITION_KEY) == "yes":
            types.append(DocumentType.NUTRITION)
        return _dedupe(types)

    if parsed is Classification.GENERAL_WELLNESS:
        types = [DocumentType.WELLNESS]
        focus = _focus_values(answers)
        if focus & WELLNESS_FITNESS_FOCUS:
            types.append(DocumentType.WORKOUT)
        if focus & WELLNESS_NUTRITION_FOCUS:
            types.append(DocumentType.NUTRITION)
        return _dedupe(types)

    if parsed is Classification.SPECIAL_SITUATION:
        types = [DocumentType.RECOVERY]
        goals = answers.get(RECOVERY_GOALS_KEY)
        if isinstance(goals, str) and "nutrition" in goals.lower():
            types.append(DocumentType.NUTRITION)
        return _dedupe(types)

    return [DocumentType.INTRO]


def route_packets(
    client_id: str,
    classification: Classification | str | None,
    answers: Mapping[str, Any] | None = None,
) -> RoutingResult:
    """Create one PENDING packet per required document type.

    The packets are picked up by the job queue on its next poll cycle.

    Args:
        client_id: Client the packets belong to
        classification: Client intake classification
        answers: Raw intake answers keyed by question id

    Returns:
        RoutingResult with the created packet IDs and their document types
    """
    document_types = required_document_types(classification, answers)

    with get_session() as db:
        packets = [
            Packet(
                client_id=client_id,
                document_type=document_type.value,
                status=PacketStatus.PENDING.value,
                generated_by=GeneratedBy.SYSTEM.value,
                generation_method=GenerationMethod.TEMPLATE.value,
            )
            for document_type in document_types
        ]
        db.add_all(packets)
        db.flush()
        packet_ids = [packet.id for packet in packets]

    logger.bind(client_id=client_id, classification=str(classification)).info(
        f"[ROUTING] Queued {len(packet_ids)} packet(s): {', '.join(document_types)}"
    )
    return RoutingResult(packet_ids=packet_ids, document_types=document_types)


def get_client_packets(client_id: str) -> list[Packet]:
    """Return all packets of a client, newest first."""
    with get_session() as db:
        query = select(Packet).where(Packet.client_id == client_id).order_by(Packet.created_at.desc())
        return list(db.execute(query).scalars().all())


def get_packet_status(packet_id: str) -> PacketStatus | None:
    with get_session() as db:
        status = db.execute(select(Packet.status).where(Packet.id == packet_id)).scalar_one_or_none()
    return PacketStatus(status) if status else None
