from __future__ import annotations

from fastapi import APIRouter

from packet_engine.api.schemas import IntakeResponse, IntakeSubmission
from packet_engine.services.client_service import submit_intake

router = APIRouter(prefix="/intake", tags=["intake"])


@router.post("/submit", response_model=IntakeResponse)
def submit(submission: IntakeSubmission):
    client_id, routing = submit_intake(
        submission.owner_id,
        submission.classification,
        submission.answers,
        full_name=submission.full_name,
        email=submission.email,
        profile=submission.profile,
    )
    return IntakeResponse(client_id=client_id, packet_ids=routing.packet_ids, document_types=routing.document_types)
