"""Client store operations used by intake submission and generation."""

from __future__ import annotations

from typing import Any

from loguru import logger
from sqlalchemy import select

from packet_engine.db.models import Client
from packet_engine.db.session import get_session
from packet_engine.packets.enums import Classification
from packet_engine.packets.routing import RoutingResult, route_packets


def find_client_by_id(client_id: str) -> Client | None:
    with get_session() as db:
        return db.get(Client, client_id)


def upsert_client_by_owner(
    owner_id: str,
    full_name: str | None = None,
    email: str | None = None,
    classification: Classification | str | None = None,
    profile: dict[str, Any] | None = None,
    intake_responses: dict[str, Any] | None = None,
) -> str:
    """Create the client for an owner, or update it on re-submission.

    Profile attributes are merged into the existing bag so a partial
    re-submission does not wipe earlier answers.

    Returns:
        The client ID
    """
    with get_session() as db:
        client = db.execute(select(Client).where(Client.owner_id == owner_id)).scalar_one_or_none()
        created = client is None
        if client is None:
            client = Client(owner_id=owner_id, profile={}, intake_responses={})
            db.add(client)

        if full_name is not None:
            client.full_name = full_name
        if email is not None:
            client.email = email
        if classification is not None:
            client.classification = str(classification)
        if profile:
            client.profile = {**(client.profile or {}), **profile}
        if intake_responses is not None:
            client.intake_responses = dict(intake_responses)

        db.flush()
        client_id = client.id

    logger.bind(client_id=client_id, owner_id=owner_id).info("Client created" if created else "Client updated")
    return client_id


def submit_intake(
    owner_id: str,
    classification: Classification | str,
    answers: dict[str, Any],
    full_name: str | None = None,
    email: str | None = None,
    profile: dict[str, Any] | None = None,
) -> tuple[str, RoutingResult]:
    """Store an intake submission and queue the packets it requires."""
    client_id = upsert_client_by_owner(
        owner_id,
        full_name=full_name,
        email=email,
        classification=classification,
        profile=profile,
        intake_responses=answers,
    )
    return client_id, route_packets(client_id, classification, answers)
