"""Build the template context for a client.

Client attributes are normalized with display-friendly defaults so templates
never render blanks for commonly used fields.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from loguru import logger

from packet_engine.db.models import Client
from packet_engine.packets.calculations import DEFAULT_AGE, calculate_all, parse_count
from packet_engine.templates.schemas import TemplateContext

CLIENT_DEFAULTS: dict[str, Any] = {
    "full_name": "Client",
    "gender": "not specified",
    "goal": "general fitness",
    "main_fitness_goals": "general fitness",
    "activity_level": "moderately-active",
    "days_per_week": 3,
    "session_duration": 60,
    "preferred_workout_time": "flexible",
    "training_experience": "beginner",
    "available_equipment": "basic equipment",
    "workout_location": "gym",
    "training_style": "balanced",
    "injuries": "none reported",
    "medical_conditions": "none reported",
    "pain_or_discomfort": "none reported",
    "diet_type": "no restrictions",
    "food_allergies": "none",
    "foods_to_avoid": "none",
    "cultural_dietary_needs": "none",
    "meals_per_day": 3,
    "favorite_meals": "varied",
    "sports_played": "various",
    "motivation": "improve health",
    "biggest_struggle": "consistency",
}

# Intake stores these as option values such as "4-5" or "6+"
COUNT_FIELDS = ("days_per_week", "session_duration", "meals_per_day")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list | tuple | dict):
        return len(value) == 0
    return False


def _join(value: Any) -> Any:
    if isinstance(value, list | tuple):
        return ", ".join(str(item) for item in value)
    return value


def _parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def age_on(date_of_birth: Any, today: date) -> int | None:
    born = _parse_date(date_of_birth)
    if born is None or born > today:
        return None
    return today.year - born.year - ((today.month, today.day) < (born.month, born.day))


def parse_responses(raw: Any) -> dict[str, Any]:
    """Accept intake answers stored either as a mapping or a JSON string."""
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Intake responses are not valid JSON, ignoring them")
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def normalize_client(client: Client, today: date) -> dict[str, Any]:
    """Flatten a client row into template fields with defaults applied."""
    profile = client.profile if isinstance(client.profile, Mapping) else {}
    normalized: dict[str, Any] = {key: _join(value) for key, value in profile.items()}

    normalized["id"] = client.id
    normalized["email"] = client.email or ""
    normalized["classification"] = client.classification or ""
    if not _is_blank(client.full_name):
        normalized["full_name"] = client.full_name

    if _is_blank(normalized.get("goal")) and not _is_blank(normalized.get("main_fitness_goals")):
        normalized["goal"] = normalized["main_fitness_goals"]

    for key, default in CLIENT_DEFAULTS.items():
        if _is_blank(normalized.get(key)):
            normalized[key] = default

    for key in COUNT_FIELDS:
        normalized[key] = parse_count(normalized[key], CLIENT_DEFAULTS[key])

    if _is_blank(normalized.get("age")):
        normalized["age"] = age_on(profile.get("date_of_birth"), today) or DEFAULT_AGE

    clearance = profile.get("medical_clearance")
    if isinstance(clearance, bool):
        normalized["medical_clearance"] = "Yes" if clearance else "No"
    elif _is_blank(clearance):
        normalized["medical_clearance"] = "No"

    return normalized


def build_context(client: Client, today: date) -> TemplateContext:
    """Assemble normalized client fields, calculated values and raw answers."""
    normalized = normalize_client(client, today)
    return TemplateContext(
        client=normalized,
        calculated=calculate_all(normalized),
        responses=parse_responses(client.intake_responses),
    )
