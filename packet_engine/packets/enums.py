"""Canonical enums for packets, clients and generation failures.

All enums are string-based so they serialize cleanly into JSON columns,
API payloads and log records.
"""

from enum import StrEnum


# -----------------------------
# Client classification
# -----------------------------
class Classification(StrEnum):
    """Intake path chosen by the client, drives packet routing."""

    NUTRITION_ONLY = "NUTRITION_ONLY"
    WORKOUT_ONLY = "WORKOUT_ONLY"
    FULL_PROGRAM = "FULL_PROGRAM"
    ATHLETE_PERFORMANCE = "ATHLETE_PERFORMANCE"
    YOUTH = "YOUTH"
    GENERAL_WELLNESS = "GENERAL_WELLNESS"
    SPECIAL_SITUATION = "SPECIAL_SITUATION"


# -----------------------------
# Document types
# -----------------------------
class DocumentType(StrEnum):
    """Kind of packet generated for a client."""

    NUTRITION = "NUTRITION"
    WORKOUT = "WORKOUT"
    PERFORMANCE = "PERFORMANCE"
    YOUTH = "YOUTH"
    RECOVERY = "RECOVERY"
    WELLNESS = "WELLNESS"
    INTRO = "INTRO"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    DocumentType.NUTRITION: "Nutrition",
    DocumentType.WORKOUT: "Workout",
    DocumentType.PERFORMANCE: "Performance",
    DocumentType.YOUTH: "Youth Training",
    DocumentType.RECOVERY: "Recovery",
    DocumentType.WELLNESS: "Wellness",
    DocumentType.INTRO: "Introduction",
}


# -----------------------------
# Packet lifecycle
# -----------------------------
class PacketStatus(StrEnum):
    """Packet status; doubles as the job queue state."""

    PENDING = "PENDING"
    GENERATING = "GENERATING"
    READY = "READY"
    FAILED = "FAILED"


class GenerationMethod(StrEnum):
    TEMPLATE = "TEMPLATE"
    MANUAL = "MANUAL"


class GeneratedBy(StrEnum):
    SYSTEM = "SYSTEM"
    ADMIN = "ADMIN"


# -----------------------------
# Failure classification
# -----------------------------
class ErrorKind(StrEnum):
    """Category assigned to a generation failure."""

    TEMPLATE_ERROR = "TEMPLATE_ERROR"
    DATA_ERROR = "DATA_ERROR"
    AI_ERROR = "AI_ERROR"
    EXPORT_ERROR = "EXPORT_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


NON_RETRYABLE_ERROR_KINDS = frozenset({ErrorKind.TEMPLATE_ERROR, ErrorKind.DATA_ERROR})


def is_retryable(kind: ErrorKind) -> bool:
    """Return whether a failure of this kind can succeed on a later attempt.

    Template and data problems need a human to fix the template or the
    client record; everything else is treated as transient.
    """
    return kind not in NON_RETRYABLE_ERROR_KINDS
