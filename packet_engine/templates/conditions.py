"""Display condition evaluation.

Conditions never raise: a malformed condition or an incomparable value
evaluates to False so the guarded section or block is simply hidden.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger

from packet_engine.templates.placeholders import resolve_path
from packet_engine.templates.schemas import Condition


def _subject(condition: Condition, context: Mapping[str, Any]) -> Any:
    if condition.path:
        return resolve_path(context, condition.path)
    if condition.question_id:
        responses = context.get("responses") or {}
        return responses.get(condition.question_id) if isinstance(responses, Mapping) else None
    return None


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, Mapping | list | tuple | set):
        return len(value) == 0
    return False


def _contains(subject: Any, value: Any) -> bool:
    if isinstance(subject, list | tuple | set):
        return value in subject
    if isinstance(subject, str) and value is not None:
        return str(value).lower() in subject.lower()
    return False


def _compare(subject: Any, value: Any) -> tuple[float, float] | None:
    try:
        return float(subject), float(value)
    except (TypeError, ValueError):
        return None


def evaluate(condition: Condition | None, context: Mapping[str, Any]) -> bool:
    """Evaluate a condition against a template context mapping.

    A missing condition always passes.
    """
    if condition is None:
        return True

    kind = condition.type
    if kind == "and":
        return bool(condition.conditions) and all(evaluate(child, context) for child in condition.conditions)
    if kind == "or":
        return any(evaluate(child, context) for child in condition.conditions)
    if kind == "not":
        return bool(condition.conditions) and not evaluate(condition.conditions[0], context)

    subject = _subject(condition, context)

    if kind == "equals":
        if isinstance(subject, list | tuple):
            return condition.value in subject
        return subject == condition.value
    if kind == "not_equals":
        if isinstance(subject, list | tuple):
            return condition.value not in subject
        return subject != condition.value
    if kind == "contains":
        return _contains(subject, condition.value)
    if kind == "not_contains":
        return not _contains(subject, condition.value)
    if kind == "is_empty":
        return _is_empty(subject)
    if kind == "is_not_empty":
        return not _is_empty(subject)
    if kind == "truthy":
        return bool(subject)

    pair = _compare(subject, condition.value)
    if pair is None:
        return False
    left, right = pair
    if kind == "greater_than":
        return left > right
    if kind == "less_than":
        return left < right
    if kind == "greater_than_or_equal":
        return left >= right
    if kind == "less_than_or_equal":
        return left <= right

    logger.warning(f"Unknown condition type '{kind}', treating as false")
    return False
