"""Placeholder substitution for `{{ dotted.path }}` expressions."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")

_MISSING = object()


def resolve_path(data: Any, path: str, default: Any = None) -> Any:
    """Walk a dotted path through nested mappings and lists.

    Numeric segments index into lists. Any missing step returns `default`.
    """
    current = data
    for segment in path.strip().split("."):
        segment = segment.strip()
        if isinstance(current, Mapping):
            current = current.get(segment, _MISSING)
        elif isinstance(current, list | tuple) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else _MISSING
        else:
            current = _MISSING
        if current is _MISSING:
            return default
    return current


def format_value(value: Any) -> str:
    """Render a resolved value as text.

    Integral numbers render without decimals, other floats with two.
    Collections render as JSON, None as an empty string.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else f"{value:.2f}"
    if isinstance(value, Mapping | list | tuple):
        return json.dumps(value, default=str)
    return str(value)


def substitute(text: str, context: Mapping[str, Any]) -> str:
    """Replace every placeholder in one non-overlapping pass.

    Substituted values are never re-scanned, so a value containing braces
    is emitted verbatim.
    """
    if not text or "{{" not in text:
        return text
    return PLACEHOLDER_PATTERN.sub(lambda match: format_value(resolve_path(context, match.group(1))), text)


def has_placeholders(text: str) -> bool:
    return bool(PLACEHOLDER_PATTERN.search(text or ""))


def extract_placeholders(text: str) -> list[str]:
    """Return the distinct placeholder paths in order of first appearance."""
    paths: list[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(text or ""):
        path = match.group(1).strip()
        if path not in paths:
            paths.append(path)
    return paths
