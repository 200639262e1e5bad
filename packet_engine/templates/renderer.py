"""Render a template definition against a client context."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from packet_engine.templates.conditions import evaluate
from packet_engine.templates.placeholders import format_value, resolve_path, substitute
from packet_engine.templates.schemas import (
    BlockDefinition,
    DividerBlock,
    HeadingBlock,
    ListBlock,
    PacketContent,
    RenderedSection,
    TableBlock,
    TemplateContext,
    TemplateDefinition,
    TextBlock,
)


def _column_label(column: str) -> str:
    return column.replace("_", " ").title()


def _as_items(data: Any) -> list[str]:
    if data is None:
        return []
    if isinstance(data, list | tuple):
        return [format_value(item) for item in data]
    if isinstance(data, Mapping):
        return [f"{_column_label(str(key))}: {format_value(value)}" for key, value in data.items()]
    return [format_value(data)]


def _table_rows(data: Any, columns: list[str]) -> tuple[list[str], list[list[str]]]:
    """Build table rows from a list of mappings (or a single mapping)."""
    records = [data] if isinstance(data, Mapping) else list(data) if isinstance(data, list | tuple) else []
    if not columns:
        first = next((record for record in records if isinstance(record, Mapping)), None)
        columns = list(first.keys()) if first else []
    rows = [
        [format_value(record.get(column)) if isinstance(record, Mapping) else format_value(record) for column in columns]
        for record in records
    ]
    return columns, rows


def render_block(block: BlockDefinition, context: Mapping[str, Any]):
    """Render one block definition into a typed content block."""
    if block.type == "divider":
        return DividerBlock(id=block.id)

    if block.type == "heading":
        return HeadingBlock(id=block.id, content=substitute(block.content, context), level=block.formatting.level)

    data = resolve_path(context, block.data_source) if block.data_source else None

    if block.type == "list":
        items = _as_items(data) if block.data_source else [substitute(item, context) for item in block.items]
        return ListBlock(id=block.id, items=items, style=block.formatting.list_style)

    if block.type == "table":
        columns, rows = _table_rows(data, list(block.formatting.columns))
        headers = list(block.formatting.headers) or [_column_label(column) for column in columns]
        return TableBlock(id=block.id, headers=headers, rows=rows)

    if block.data_source:
        return TextBlock(id=block.id, content=format_value(data))
    return TextBlock(id=block.id, content=substitute(block.content, context))


def render_template(template: TemplateDefinition, context: TemplateContext) -> PacketContent:
    """Render a template into packet content.

    Sections and blocks whose condition is false are dropped; the rest are
    emitted in ascending `order`, ties keeping definition order. Rendering is
    a pure function of the template and the context.
    """
    mapping = context.as_mapping()
    sections: list[RenderedSection] = []

    for section in sorted(template.sections, key=lambda s: s.order):
        if not evaluate(section.condition, mapping):
            continue
        blocks = [
            render_block(block, mapping)
            for block in sorted(section.blocks, key=lambda b: b.order)
            if evaluate(block.condition, mapping)
        ]
        sections.append(
            RenderedSection(
                id=section.id,
                title=substitute(section.title, mapping),
                description=substitute(section.description, mapping),
                blocks=blocks,
            )
        )

    return PacketContent(sections=sections)
