"""Template definitions and the rendered content tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from packet_engine.packets.enums import DocumentType

ConditionType = Literal[
    "equals",
    "not_equals",
    "contains",
    "not_contains",
    "greater_than",
    "less_than",
    "greater_than_or_equal",
    "less_than_or_equal",
    "is_empty",
    "is_not_empty",
    "truthy",
    "and",
    "or",
    "not",
]

BlockType = Literal["text", "heading", "list", "table", "divider"]


# -----------------------------
# Template definition
# -----------------------------
class Condition(BaseModel):
    """Display guard for a section or block.

    The subject is either a context path (`client.gender`,
    `responses.include-nutrition`) or an intake question id, which is
    shorthand for `responses.<question_id>`.
    """

    type: ConditionType
    path: str | None = None
    question_id: str | None = None
    value: Any = None
    conditions: list[Condition] = Field(default_factory=list)


class BlockFormatting(BaseModel):
    headers: list[str] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    list_style: Literal["bullet", "numbered"] = "bullet"
    level: int = 2


class BlockDefinition(BaseModel):
    id: str
    type: BlockType = "text"
    content: str = ""
    items: list[str] = Field(default_factory=list)
    data_source: str | None = Field(default=None, description="Context path rendered as structured data")
    formatting: BlockFormatting = Field(default_factory=BlockFormatting)
    condition: Condition | None = None
    order: int = 0


class SectionDefinition(BaseModel):
    id: str
    title: str
    description: str = ""
    order: int = 0
    condition: Condition | None = None
    blocks: list[BlockDefinition] = Field(default_factory=list)


class TemplateDefinition(BaseModel):
    """A packet template: ordered sections of content blocks."""

    id: str
    name: str
    document_type: DocumentType
    version: int = 1
    sections: list[SectionDefinition] = Field(default_factory=list)


# -----------------------------
# Rendered content tree
# -----------------------------
class TextBlock(BaseModel):
    type: Literal["text"] = "text"
    id: str
    content: str


class HeadingBlock(BaseModel):
    type: Literal["heading"] = "heading"
    id: str
    content: str
    level: int = 2


class ListBlock(BaseModel):
    type: Literal["list"] = "list"
    id: str
    items: list[str]
    style: Literal["bullet", "numbered"] = "bullet"


class TableBlock(BaseModel):
    type: Literal["table"] = "table"
    id: str
    headers: list[str]
    rows: list[list[str]]


class DividerBlock(BaseModel):
    type: Literal["divider"] = "divider"
    id: str


RenderedBlock = Annotated[
    TextBlock | HeadingBlock | ListBlock | TableBlock | DividerBlock,
    Field(discriminator="type"),
]


class RenderedSection(BaseModel):
    id: str
    title: str
    description: str = ""
    blocks: list[RenderedBlock] = Field(default_factory=list)


class PacketContent(BaseModel):
    """Structured packet content as persisted on the packet row.

    `supplements` holds the named extra sections attached by type-specific
    enrichment; `metadata` is filled in once generation completes.
    """

    model_config = ConfigDict(extra="forbid")

    sections: list[RenderedSection] = Field(default_factory=list)
    supplements: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def section(self, section_id: str) -> RenderedSection | None:
        return next((section for section in self.sections if section.id == section_id), None)


# -----------------------------
# Render context
# -----------------------------
@dataclass(frozen=True)
class TemplateContext:
    """Data visible to placeholders and conditions, built fresh per generation."""

    client: dict[str, Any] = field(default_factory=dict)
    calculated: dict[str, Any] = field(default_factory=dict)
    responses: dict[str, Any] = field(default_factory=dict)

    def as_mapping(self) -> dict[str, Any]:
        return {"client": self.client, "calculated": self.calculated, "responses": self.responses}
