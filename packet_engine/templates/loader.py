"""Template lookup.

Resolution order for a document type:
1. active override scoped to the client's classification
2. active default override for the document type
3. built-in YAML template shipped in `templates/library`
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml
from loguru import logger
from pydantic import ValidationError
from sqlalchemy import select

from packet_engine.db.models import PacketTemplate
from packet_engine.db.session import get_session
from packet_engine.packets.enums import DocumentType
from packet_engine.packets.errors import TemplateNotFoundError
from packet_engine.templates.schemas import TemplateDefinition

LIBRARY_DIR = Path(__file__).parent / "library"


def load_template_file(path: Path) -> TemplateDefinition:
    """Parse and validate a YAML template file.

    Raises:
        ValueError: If the file is not a mapping or fails validation
    """
    with path.open(encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"Template file {path.name} must contain a mapping")
    try:
        return TemplateDefinition.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"Invalid template file {path.name}: {e}") from e


@lru_cache(maxsize=1)
def builtin_templates() -> dict[DocumentType, TemplateDefinition]:
    """Load every built-in template once per process."""
    templates: dict[DocumentType, TemplateDefinition] = {}
    for path in sorted(LIBRARY_DIR.glob("*.yaml")):
        template = load_template_file(path)
        if template.document_type in templates:
            logger.warning(f"Duplicate built-in template for {template.document_type}, keeping {templates[template.document_type].id}")
            continue
        templates[template.document_type] = template
    logger.debug(f"Loaded {len(templates)} built-in packet templates")
    return templates


def get_builtin_template(document_type: DocumentType | str) -> TemplateDefinition | None:
    try:
        return builtin_templates().get(DocumentType(document_type))
    except ValueError:
        return None


def _override_definition(row: PacketTemplate) -> TemplateDefinition:
    payload = dict(row.definition)
    payload.setdefault("id", row.id)
    payload.setdefault("name", row.name)
    payload["document_type"] = row.document_type
    payload["version"] = row.version
    return TemplateDefinition.model_validate(payload)


def find_override(document_type: str, classification: str | None) -> TemplateDefinition | None:
    with get_session() as db:
        base = select(PacketTemplate).where(
            PacketTemplate.document_type == document_type,
            PacketTemplate.is_active.is_(True),
        )
        row = None
        if classification:
            query = base.where(PacketTemplate.classification == classification)
            row = db.execute(query.order_by(PacketTemplate.version.desc())).scalars().first()
        if row is None:
            query = base.where(PacketTemplate.is_default.is_(True))
            row = db.execute(query.order_by(PacketTemplate.version.desc())).scalars().first()
        return _override_definition(row) if row is not None else None


def resolve_template(document_type: DocumentType | str, classification: str | None = None) -> TemplateDefinition:
    """Find the template used to render a packet.

    Raises:
        TemplateNotFoundError: If neither an override nor a built-in exists
    """
    override = find_override(str(document_type), classification)
    if override is not None:
        logger.bind(document_type=str(document_type), template_id=override.id).debug("Using template override")
        return override

    builtin = get_builtin_template(document_type)
    if builtin is None:
        raise TemplateNotFoundError(str(document_type))
    return builtin


def save_template_override(
    definition: TemplateDefinition,
    classification: str | None = None,
    is_default: bool = False,
) -> str:
    """Store an admin template override, superseding earlier versions in the same scope.

    Returns:
        ID of the stored override row
    """
    with get_session() as db:
        previous = db.execute(
            select(PacketTemplate).where(
                PacketTemplate.document_type == definition.document_type.value,
                PacketTemplate.classification.is_(None) if classification is None else PacketTemplate.classification == classification,
                PacketTemplate.is_default.is_(is_default),
                PacketTemplate.is_active.is_(True),
            )
        ).scalars().all()
        version = max((row.version for row in previous), default=0) + 1
        for row in previous:
            row.is_active = False

        row = PacketTemplate(
            name=definition.name,
            document_type=definition.document_type.value,
            classification=classification,
            is_default=is_default,
            is_active=True,
            version=version,
            definition=definition.model_dump(mode="json", exclude={"document_type", "version"}),
        )
        db.add(row)
        db.flush()
        row_id = row.id

    logger.bind(document_type=definition.document_type.value, classification=classification).info(
        f"Saved template override v{version}: {definition.name}"
    )
    return row_id
