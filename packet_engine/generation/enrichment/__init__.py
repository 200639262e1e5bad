"""Type-specific packet enrichment.

Each enricher receives the rendered content and the template context and
returns a new content object with extra named supplements attached. The
input content is never mutated.
"""

from collections.abc import Callable

from packet_engine.generation.enrichment.nutrition import enrich_nutrition
from packet_engine.generation.enrichment.performance import enrich_performance
from packet_engine.generation.enrichment.recovery import enrich_recovery
from packet_engine.generation.enrichment.wellness import enrich_wellness
from packet_engine.generation.enrichment.workout import enrich_workout
from packet_engine.generation.enrichment.youth import enrich_youth
from packet_engine.packets.enums import DocumentType
from packet_engine.templates.schemas import PacketContent, TemplateContext

Enricher = Callable[[PacketContent, TemplateContext], PacketContent]

ENRICHERS: dict[DocumentType, Enricher] = {
    DocumentType.NUTRITION: enrich_nutrition,
    DocumentType.WORKOUT: enrich_workout,
    DocumentType.PERFORMANCE: enrich_performance,
    DocumentType.YOUTH: enrich_youth,
    DocumentType.RECOVERY: enrich_recovery,
    DocumentType.WELLNESS: enrich_wellness,
}


def enrich(
    document_type: DocumentType | str,
    content: PacketContent,
    context: TemplateContext,
    enrichers: dict[DocumentType, Enricher] | None = None,
) -> PacketContent:
    """Apply the enricher registered for a document type.

    Types without an enricher (INTRO, unknown values) get an unchanged copy.
    """
    registry = ENRICHERS if enrichers is None else enrichers
    try:
        enricher = registry.get(DocumentType(document_type))
    except ValueError:
        enricher = None
    if enricher is None:
        return content.model_copy(deep=True)
    return enricher(content.model_copy(deep=True), context)


__all__ = ["ENRICHERS", "Enricher", "enrich"]
