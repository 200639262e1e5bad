from __future__ import annotations

from packet_engine.generation.enrichment.workout import weekly_schedule
from packet_engine.templates.schemas import PacketContent, TemplateContext

# (phase keywords, primary focus, intensity, volume); first match wins
SEASON_PHASES: tuple[tuple[tuple[str, ...], str, str, str], ...] = (
    (("off", "general"), "Build general strength, aerobic base and work capacity", "moderate", "high"),
    (("pre", "specific"), "Convert strength to power and sport-specific conditioning", "high", "moderate"),
    (("post",), "Recover, address injuries and maintain general fitness", "low", "low"),
    (("in", "competition"), "Maintain strength and power while staying fresh for competition", "high", "low"),
)


def periodization(season_phase: str) -> dict[str, str]:
    phase = season_phase.lower() or "off-season"
    for keywords, focus, intensity, volume in SEASON_PHASES:
        if any(keyword in phase for keyword in keywords):
            return {"current_phase": phase, "primary_focus": focus, "intensity": intensity, "volume": volume}
    _, focus, intensity, volume = SEASON_PHASES[0]
    return {"current_phase": phase, "primary_focus": focus, "intensity": intensity, "volume": volume}


def enrich_performance(content: PacketContent, context: TemplateContext) -> PacketContent:
    season_phase = context.responses.get("season-phase") or context.client.get("season_phase") or "off-season"
    content.supplements["periodization"] = periodization(str(season_phase))
    content.supplements["weekly_schedule"] = weekly_schedule(
        context.calculated.get("training_split", "Full Body"),
        int(context.calculated.get("weekly_frequency", 3)),
    )
    return content
