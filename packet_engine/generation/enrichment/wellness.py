from __future__ import annotations

from packet_engine.templates.schemas import PacketContent, TemplateContext

FOCUS_HABITS = {
    "strength": "Two short strength sessions each week",
    "endurance": "A brisk 30 minute walk or ride most days",
    "mobility": "Ten minutes of mobility work every morning",
    "weight": "Protein and vegetables at every meal",
    "energy": "Consistent sleep and wake times",
    "stress": "Five minutes of breathing practice daily",
}


def enrich_wellness(content: PacketContent, context: TemplateContext) -> PacketContent:
    focus = context.responses.get("wellness-focus")
    focus_areas = [str(area) for area in focus] if isinstance(focus, list) else []
    habits = [FOCUS_HABITS[area] for area in focus_areas if area in FOCUS_HABITS]
    content.supplements["habit_focus"] = {
        "focus_areas": focus_areas,
        "habits": habits or ["A daily walk", "Regular meals", "Consistent sleep"],
    }
    return content
