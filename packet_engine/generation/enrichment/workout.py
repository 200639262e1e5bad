from __future__ import annotations

from packet_engine.templates.schemas import PacketContent, TemplateContext

SPLIT_DAYS = {
    "Full Body": ["Full Body A", "Full Body B", "Full Body C"],
    "Upper/Lower Split": ["Upper Body", "Lower Body"],
    "Push/Pull/Legs Split": ["Push", "Pull", "Legs"],
}

PROGRESSION_BY_EXPERIENCE = {
    "beginner": "Add a small amount of load each week while technique stays solid.",
    "intermediate": "Progress load or reps every one to two weeks; deload every fourth week.",
    "advanced": "Use planned waves of volume and intensity with a deload every fourth or fifth week.",
}


def weekly_schedule(split: str, frequency: int) -> list[dict[str, str]]:
    rotation = SPLIT_DAYS.get(split, SPLIT_DAYS["Full Body"])
    return [{"day": f"Day {index + 1}", "focus": rotation[index % len(rotation)]} for index in range(frequency)]


def enrich_workout(content: PacketContent, context: TemplateContext) -> PacketContent:
    calculated = context.calculated
    experience = str(context.client.get("training_experience", "beginner")).lower()

    content.supplements["weekly_schedule"] = weekly_schedule(
        calculated.get("training_split", "Full Body"),
        int(calculated.get("weekly_frequency", 3)),
    )
    content.supplements["progression"] = {
        "guidance": PROGRESSION_BY_EXPERIENCE.get(experience, PROGRESSION_BY_EXPERIENCE["beginner"]),
        "volume": dict(calculated.get("volume_guidance", {})),
    }
    return content
