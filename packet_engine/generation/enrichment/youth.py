from __future__ import annotations

from packet_engine.templates.schemas import PacketContent, TemplateContext

EXERCISE_SUBSTITUTIONS = {
    "Barbell back squat": "Bodyweight or goblet squat",
    "Barbell deadlift": "Kettlebell deadlift or hip hinge drill",
    "Bench press": "Push-up progression",
    "Pull-up": "Band-assisted pull-up or inverted row",
}

SAFETY_GUIDELINES = [
    "An adult supervises every session",
    "Warm up for at least 10 minutes before training",
    "Stop immediately if anything hurts",
    "No maximal lifts or training to failure",
    "Sleep 9-11 hours per night",
]


def enrich_youth(content: PacketContent, context: TemplateContext) -> PacketContent:
    content.supplements["exercise_substitutions"] = [
        {"adult_exercise": adult, "youth_alternative": youth} for adult, youth in EXERCISE_SUBSTITUTIONS.items()
    ]
    guidelines = list(SAFETY_GUIDELINES)
    if context.client.get("medical_clearance") != "Yes":
        guidelines.insert(0, "Obtain medical clearance before starting")
    content.supplements["safety_guidelines"] = guidelines
    return content
