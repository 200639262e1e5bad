from __future__ import annotations

from packet_engine.templates.schemas import PacketContent, TemplateContext

GENERAL_AVOID = [
    "High-impact jumping or sprinting until cleared",
    "Heavy loading through painful ranges of motion",
    "Training through sharp or worsening pain",
]

RETURN_STAGES = [
    {"stage": "Protect", "criteria": "Pain at rest is settling and daily tasks are tolerable"},
    {"stage": "Rebuild", "criteria": "Full pain-free range of motion and light strength work tolerated"},
    {"stage": "Return", "criteria": "Strength close to the unaffected side and provider clearance"},
]


def enrich_recovery(content: PacketContent, context: TemplateContext) -> PacketContent:
    avoid = list(GENERAL_AVOID)
    injuries = str(context.client.get("injuries", "none reported"))
    if injuries != "none reported":
        avoid.append(f"Exercises that aggravate: {injuries}")

    content.supplements["avoid_list"] = avoid
    content.supplements["return_to_activity"] = [dict(stage) for stage in RETURN_STAGES]
    return content
