from __future__ import annotations

from packet_engine.packets.calculations import DEFAULT_MEALS_PER_DAY, parse_count
from packet_engine.templates.schemas import PacketContent, TemplateContext

CALORIE_EXPLANATIONS = {
    "deficit": (
        "A moderate 500 calorie daily deficit targets roughly one pound of fat loss per week "
        "while keeping enough energy for training."
    ),
    "surplus": (
        "A 300 calorie daily surplus supports muscle gain while keeping fat gain to a minimum."
    ),
    "maintenance": "Your target matches your estimated daily expenditure to maintain your current weight.",
}

MACRO_ROLES = {
    "Protein": "Builds and repairs muscle; spread it evenly across your meals.",
    "Carbohydrates": "Primary fuel for training; favor whole grains, fruit and vegetables.",
    "Fats": "Supports hormones and nutrient absorption; focus on unsaturated sources.",
}


def _explanation(adjustment: int) -> str:
    if adjustment < 0:
        return CALORIE_EXPLANATIONS["deficit"]
    if adjustment > 0:
        return CALORIE_EXPLANATIONS["surplus"]
    return CALORIE_EXPLANATIONS["maintenance"]


def enrich_nutrition(content: PacketContent, context: TemplateContext) -> PacketContent:
    calculated = context.calculated
    adjustment = int(calculated.get("calorie_adjustment", 0))
    meals_per_day = parse_count(context.client.get("meals_per_day"), DEFAULT_MEALS_PER_DAY)

    content.supplements["calorie_breakdown"] = {
        "bmr": calculated.get("bmr"),
        "tdee": calculated.get("tdee"),
        "adjustment": adjustment,
        "target_calories": calculated.get("daily_calories"),
        "explanation": _explanation(adjustment),
    }
    content.supplements["macro_details"] = [
        {
            **macro,
            "per_meal_grams": round(macro["grams"] / meals_per_day),
            "role": MACRO_ROLES.get(macro["name"], ""),
        }
        for macro in calculated.get("macros", [])
    ]
    content.supplements["meal_timing"] = list(calculated.get("meal_timing", []))
    return content
