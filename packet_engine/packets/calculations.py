"""Calculated values engine.

Deterministic nutrition and training numbers derived from a client profile.
Every function is pure and total: missing or malformed inputs fall back to
defaults instead of raising.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

DEFAULT_WEIGHT_LBS = 150.0
DEFAULT_HEIGHT_INCHES = 66.0
DEFAULT_AGE = 30
DEFAULT_ACTIVITY_LEVEL = "moderately-active"
DEFAULT_DAYS_PER_WEEK = 3
DEFAULT_SESSION_DURATION = 60
DEFAULT_EXPERIENCE = "beginner"
DEFAULT_MEALS_PER_DAY = 3

LBS_TO_KG = 0.453592
INCHES_TO_CM = 2.54

FAT_LOSS_DEFICIT = -500
MUSCLE_GAIN_SURPLUS = 300
FAT_CALORIE_SHARE = 0.28

# (substrings, multiplier); first match wins
ACTIVITY_MULTIPLIERS: tuple[tuple[tuple[str, ...], float], ...] = (
    (("sedentary", "little"), 1.2),
    (("light",), 1.375),
    (("moderate",), 1.55),
    (("very", "heavy"), 1.725),
    (("extra", "extreme", "athlete"), 1.9),
)
DEFAULT_ACTIVITY_MULTIPLIER = 1.55

FAT_LOSS_KEYWORDS = ("lose", "fat loss", "weight loss")
MUSCLE_GAIN_KEYWORDS = ("gain", "muscle", "bulk")
HIGH_PROTEIN_KEYWORDS = ("muscle", "gain", "bulk", "athlet", "performance", "strength")

VOLUME_GUIDANCE: dict[str, dict[str, str]] = {
    "beginner": {"sets_per_exercise": "2-3", "reps_per_set": "10-15", "exercises_per_session": "4-6"},
    "intermediate": {"sets_per_exercise": "3-4", "reps_per_set": "8-12", "exercises_per_session": "6-8"},
    "advanced": {"sets_per_exercise": "4-5", "reps_per_set": "6-12", "exercises_per_session": "8-10"},
}

EXPERIENCE_DESCRIPTIONS = {
    "beginner": "New to training",
    "intermediate": "Some training experience",
    "advanced": "Experienced athlete",
    "expert": "Elite level",
}


@dataclass(frozen=True)
class Macro:
    name: str
    grams: int
    calories: int
    percentage: int


@dataclass(frozen=True)
class NutritionValues:
    daily_calories: int
    bmr: int
    tdee: int
    calorie_adjustment: int
    macros: list[Macro]


@dataclass(frozen=True)
class WorkoutValues:
    weekly_frequency: int
    session_duration: int
    training_split: str
    volume_guidance: dict[str, str]


def _as_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _as_int(value: Any, default: int) -> int:
    return int(round(_as_float(value, default)))


LEADING_INT_PATTERN = re.compile(r"^\s*(\d+)")


def parse_count(value: Any, default: int) -> int:
    """Positive whole count from a number or an intake option such as "4-5" or "6+".

    Range options resolve to their lower bound.
    """
    if isinstance(value, str):
        match = LEADING_INT_PATTERN.match(value)
        if match is None:
            return default
        value = match.group(1)
    return _as_int(value, default)


def _text(value: Any) -> str:
    return value.lower() if isinstance(value, str) else ""


def _goal(profile: Mapping[str, Any]) -> str:
    return _text(profile.get("goal")) or _text(profile.get("main_fitness_goals"))


def _experience(profile: Mapping[str, Any]) -> str:
    return _text(profile.get("training_experience")).strip() or DEFAULT_EXPERIENCE


def activity_multiplier(activity_level: Any) -> float:
    text = _text(activity_level)
    for keywords, multiplier in ACTIVITY_MULTIPLIERS:
        if any(keyword in text for keyword in keywords):
            return multiplier
    return DEFAULT_ACTIVITY_MULTIPLIER


def calorie_adjustment(goal: str) -> int:
    if any(keyword in goal for keyword in FAT_LOSS_KEYWORDS):
        return FAT_LOSS_DEFICIT
    if any(keyword in goal for keyword in MUSCLE_GAIN_KEYWORDS):
        return MUSCLE_GAIN_SURPLUS
    return 0


def protein_factor(goal: str) -> float:
    """Grams of protein per pound of bodyweight for a goal."""
    if any(keyword in goal for keyword in HIGH_PROTEIN_KEYWORDS):
        return 1.2
    if any(keyword in goal for keyword in FAT_LOSS_KEYWORDS):
        return 1.0
    return 0.8


def calculate_bmr(profile: Mapping[str, Any]) -> float:
    """Basal metabolic rate (Mifflin-St Jeor) from imperial measurements."""
    weight_kg = _as_float(profile.get("weight_lbs"), DEFAULT_WEIGHT_LBS) * LBS_TO_KG
    height_cm = _as_float(profile.get("height_inches"), DEFAULT_HEIGHT_INCHES) * INCHES_TO_CM
    age = _as_float(profile.get("age"), DEFAULT_AGE)

    gender = _text(profile.get("gender")).strip()
    if gender == "male":
        offset = 5
    elif gender == "female":
        offset = -161
    else:
        offset = -78

    return 10 * weight_kg + 6.25 * height_cm - 5 * age + offset


def calculate_macros(weight_lbs: float, daily_calories: int, goal: str) -> list[Macro]:
    """Split a calorie target into protein, carbohydrate and fat.

    Protein scales with bodyweight, fat takes a fixed share of calories and
    carbohydrates fill the remainder. Percentages are computed over the macro
    calories so they always add up to 100.
    """
    protein_grams = round(weight_lbs * protein_factor(goal))
    fat_share = daily_calories * FAT_CALORIE_SHARE
    fat_grams = round(fat_share / 9)
    carb_grams = max(0, round((daily_calories - protein_grams * 4 - fat_share) / 4))

    protein_calories = protein_grams * 4
    fat_calories = round(fat_share)
    carb_calories = carb_grams * 4
    total = protein_calories + fat_calories + carb_calories

    if total > 0:
        protein_pct = round(protein_calories * 100 / total)
        fat_pct = round(fat_calories * 100 / total)
        carb_pct = 100 - protein_pct - fat_pct
    else:
        protein_pct, fat_pct, carb_pct = 0, 0, 100

    return [
        Macro(name="Protein", grams=protein_grams, calories=protein_calories, percentage=protein_pct),
        Macro(name="Carbohydrates", grams=carb_grams, calories=carb_calories, percentage=carb_pct),
        Macro(name="Fats", grams=fat_grams, calories=fat_calories, percentage=fat_pct),
    ]


def calculate_nutrition(profile: Mapping[str, Any]) -> NutritionValues:
    bmr = calculate_bmr(profile)
    tdee = bmr * activity_multiplier(profile.get("activity_level") or DEFAULT_ACTIVITY_LEVEL)
    goal = _goal(profile)
    adjustment = calorie_adjustment(goal)
    daily_calories = round(tdee + adjustment)

    weight_lbs = _as_float(profile.get("weight_lbs"), DEFAULT_WEIGHT_LBS)
    return NutritionValues(
        daily_calories=daily_calories,
        bmr=round(bmr),
        tdee=round(tdee),
        calorie_adjustment=adjustment,
        macros=calculate_macros(weight_lbs, daily_calories, goal),
    )


def training_split(days_per_week: int, experience: str) -> str:
    if days_per_week <= 2:
        return "Full Body"
    if days_per_week == 3:
        return "Full Body" if experience == "beginner" else "Upper/Lower Split"
    if days_per_week == 4:
        return "Upper/Lower Split"
    return "Push/Pull/Legs Split"


def calculate_workout(profile: Mapping[str, Any]) -> WorkoutValues:
    weekly_frequency = min(7, parse_count(profile.get("days_per_week"), DEFAULT_DAYS_PER_WEEK))
    experience = _experience(profile)
    return WorkoutValues(
        weekly_frequency=weekly_frequency,
        session_duration=parse_count(profile.get("session_duration"), DEFAULT_SESSION_DURATION),
        training_split=training_split(weekly_frequency, experience),
        volume_guidance=dict(VOLUME_GUIDANCE.get(experience, VOLUME_GUIDANCE[DEFAULT_EXPERIENCE])),
    )


def calculate_meal_timing(profile: Mapping[str, Any]) -> list[str]:
    meals_per_day = parse_count(profile.get("meals_per_day"), DEFAULT_MEALS_PER_DAY)
    workout_time = _text(profile.get("preferred_workout_time")) or "morning"

    timings = [
        "Breakfast: 7:00-9:00 AM",
        "Lunch: 12:00-2:00 PM",
        "Dinner: 6:00-8:00 PM",
    ]
    if meals_per_day >= 4:
        if workout_time == "morning":
            timings.append("Pre-Workout Snack: 6:00-7:00 AM")
        elif workout_time == "afternoon":
            timings.append("Afternoon Snack: 3:00-4:00 PM")
        else:
            timings.append("Evening Snack: 4:00-5:00 PM")
    if meals_per_day >= 5:
        timings.append("Post-Workout Snack: Within 30 minutes after training")
    return timings


def calculate_hydration_oz(profile: Mapping[str, Any]) -> int:
    weight_lbs = _as_float(profile.get("weight_lbs"), DEFAULT_WEIGHT_LBS)
    activity = _text(profile.get("activity_level"))
    multiplier = 1.2 if ("very" in activity or "extreme" in activity) else 1.0
    return round(weight_lbs * 0.67 * multiplier)


def calculate_bmi(profile: Mapping[str, Any]) -> float:
    weight_lbs = _as_float(profile.get("weight_lbs"), DEFAULT_WEIGHT_LBS)
    height_inches = _as_float(profile.get("height_inches"), DEFAULT_HEIGHT_INCHES)
    return round(weight_lbs / (height_inches * height_inches) * 703, 1)


def describe_experience(profile: Mapping[str, Any]) -> str:
    return EXPERIENCE_DESCRIPTIONS.get(_experience(profile), "Beginner")


def calculate_all(profile: Mapping[str, Any]) -> dict[str, Any]:
    """Build the `calculated` namespace exposed to templates."""
    nutrition = calculate_nutrition(profile)
    workout = calculate_workout(profile)
    calculated = asdict(nutrition)
    calculated.update(asdict(workout))
    calculated.update(
        {
            "meal_timing": calculate_meal_timing(profile),
            "hydration_oz": calculate_hydration_oz(profile),
            "bmi": calculate_bmi(profile),
            "experience_level": describe_experience(profile),
        }
    )
    return calculated
