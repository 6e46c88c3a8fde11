"""Free-text workout log -> ParsedWorkout via a JSON completion plus local validation."""

import logging
import re
from typing import Any

from app.core.errors import AIHandlerError
from app.schemas.ai import HandlerResult, ModelConfig
from app.schemas.context import AIContext, PatternEntry, WorkoutEntry
from app.schemas.workout import Exercise, ParsedWorkout
from app.services.gemini_common import parse_json_text
from app.services.model_gateway import ModelGateway
from app.services.stats import round_int

logger = logging.getLogger(__name__)

BODY_WEIGHT_KG = 75
DEFAULT_MET = 6
KCAL_PER_REP = 0.5
CARDIO_NAMES = ("running", "cycling", "rowing", "swimming")

NAME_CORRECTIONS = {
    "benchpress": "bench press",
    "bench": "bench press",
    "bp": "bench press",
    "squats": "squat",
    "deads": "deadlift",
    "deadlifts": "deadlift",
    "pullup": "pull-up",
    "pullups": "pull-up",
    "pushup": "push-up",
    "pushups": "push-up",
    "ohp": "overhead press",
    "rows": "row",
    "curls": "bicep curl",
    "tris": "tricep extension",
    "flys": "fly",
    "flyes": "fly",
}

SYSTEM_PROMPT_TEMPLATE = """You are an expert fitness tracker that parses natural language workout descriptions into structured data.

USER CONTEXT:
- Common exercises: {exercises}
- Known abbreviations: {aliases}
- Training style: {training_style}

PARSING RULES:
1. Extract all exercises with sets, reps, weight, distance, duration, rest periods
2. Handle various formats: "3x8", "3 sets of 8", "3*8", "3 x 8 reps"
3. Convert weights to kg (lbs * 0.453592)
4. Handle circuits: "3 rounds of: exercise1, exercise2, exercise3"
5. Handle supersets: exercises marked with same letter or "superset with"
6. Handle AMRAP/EMOM/Tabata/HIIT formats
7. Handle cardio: running, cycling, rowing with distance/duration/pace
8. Handle bodyweight exercises (no weight needed)
9. Handle tempo notation: "3-1-2-0" (eccentric-pause-concentric-pause)
10. Handle RPE (1-10 scale) and percentages

Output ONLY valid JSON, no markdown:
{{
  "exercises": [
    {{"name": "exercise name (lowercase, normalized)", "sets": null, "reps": null, "weight_kg": null,
      "distance_km": null, "duration_minutes": null, "rest_seconds": null, "rpe": null, "tempo": null}}
  ],
  "workout_type": "strength|cardio|hiit|crossfit|powerlifting|bodybuilding|mixed",
  "total_duration_minutes": null
}}

EXAMPLES:
Input: "Bench press 3x8 @135lbs, squats 5x5 @225"
Output: exercises with bench press (3 sets, 8 reps, 61.2kg) and squats (5 sets, 5 reps, 102kg)

Input: "5k run in 25:30"
Output: exercise "running" with distance_km: 5, duration_minutes: 25.5"""


def _alias_patterns(patterns: list[PatternEntry]) -> list[tuple[str, str]]:
    out = []
    for p in patterns:
        if p.pattern_type != "exercise_alias":
            continue
        full_name = (p.pattern_value or {}).get("full_name")
        if full_name:
            out.append((p.pattern_key, full_name))
    return out


def apply_aliases(text: str, patterns: list[PatternEntry]) -> str:
    """Replace learned abbreviations (whole words, any case) with their full exercise names."""
    for key, full_name in _alias_patterns(patterns):
        text = re.sub(rf"\b{re.escape(key)}\b", lambda _m, name=full_name: name, text, flags=re.IGNORECASE)
    return text


def recent_exercise_names(workouts: list[WorkoutEntry], sessions: int = 10, limit: int = 20) -> list[str]:
    names: dict[str, None] = {}
    for workout in workouts[:sessions]:
        for ex in workout.exercises:
            names.setdefault(ex.name, None)
    return list(names)[:limit]


def build_system_prompt(context: AIContext) -> str:
    aliases = ", ".join(f'"{key}" means "{full}"' for key, full in _alias_patterns(context.patterns))
    profile = context.profile
    return SYSTEM_PROMPT_TEMPLATE.format(
        exercises=", ".join(recent_exercise_names(context.recent_workouts)),
        aliases=aliases or "none",
        training_style=(profile.training_style if profile and profile.training_style else "general fitness"),
    )


def correct_exercise_names(raw_exercises: list[dict[str, Any]]) -> tuple[list[dict[str, Any]], list[str]]:
    corrected, notes = [], []
    for raw in raw_exercises:
        name = str(raw.get("name") or "unknown exercise")
        fixed = NAME_CORRECTIONS.get(name.lower(), name)
        if fixed != name:
            notes.append(f"{name} -> {fixed}")
        corrected.append({**raw, "name": fixed})
    return corrected, notes


def detect_workout_type(exercises: list[Exercise]) -> str:
    has_cardio = any(ex.distance_km or ex.name.lower() in CARDIO_NAMES for ex in exercises)
    has_strength = any(ex.weight_kg for ex in exercises)
    if has_cardio and has_strength:
        return "mixed"
    if has_cardio:
        return "cardio"
    if has_strength:
        return "strength"
    return "bodyweight"


def estimate_calories(exercises: list[Exercise], total_duration_minutes: float | None = None) -> int:
    """MET-based for timed exercises, 0.5 kcal per rep for sets x reps, at a 75 kg body weight."""
    calories = 0.0
    for ex in exercises:
        if ex.duration_minutes:
            name = ex.name.lower()
            if "run" in name:
                met = 10
            elif "cycl" in name:
                met = 8
            elif "row" in name:
                met = 7
            else:
                met = DEFAULT_MET
            calories += met * BODY_WEIGHT_KG * (ex.duration_minutes / 60)
        elif ex.sets and ex.reps:
            calories += ex.sets * ex.reps * KCAL_PER_REP
    if calories == 0 and total_duration_minutes:
        calories = DEFAULT_MET * BODY_WEIGHT_KG * (total_duration_minutes / 60)
    return round_int(calories)


def intensity_score(exercises: list[Exercise]) -> int:
    score = 5
    high_rpe = any(ex.rpe and ex.rpe >= 8 for ex in exercises)
    short_rest = any(ex.rest_seconds and ex.rest_seconds <= 30 for ex in exercises)
    high_volume = sum(1 for ex in exercises if ex.sets and ex.sets >= 5) >= 2
    long_rest = any(ex.rest_seconds and ex.rest_seconds >= 180 for ex in exercises)
    low_rpe = any(ex.rpe and ex.rpe <= 5 for ex in exercises)
    if high_rpe or short_rest:
        score += 2
    if high_volume:
        score += 1
    if long_rest or low_rpe:
        score -= 2
    return max(1, min(10, score))


def validate_workout(parsed: dict[str, Any], raw_input: str) -> ParsedWorkout:
    raw_exercises = parsed.get("exercises") if isinstance(parsed.get("exercises"), list) else []
    corrected, notes = correct_exercise_names([e for e in raw_exercises if isinstance(e, dict)])
    # Zeros from the model mean "not given".
    exercises = [
        Exercise.model_validate({k: v for k, v in raw.items() if v not in (0, "", None)} | {"name": raw["name"]})
        for raw in corrected
    ]
    total_volume = sum(ex.volume or 0 for ex in exercises)
    return ParsedWorkout(
        exercises=exercises,
        total_volume=total_volume if total_volume > 0 else None,
        estimated_calories=estimate_calories(exercises, parsed.get("total_duration_minutes")),
        workout_type=parsed.get("workout_type") or detect_workout_type(exercises),
        intensity_score=intensity_score(exercises),
        raw_input=raw_input,
        corrections_needed=notes or None,
    )


def workout_confidence(workout: ParsedWorkout) -> float:
    confidence = 0.5
    if workout.exercises:
        confidence += 0.2
    if all(ex.name != "unknown exercise" for ex in workout.exercises):
        confidence += 0.1
    if workout.workout_type:
        confidence += 0.1
    if workout.total_volume or workout.estimated_calories:
        confidence += 0.1
    return min(1.0, round(confidence, 2))


class WorkoutParser:
    def __init__(self, gateway: ModelGateway):
        self._gateway = gateway

    async def process(self, input: str, context: AIContext, config: ModelConfig) -> HandlerResult:
        try:
            text = str(input)
            enriched = apply_aliases(text, context.patterns)
            completion = await self._gateway.complete(build_system_prompt(context), [], enriched, config)
            parsed = parse_json_text(completion.text)
            if not isinstance(parsed, dict):
                raise ValueError("Workout JSON is not an object")
            workout = validate_workout(parsed, text)
        except Exception as e:
            logger.exception("Workout parsing failed for user_id=%s", context.user_id)
            raise AIHandlerError("Failed to parse workout") from e
        return HandlerResult(data=workout, confidence=workout_confidence(workout), tokens_used=completion.total_tokens)
