"""Tests for free-text workout parsing: aliases, name corrections, validation and estimates."""

import json

import pytest

from app.core.errors import AIHandlerError
from app.schemas.ai import ModelConfig, Provider
from app.schemas.context import AIContext, PatternEntry
from app.schemas.workout import Exercise
from app.services.workout_parser import (
    WorkoutParser,
    apply_aliases,
    detect_workout_type,
    estimate_calories,
    intensity_score,
    validate_workout,
    workout_confidence,
)

PARSE = ModelConfig(provider=Provider.GEMINI, model="gemini-2.0-flash", temperature=0.2, json_mode=True)


def test_apply_aliases_whole_words_only():
    patterns = [
        PatternEntry(pattern_type="exercise_alias", pattern_key="rdl", pattern_value={"full_name": "romanian deadlift"}),
        PatternEntry(pattern_type="food_preference", pattern_key="oats", pattern_value={}),
    ]
    assert apply_aliases("RDL 3x10, hurdle hops", patterns) == "romanian deadlift 3x10, hurdle hops"


def test_validate_corrects_names_and_computes_volume():
    parsed = {
        "exercises": [
            {"name": "ohp", "sets": 3, "reps": 5, "weight_kg": 40},
            {"name": "pullups", "sets": 3, "reps": 8, "weight_kg": 0},
        ]
    }

    workout = validate_workout(parsed, "ohp 3x5 @40, pullups 3x8")

    assert [e.name for e in workout.exercises] == ["overhead press", "pull-up"]
    assert workout.exercises[1].weight_kg is None
    assert workout.total_volume == 600
    assert workout.workout_type == "strength"
    assert workout.corrections_needed == ["ohp -> overhead press", "pullups -> pull-up"]
    assert workout.raw_input == "ohp 3x5 @40, pullups 3x8"


def test_workout_type_detection():
    assert detect_workout_type([Exercise(name="running", distance_km=5)]) == "cardio"
    assert detect_workout_type([Exercise(name="running"), Exercise(name="squat", weight_kg=100)]) == "mixed"
    assert detect_workout_type([Exercise(name="push-up", sets=3, reps=20)]) == "bodyweight"


def test_calorie_estimate():
    # 10 MET * 75 kg * 0.5 h
    assert estimate_calories([Exercise(name="running", duration_minutes=30)]) == 375
    # 0.5 kcal per rep
    assert estimate_calories([Exercise(name="squat", sets=5, reps=5)]) == 13
    assert estimate_calories([], total_duration_minutes=60) == 450


def test_intensity_score_bounds():
    hard = [Exercise(name="a", rpe=9, sets=5), Exercise(name="b", sets=5, rest_seconds=30)]
    assert intensity_score(hard) == 8
    easy = [Exercise(name="walk", rpe=4, rest_seconds=200)]
    assert intensity_score(easy) == 3
    assert intensity_score([]) == 5


def test_confidence():
    workout = validate_workout({"exercises": [{"name": "squat", "sets": 5, "reps": 5, "weight_kg": 100}]}, "squat")
    assert workout_confidence(workout) == 1.0


@pytest.mark.asyncio
async def test_process_expands_aliases_before_prompting(gateway):
    gateway.text = "```json\n" + json.dumps({"exercises": [{"name": "romanian deadlift", "sets": 3, "reps": 10}]}) + "\n```"
    context = AIContext(
        user_id=1,
        patterns=[
            PatternEntry(pattern_type="exercise_alias", pattern_key="rdl", pattern_value={"full_name": "romanian deadlift"})
        ],
    )

    result = await WorkoutParser(gateway).process("rdl 3x10", context, PARSE)

    assert gateway.calls[0]["new_message"] == "romanian deadlift 3x10"
    assert '"rdl" means "romanian deadlift"' in gateway.calls[0]["system_prompt"]
    assert result.data.exercises[0].name == "romanian deadlift"
    assert result.data.raw_input == "rdl 3x10"
    assert result.tokens_used == 100


@pytest.mark.asyncio
async def test_unparseable_reply_raises_handler_error(gateway):
    gateway.text = "Sorry, I could not read that."
    with pytest.raises(AIHandlerError, match="Failed to parse workout"):
        await WorkoutParser(gateway).process("???", AIContext(user_id=1), PARSE)
