"""Tests for recovery-time and readiness prediction."""

from datetime import datetime, timedelta, timezone

import pytest

from app.schemas.ai import ModelConfig, Provider
from app.schemas.context import AIContext, BodyMetricEntry, NutritionEntry, WorkoutEntry
from app.schemas.workout import Exercise
from app.services.recovery_predictor import (
    RecoveryPredictor,
    consecutive_training_days,
    gather_factors,
    has_new_exercises,
    predict_recovery,
)

NOW = datetime(2026, 3, 18, 12, 0, tzinfo=timezone.utc)
LOCAL = ModelConfig(provider=Provider.LOCAL, model="local", temperature=0)


def _session(id: int, hours_ago: float, *names: str, **kwargs) -> WorkoutEntry:
    return WorkoutEntry(id=id, date=NOW - timedelta(hours=hours_ago), exercises=[Exercise(name=n) for n in names], **kwargs)


def _overreached() -> AIContext:
    return AIContext(
        user_id=1,
        recent_workouts=[
            _session(3, 6, "squat", intensity_score=9, total_volume=12000),
            _session(2, 30, "squat", intensity_score=9),
            _session(1, 54, "squat", intensity_score=9),
        ],
        recent_nutrition=[NutritionEntry(id=i, date=NOW, total_calories=1000, total_protein=60) for i in range(3)],
    )


def test_consecutive_training_days():
    workouts = [_session(3, 24), _session(2, 48), _session(1, 96)]
    assert consecutive_training_days(workouts) == 2
    assert consecutive_training_days([]) == 0


def test_new_exercises_against_previous_sessions():
    assert has_new_exercises([_session(2, 1, "squat", "nordic curl"), _session(1, 48, "squat")]) is True
    assert has_new_exercises([_session(2, 1, "squat"), _session(1, 48, "squat")]) is False
    assert has_new_exercises([_session(1, 1, "squat")]) is False


def test_rested_user_with_no_data():
    prediction = predict_recovery(AIContext(user_id=1), NOW)
    assert [f.name for f in prediction.factors] == ["Weekly Training Volume"]
    assert prediction.readiness_score == 80
    assert prediction.recovery_hours == 24
    assert prediction.recommendations == ["You're well recovered! Ready for normal or high-intensity training."]


def test_overreached_user():
    prediction = predict_recovery(_overreached(), NOW)

    names = {f.name: f for f in prediction.factors}
    assert names["Time Since Last Workout"].impact == "negative"
    assert names["Last Workout Intensity"].score == 10
    assert names["Calorie Intake"].score == 50
    assert names["Protein Intake"].score == 40
    assert names["Estimated Muscle Damage"].description == "High training volume detected"
    assert names["Consecutive Training Days"].description == "3 days without rest"

    assert prediction.readiness_score == 29
    assert prediction.recovery_hours == 68
    assert len(prediction.recommendations) == 4
    assert prediction.recommendations[0] == "Take a complete rest day. Your body needs recovery."


def test_weight_fluctuation_factor():
    context = AIContext(
        user_id=1,
        body_metrics=[
            BodyMetricEntry(id=2, date=NOW, weight_kg=80.0),
            BodyMetricEntry(id=1, date=NOW - timedelta(days=1), weight_kg=78.5),
        ],
    )
    factor = next(f for f in gather_factors(context, NOW) if f.name == "Weight Fluctuation")
    assert factor.description == "+1.5kg change detected"


@pytest.mark.asyncio
async def test_low_readiness_stores_warning(store, clock):
    result = await RecoveryPredictor(store, clock).process(None, _overreached(), LOCAL)

    assert result.confidence == 0.85
    assert result.tokens_used == 0
    _, insight = store.insights[0]
    assert insight.title == "Low Recovery Status"
    assert insight.priority == 10
    assert insight.action_url == "/today"
    assert insight.content.startswith("Your readiness score is 29/100.")


@pytest.mark.asyncio
async def test_good_readiness_stores_nothing(store, clock):
    await RecoveryPredictor(store, clock).process(None, AIContext(user_id=1), LOCAL)
    assert store.insights == []
