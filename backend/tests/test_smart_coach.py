"""Tests for the AI coach: prompt summaries, history replay, confidence and stored turns."""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import AIHandlerError
from app.schemas.ai import ModelConfig, Provider
from app.schemas.context import (
    AIContext,
    BodyMetricEntry,
    ConversationEntry,
    GoalEntry,
    NutritionEntry,
    UserProfile,
    WorkoutEntry,
)
from app.schemas.workout import Exercise
from app.services.smart_coach import (
    SmartCoach,
    build_system_prompt,
    coach_confidence,
    summarize_metrics,
    summarize_nutrition,
    summarize_workouts,
)

NOW = datetime(2026, 3, 18, 12, 0, tzinfo=timezone.utc)
CHAT = ModelConfig(provider=Provider.ANTHROPIC, model="claude-3-haiku-20240307", temperature=0.7, max_tokens=2000)


def _workouts(n: int) -> list[WorkoutEntry]:
    return [
        WorkoutEntry(
            id=i,
            date=NOW - timedelta(days=2 * i + 1),
            workout_type="strength",
            exercises=[Exercise(name="squat"), Exercise(name="bench press" if i % 2 else "row")],
        )
        for i in range(n)
    ]


def _context(**kwargs) -> AIContext:
    return AIContext(user_id=1, profile=UserProfile(id=1, age=31, height_cm=180, subscription_tier="basic"), **kwargs)


def test_summarize_workouts():
    text = summarize_workouts(_workouts(8), NOW)
    assert "Total Workouts: 8 (2.0/week average)" in text
    assert "Last Workout: 1 days ago" in text
    assert "Top Exercises: squat" in text
    assert "Recent Focus: strength" in text
    assert summarize_workouts([], NOW) == "No recent workouts recorded"


def test_summarize_nutrition():
    logs = [
        NutritionEntry(id=i, date=NOW, meal_type="dinner", total_calories=2000 + 100 * i, total_protein=140)
        for i in range(3)
    ]
    text = summarize_nutrition(logs)
    assert "Average Daily Calories: 2100" in text
    assert "Average Daily Protein: 140g" in text
    assert "Logging Consistency: 43%" in text
    assert "Most logged: dinner" in text


def test_summarize_metrics_latest_first():
    metrics = [
        BodyMetricEntry(id=2, date=NOW - timedelta(days=2), weight_kg=81.5),
        BodyMetricEntry(id=1, date=NOW - timedelta(days=30), weight_kg=83.0),
    ]
    text = summarize_metrics(metrics, NOW)
    assert "Current Weight: 81.5kg" in text
    assert "Weight Change: -1.5kg" in text
    assert "Last Updated: 2 days ago" in text


def test_system_prompt_is_deterministic():
    context = _context(recent_workouts=_workouts(3), goals=[GoalEntry(id=1, type="muscle_gain", target_value=85)])
    first = build_system_prompt(context, NOW)
    assert first == build_system_prompt(context, NOW)
    assert "- Age: 31" in first
    assert "Subscription: basic tier" in first
    assert "- muscle_gain: 85.0 by no date" in first


def test_confidence_heuristic():
    sparse = AIContext(user_id=1)
    assert coach_confidence(sparse, has_references=False, has_actions=False) == 0.5
    rich = AIContext(
        user_id=1,
        recent_workouts=_workouts(11),
        recent_nutrition=[NutritionEntry(id=i, date=NOW) for i in range(6)],
        body_metrics=[BodyMetricEntry(id=i, date=NOW) for i in range(4)],
        goals=[GoalEntry(id=1, type="endurance")],
    )
    assert coach_confidence(rich, has_references=True, has_actions=True) == 1.0


@pytest.mark.asyncio
async def test_process_replays_history_and_stores_turns(store, gateway, clock):
    for i, role in enumerate(("user", "assistant", "user", "assistant")):
        store.conversations.append(
            ConversationEntry(user_id=1, conversation_id="c", role=role, content=f"turn {i}")
        )
    gateway.text = "Your last workout looked strong. You should add one more workout this week."
    context = _context(
        recent_workouts=_workouts(2),
        body_metrics=[BodyMetricEntry(id=1, date=NOW, weight_kg=80.0)],
        avg_daily_calories=2300,
    )

    result = await SmartCoach(store, gateway, clock).process("How am I doing?", context, CHAT)

    call = gateway.calls[0]
    assert [t.content for t in call["prior_turns"]] == ["turn 0", "turn 1", "turn 2", "turn 3"]
    assert call["new_message"] == "How am I doing?"
    assert "USER PROFILE" in call["system_prompt"]

    response = result.data
    assert response.message == gateway.text
    assert response.references[0].id == 0
    assert response.action_items[0].type == "workout"
    # 0.5 base + references + action items
    assert result.confidence == response.confidence == 0.7
    assert result.tokens_used == 100

    user_turn, assistant_turn = store.conversations[-2:]
    assert user_turn.conversation_id == assistant_turn.conversation_id != "c"
    assert (user_turn.role, assistant_turn.role) == ("user", "assistant")
    assert user_turn.context_snapshot == {"workout_count": 2, "avg_calories": 2300, "current_weight": 80.0}
    assert assistant_turn.model_used == "claude-3-haiku-20240307"


@pytest.mark.asyncio
async def test_history_limited_to_ten_turns(store, gateway, clock):
    for i in range(14):
        store.conversations.append(
            ConversationEntry(user_id=1, conversation_id="c", role="user" if i % 2 == 0 else "assistant", content=str(i))
        )
    gateway.text = "Keep going."

    await SmartCoach(store, gateway, clock).process("hi", _context(), CHAT)

    assert [t.content for t in gateway.calls[0]["prior_turns"]] == [str(i) for i in range(4, 14)]


@pytest.mark.asyncio
async def test_gateway_failure_raises_handler_error(store, gateway, clock):
    gateway.error = TimeoutError()
    with pytest.raises(AIHandlerError, match="Failed to generate coaching response"):
        await SmartCoach(store, gateway, clock).process("hi", _context(), CHAT)
    assert store.conversations == []
