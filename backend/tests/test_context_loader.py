"""Tests for context aggregation and the cached snapshot."""

from datetime import datetime, timedelta, timezone

import pytest

from app.schemas.context import ConversationEntry, NutritionEntry, UserProfile, WorkoutEntry
from app.services.context_loader import ContextLoader, workout_frequency_per_week

NOW = datetime(2026, 3, 18, 12, 0, tzinfo=timezone.utc)


def test_workout_frequency_per_week():
    workouts = [WorkoutEntry(id=i, date=NOW) for i in range(10)]
    # 10 sessions over ceil(10 / 7) = 2 weeks
    assert workout_frequency_per_week(workouts) == 5.0
    assert workout_frequency_per_week([]) == 0


@pytest.mark.asyncio
async def test_build_applies_windows_and_averages(store, clock):
    store.profiles[1] = UserProfile(id=1, subscription_tier="basic")
    store.workouts = [WorkoutEntry(id=i, date=NOW - timedelta(days=i)) for i in range(40)]
    store.nutrition = [
        NutritionEntry(id=1, date=NOW - timedelta(days=1), total_calories=2000, total_protein=151),
        NutritionEntry(id=2, date=NOW - timedelta(days=2), total_calories=2101, total_protein=140),
        NutritionEntry(id=3, date=NOW - timedelta(days=9), total_calories=5000, total_protein=10),
    ]
    store.conversations = [
        ConversationEntry(user_id=1, conversation_id="c", role="user", content=str(i)) for i in range(25)
    ]

    context = await ContextLoader(store, clock).build(1, NOW)

    assert context.profile.subscription_tier == "basic"
    # last 30 days, at most 30 rows, newest first
    assert len(context.recent_workouts) == 30
    assert context.recent_workouts[0].id == 0
    assert [n.id for n in context.recent_nutrition] == [1, 2]
    assert context.avg_daily_calories == 2051
    assert context.avg_daily_protein == 146
    assert len(context.conversations) == 10
    assert context.conversations[0].content == "24"


@pytest.mark.asyncio
async def test_load_uses_fresh_cache(store, clock):
    loader = ContextLoader(store, clock)
    first = await loader.load(1)
    clock.advance(minutes=59)
    second = await loader.load(1)

    assert store.count("get_profile") == 1
    assert store.count("upsert_context_cache") == 1
    assert second == first


@pytest.mark.asyncio
async def test_ttl_is_configurable(store, clock):
    loader = ContextLoader(store, clock, ttl=timedelta(minutes=5))
    await loader.load(1)
    clock.advance(minutes=5)
    await loader.load(1)
    assert store.count("upsert_context_cache") == 2
    assert store.cache[1].stale_after == clock.now + timedelta(minutes=5)
