"""Builds the per-user AIContext, reusing the cached snapshot until its stale_after passes."""

import asyncio
import logging
import math
from collections.abc import Callable
from datetime import datetime, timedelta

from app.config import settings
from app.core.billing import utc_now
from app.schemas.context import AIContext, ContextCacheEntry, NutritionEntry, WorkoutEntry
from app.services.context_store import ContextStore
from app.services.stats import mean, round_half_up, round_int

logger = logging.getLogger(__name__)

WORKOUT_LOOKBACK_DAYS = 30
WORKOUT_LIMIT = 30
NUTRITION_LOOKBACK_DAYS = 7
BODY_METRIC_LIMIT = 10
PATTERN_LIMIT = 50
CONVERSATION_FETCH_LIMIT = 20
CONVERSATION_KEEP = 10


def avg_daily_calories(nutrition: list[NutritionEntry]) -> int:
    return round_int(mean([n.total_calories or 0 for n in nutrition]))


def avg_daily_protein(nutrition: list[NutritionEntry]) -> int:
    return round_int(mean([n.total_protein or 0 for n in nutrition]))


def workout_frequency_per_week(workouts: list[WorkoutEntry]) -> float:
    if not workouts:
        return 0
    weeks = math.ceil(len(workouts) / 7)
    return round_half_up(len(workouts) / weeks, 1)


class ContextLoader:
    def __init__(
        self,
        store: ContextStore,
        clock: Callable[[], datetime] = utc_now,
        ttl: timedelta | None = None,
    ):
        self._store = store
        self._clock = clock
        self._ttl = ttl if ttl is not None else timedelta(minutes=settings.context_cache_ttl_minutes)

    async def load(self, user_id: int) -> AIContext:
        now = self._clock()
        cached = await self._store.get_context_cache(user_id)
        if cached is not None and cached.is_fresh(now):
            return cached.context
        context = await self.build(user_id, now)
        await self._store.upsert_context_cache(
            ContextCacheEntry(user_id=user_id, context=context, computed_at=now, stale_after=now + self._ttl)
        )
        logger.debug("Rebuilt AI context for user_id=%s", user_id)
        return context

    async def build(self, user_id: int, now: datetime) -> AIContext:
        store = self._store
        profile, workouts, nutrition, metrics, goals, patterns, turns = await asyncio.gather(
            store.get_profile(user_id),
            store.get_workouts(user_id, since=now - timedelta(days=WORKOUT_LOOKBACK_DAYS), limit=WORKOUT_LIMIT),
            store.get_nutrition(user_id, since=now - timedelta(days=NUTRITION_LOOKBACK_DAYS)),
            store.get_body_metrics(user_id, limit=BODY_METRIC_LIMIT),
            store.get_active_goals(user_id),
            store.get_patterns(user_id, limit=PATTERN_LIMIT),
            store.get_conversation_turns(user_id, limit=CONVERSATION_FETCH_LIMIT),
        )
        return AIContext(
            user_id=user_id,
            profile=profile,
            recent_workouts=workouts,
            recent_nutrition=nutrition,
            body_metrics=metrics,
            goals=goals,
            patterns=patterns,
            conversations=turns[:CONVERSATION_KEEP],
            avg_daily_calories=avg_daily_calories(nutrition),
            avg_daily_protein=avg_daily_protein(nutrition),
            workout_frequency_per_week=workout_frequency_per_week(workouts),
        )
