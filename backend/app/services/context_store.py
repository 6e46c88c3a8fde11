"""
Persistence boundary for the AI layer. Handlers and the orchestrator depend on the
ContextStore protocol; SqlContextStore is the PostgreSQL implementation.
Each operation opens its own short-lived session so callers may run reads concurrently.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.session import async_session_maker
from app.models.ai_context_cache import AIContextCache
from app.models.ai_context_record import AIContextRecord
from app.models.ai_insight import AIInsight
from app.models.ai_usage import AIUsageRecord
from app.models.body_metric import BodyMetric
from app.models.conversation_memory import ConversationMemory
from app.models.food_log import FoodLog
from app.models.food_reference import FoodReference
from app.models.user import User
from app.models.user_goal import UserGoal
from app.models.user_pattern import UserPattern
from app.models.workout import Workout
from app.schemas.ai import AuditEntry, RequestType, UsageRecord
from app.schemas.context import (
    AIContext,
    BodyMetricEntry,
    ContextCacheEntry,
    ConversationEntry,
    GoalEntry,
    NutritionEntry,
    PatternEntry,
    UserProfile,
    WorkoutEntry,
)
from app.schemas.nutrition import FoodReferenceEntry
from app.schemas.patterns import Insight


class ContextStore(Protocol):
    async def get_profile(self, user_id: int) -> UserProfile | None: ...

    async def get_workouts(self, user_id: int, since: datetime, limit: int | None = None) -> list[WorkoutEntry]: ...

    async def get_nutrition(
        self, user_id: int, since: datetime, limit: int | None = None
    ) -> list[NutritionEntry]: ...

    async def get_body_metrics(
        self, user_id: int, limit: int, since: datetime | None = None
    ) -> list[BodyMetricEntry]: ...

    async def get_active_goals(self, user_id: int) -> list[GoalEntry]: ...

    async def get_patterns(
        self, user_id: int, limit: int = 50, pattern_type: str | None = None
    ) -> list[PatternEntry]: ...

    async def get_conversation_turns(self, user_id: int, limit: int) -> list[ConversationEntry]: ...

    async def get_context_cache(self, user_id: int) -> ContextCacheEntry | None: ...

    async def upsert_context_cache(self, entry: ContextCacheEntry) -> None: ...

    async def count_usage(self, user_id: int, request_type: RequestType, since: datetime) -> int: ...

    async def count_usage_by_type(self, user_id: int, since: datetime) -> dict[RequestType, int]: ...

    async def insert_usage(self, record: UsageRecord) -> None: ...

    async def insert_audit(self, entry: AuditEntry) -> None: ...

    async def append_conversation_turn(self, turn: ConversationEntry) -> None: ...

    async def insert_insight(self, user_id: int, insight: Insight) -> None: ...

    async def increment_pattern(
        self, user_id: int, pattern_type: str, pattern_key: str, pattern_value: dict[str, Any] | None
    ) -> None: ...

    async def search_foods(self, query: str, limit: int = 5) -> list[FoodReferenceEntry]: ...


def _dump_list(items) -> list[dict]:
    return [item.model_dump(mode="json") for item in items]


class SqlContextStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session_maker):
        self._session_factory = session_factory

    async def get_profile(self, user_id: int) -> UserProfile | None:
        async with self._session_factory() as session:
            r = await session.execute(select(User).where(User.id == user_id))
            user = r.scalar_one_or_none()
            return UserProfile.model_validate(user) if user else None

    async def get_workouts(self, user_id: int, since: datetime, limit: int | None = None) -> list[WorkoutEntry]:
        stmt = (
            select(Workout)
            .where(Workout.user_id == user_id, Workout.date >= since)
            .order_by(Workout.date.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session_factory() as session:
            r = await session.execute(stmt)
            return [WorkoutEntry.model_validate(w) for w in r.scalars().all()]

    async def get_nutrition(self, user_id: int, since: datetime, limit: int | None = None) -> list[NutritionEntry]:
        stmt = (
            select(FoodLog)
            .where(FoodLog.user_id == user_id, FoodLog.date >= since)
            .order_by(FoodLog.date.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session_factory() as session:
            r = await session.execute(stmt)
            return [NutritionEntry.model_validate(f) for f in r.scalars().all()]

    async def get_body_metrics(
        self, user_id: int, limit: int, since: datetime | None = None
    ) -> list[BodyMetricEntry]:
        stmt = select(BodyMetric).where(BodyMetric.user_id == user_id)
        if since is not None:
            stmt = stmt.where(BodyMetric.date >= since)
        stmt = stmt.order_by(BodyMetric.date.desc()).limit(limit)
        async with self._session_factory() as session:
            r = await session.execute(stmt)
            return [BodyMetricEntry.model_validate(m) for m in r.scalars().all()]

    async def get_active_goals(self, user_id: int) -> list[GoalEntry]:
        async with self._session_factory() as session:
            r = await session.execute(
                select(UserGoal).where(UserGoal.user_id == user_id, UserGoal.status == "active")
            )
            return [GoalEntry.model_validate(g) for g in r.scalars().all()]

    async def get_patterns(
        self, user_id: int, limit: int = 50, pattern_type: str | None = None
    ) -> list[PatternEntry]:
        stmt = select(UserPattern).where(UserPattern.user_id == user_id)
        if pattern_type is not None:
            stmt = stmt.where(UserPattern.pattern_type == pattern_type)
        stmt = stmt.order_by(UserPattern.frequency.desc()).limit(limit)
        async with self._session_factory() as session:
            r = await session.execute(stmt)
            return [PatternEntry.model_validate(p) for p in r.scalars().all()]

    async def get_conversation_turns(self, user_id: int, limit: int) -> list[ConversationEntry]:
        """Most recent turns, newest first."""
        async with self._session_factory() as session:
            r = await session.execute(
                select(ConversationMemory)
                .where(ConversationMemory.user_id == user_id)
                .order_by(ConversationMemory.created_at.desc(), ConversationMemory.id.desc())
                .limit(limit)
            )
            return [ConversationEntry.model_validate(c) for c in r.scalars().all()]

    async def get_context_cache(self, user_id: int) -> ContextCacheEntry | None:
        async with self._session_factory() as session:
            r = await session.execute(select(AIContextCache).where(AIContextCache.user_id == user_id))
            row = r.scalar_one_or_none()
        if row is None:
            return None
        context = AIContext(
            user_id=user_id,
            profile=row.user_profile,
            recent_workouts=row.recent_workouts or [],
            recent_nutrition=row.recent_nutrition or [],
            body_metrics=row.body_metrics or [],
            goals=row.active_goals or [],
            patterns=row.learned_patterns or [],
            conversations=row.coaching_history or [],
            avg_daily_calories=row.avg_daily_calories or 0,
            avg_daily_protein=row.avg_daily_protein or 0,
            workout_frequency_per_week=row.workout_frequency_per_week or 0,
        )
        return ContextCacheEntry(
            user_id=user_id, context=context, computed_at=row.computed_at, stale_after=row.stale_after
        )

    async def upsert_context_cache(self, entry: ContextCacheEntry) -> None:
        ctx = entry.context
        values = {
            "user_id": entry.user_id,
            "user_profile": ctx.profile.model_dump(mode="json") if ctx.profile else None,
            "recent_workouts": _dump_list(ctx.recent_workouts),
            "recent_nutrition": _dump_list(ctx.recent_nutrition),
            "body_metrics": _dump_list(ctx.body_metrics),
            "active_goals": _dump_list(ctx.goals),
            "learned_patterns": _dump_list(ctx.patterns),
            "coaching_history": _dump_list(ctx.conversations),
            "avg_daily_calories": ctx.avg_daily_calories,
            "avg_daily_protein": ctx.avg_daily_protein,
            "workout_frequency_per_week": ctx.workout_frequency_per_week,
            "computed_at": entry.computed_at,
            "stale_after": entry.stale_after,
        }
        stmt = pg_insert(AIContextCache).values(values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[AIContextCache.user_id],
            set_={k: stmt.excluded[k] for k in values if k != "user_id"},
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def count_usage(self, user_id: int, request_type: RequestType, since: datetime) -> int:
        async with self._session_factory() as session:
            r = await session.execute(
                select(func.count())
                .select_from(AIUsageRecord)
                .where(
                    AIUsageRecord.user_id == user_id,
                    AIUsageRecord.operation == request_type.value,
                    AIUsageRecord.created_at >= since,
                )
            )
            return int(r.scalar_one() or 0)

    async def count_usage_by_type(self, user_id: int, since: datetime) -> dict[RequestType, int]:
        async with self._session_factory() as session:
            r = await session.execute(
                select(AIUsageRecord.operation, func.count())
                .where(AIUsageRecord.user_id == user_id, AIUsageRecord.created_at >= since)
                .group_by(AIUsageRecord.operation)
            )
            rows = r.all()
        valid = {t.value for t in RequestType}
        return {RequestType(op): int(n) for op, n in rows if op in valid}

    async def insert_usage(self, record: UsageRecord) -> None:
        row = AIUsageRecord(
            user_id=record.user_id,
            endpoint=f"/api/v1/ai/{record.request_type.value}",
            operation=record.request_type.value,
            model_provider=record.provider.value,
            model_name=record.model_name,
            total_tokens=record.total_tokens,
            input_tokens=record.input_tokens,
            output_tokens=record.output_tokens,
            cost_cents=record.cost_cents,
            tier=record.tier.value,
            success=record.success,
        )
        if record.created_at is not None:
            row.created_at = record.created_at
        async with self._session_factory() as session:
            session.add(row)
            await session.commit()

    async def insert_audit(self, entry: AuditEntry) -> None:
        async with self._session_factory() as session:
            session.add(
                AIContextRecord(
                    user_id=entry.user_id,
                    context_type=entry.context_type,
                    raw_input=entry.raw_input,
                    parsed_output=entry.parsed_output,
                    confidence=entry.confidence,
                    model_used=entry.model_used,
                    tokens_used=entry.tokens_used,
                    processing_time_ms=entry.processing_time_ms,
                )
            )
            await session.commit()

    async def append_conversation_turn(self, turn: ConversationEntry) -> None:
        row = ConversationMemory(
            user_id=turn.user_id,
            conversation_id=turn.conversation_id,
            role=turn.role,
            content=turn.content,
            context_snapshot=turn.context_snapshot,
            model_used=turn.model_used,
        )
        if turn.created_at is not None:
            row.created_at = turn.created_at
        async with self._session_factory() as session:
            session.add(row)
            await session.commit()

    async def insert_insight(self, user_id: int, insight: Insight) -> None:
        async with self._session_factory() as session:
            session.add(
                AIInsight(
                    user_id=user_id,
                    insight_type=insight.type,
                    title=insight.title,
                    content=insight.content,
                    data=insight.data,
                    priority=insight.priority,
                    is_actionable=True,
                    action_url=insight.action_url,
                )
            )
            await session.commit()

    async def increment_pattern(
        self, user_id: int, pattern_type: str, pattern_key: str, pattern_value: dict[str, Any] | None
    ) -> None:
        """Insert with frequency 1, or bump frequency and replace the payload in one statement."""
        stmt = pg_insert(UserPattern).values(
            {
                "user_id": user_id,
                "pattern_type": pattern_type,
                "pattern_key": pattern_key,
                "pattern_value": pattern_value,
                "frequency": 1,
                "confidence": 0.5,
            }
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_user_patterns_user_type_key",
            set_={
                "frequency": UserPattern.frequency + 1,
                "pattern_value": stmt.excluded.pattern_value,
                "updated_at": func.now(),
            },
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def search_foods(self, query: str, limit: int = 5) -> list[FoodReferenceEntry]:
        term = (query or "").strip()
        if not term:
            return []
        async with self._session_factory() as session:
            r = await session.execute(
                select(FoodReference)
                .where(FoodReference.name.ilike(f"%{term}%"))
                .order_by(func.length(FoodReference.name))
                .limit(limit)
            )
            return [FoodReferenceEntry.model_validate(f) for f in r.scalars().all()]
