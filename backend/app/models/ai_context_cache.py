from __future__ import annotations

from datetime import datetime
from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base


class AIContextCache(Base):
    """Denormalized per-user snapshot for prompt assembly. Replaced whole on every rebuild."""

    __tablename__ = "user_ai_context_cache"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True
    )
    user_profile: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    recent_workouts: Mapped[list | None] = mapped_column(JSON, nullable=True)
    recent_nutrition: Mapped[list | None] = mapped_column(JSON, nullable=True)
    body_metrics: Mapped[list | None] = mapped_column(JSON, nullable=True)
    active_goals: Mapped[list | None] = mapped_column(JSON, nullable=True)
    learned_patterns: Mapped[list | None] = mapped_column(JSON, nullable=True)
    coaching_history: Mapped[list | None] = mapped_column(JSON, nullable=True)
    avg_daily_calories: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    avg_daily_protein: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    workout_frequency_per_week: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    stale_after: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
