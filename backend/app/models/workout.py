"""Logged training session: free-text parsed by the AI or entered manually. Feeds AI context and analytics."""

from datetime import datetime
from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base


class Workout(Base):
    __tablename__ = "workouts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    workout_type: Mapped[str | None] = mapped_column(String(32), nullable=True)  # strength | cardio | hiit | mixed ...
    # [{name, sets, reps, weight_kg, distance_km, duration_minutes, rest_seconds, rpe, tempo}]
    exercises: Mapped[list | None] = mapped_column(JSON, nullable=True)
    duration_minutes: Mapped[float | None] = mapped_column(Float, nullable=True)
    intensity_score: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1-10
    total_volume: Mapped[float | None] = mapped_column(Float, nullable=True)  # sum of sets x reps x kg
    session_rpe: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_parsed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    user: Mapped["User"] = relationship("User", back_populates="workouts")
