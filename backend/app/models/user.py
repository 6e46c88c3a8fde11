from __future__ import annotations

from datetime import datetime
from sqlalchemy import JSON, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height_cm: Mapped[float | None] = mapped_column(Float, nullable=True)
    activity_level: Mapped[str | None] = mapped_column(String(32), nullable=True)
    training_style: Mapped[str | None] = mapped_column(String(64), nullable=True)
    dietary_preferences: Mapped[list | None] = mapped_column(JSON, nullable=True)
    subscription_tier: Mapped[str] = mapped_column(String(16), nullable=False, default="free")  # free | basic | premium | elite
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    workouts: Mapped[list["Workout"]] = relationship("Workout", back_populates="user", cascade="all, delete-orphan")
    food_logs: Mapped[list["FoodLog"]] = relationship("FoodLog", back_populates="user", cascade="all, delete-orphan")
    body_metrics: Mapped[list["BodyMetric"]] = relationship(
        "BodyMetric", back_populates="user", cascade="all, delete-orphan"
    )
    goals: Mapped[list["UserGoal"]] = relationship("UserGoal", back_populates="user", cascade="all, delete-orphan")
