"""Assembled per-user context used to ground prompts, and the cached snapshot of it."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.nutrition import FoodItem
from app.schemas.workout import Exercise


class UserProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str | None = None
    name: str | None = None
    age: int | None = None
    height_cm: float | None = None
    activity_level: str | None = None
    training_style: str | None = None
    dietary_preferences: list[str] | None = None
    subscription_tier: str = "free"


class WorkoutEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: datetime
    workout_type: str | None = None
    exercises: list[Exercise] = Field(default_factory=list)
    duration_minutes: float | None = None
    intensity_score: int | None = None
    total_volume: float | None = None
    session_rpe: float | None = None
    notes: str | None = None

    @field_validator("exercises", mode="before")
    @classmethod
    def _null_exercises(cls, v):
        return v or []


class NutritionEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: datetime
    meal_type: str | None = None
    foods: list[FoodItem] = Field(default_factory=list)
    total_calories: float | None = None
    total_protein: float | None = None
    total_carbs: float | None = None
    total_fat: float | None = None

    @field_validator("foods", mode="before")
    @classmethod
    def _null_foods(cls, v):
        return v or []


class BodyMetricEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: datetime
    weight_kg: float | None = None
    body_fat_percentage: float | None = None
    muscle_mass_kg: float | None = None


class GoalEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    target_value: float | None = None
    target_date: date | None = None
    current_value: float | None = None
    status: str = "active"


class PatternEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    pattern_type: str
    pattern_key: str
    pattern_value: dict[str, Any] | None = None
    frequency: int = 1
    confidence: float = 0.5


class ConversationEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    conversation_id: str
    role: str
    content: str
    context_snapshot: dict[str, Any] | None = None
    model_used: str | None = None
    created_at: datetime | None = None


class AIContext(BaseModel):
    """Everything a handler may read about the user. Lists are newest first."""

    user_id: int
    profile: UserProfile | None = None
    recent_workouts: list[WorkoutEntry] = Field(default_factory=list)
    recent_nutrition: list[NutritionEntry] = Field(default_factory=list)
    body_metrics: list[BodyMetricEntry] = Field(default_factory=list)
    goals: list[GoalEntry] = Field(default_factory=list)
    patterns: list[PatternEntry] = Field(default_factory=list)
    conversations: list[ConversationEntry] = Field(default_factory=list)
    avg_daily_calories: float = 0
    avg_daily_protein: float = 0
    workout_frequency_per_week: float = 0

    def patterns_of(self, pattern_type: str) -> list[PatternEntry]:
        return [p for p in self.patterns if p.pattern_type == pattern_type]


class ContextCacheEntry(BaseModel):
    """One row per user; replaced whole on every rebuild."""

    user_id: int
    context: AIContext
    computed_at: datetime
    stale_after: datetime

    def is_fresh(self, now: datetime) -> bool:
        return now < self.stale_after
