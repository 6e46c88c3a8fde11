"""Statistical summaries produced by the pattern detector."""

from typing import Literal

from pydantic import BaseModel, Field

TrendLabel = Literal["increasing", "decreasing", "stable"]


class NamedCount(BaseModel):
    name: str
    count: int


class WorkoutPatterns(BaseModel):
    frequency: dict[str, int] = Field(default_factory=dict)
    exercise_pairs: dict[str, int] = Field(default_factory=dict)
    volume_trends: dict[str, TrendLabel] = Field(default_factory=dict)
    top_exercises: list[NamedCount] = Field(default_factory=list)


class CalorieStats(BaseModel):
    average: int = 0
    min: float = 0
    max: float = 0
    std_dev: int = 0


class MacroDistribution(BaseModel):
    protein_percent: int = 0
    carbs_percent: int = 0
    fat_percent: int = 0


class NutritionPatterns(BaseModel):
    meal_timing: dict[str, int] = Field(default_factory=dict)
    common_foods: list[NamedCount] = Field(default_factory=list)
    calorie_patterns: CalorieStats = Field(default_factory=CalorieStats)
    macro_distribution: MacroDistribution = Field(default_factory=MacroDistribution)


class GapStats(BaseModel):
    average: int = 0
    min: int = 0
    max: int = 0


class SchedulePatterns(BaseModel):
    days_of_week: dict[str, int] = Field(default_factory=dict)
    workout_gaps: GapStats = Field(default_factory=GapStats)
    consistency_score: int = 0


class ProgressPatterns(BaseModel):
    trend: Literal["insufficient_data"] | None = None
    weight_trend: TrendLabel | None = None
    change_per_week: float | None = None
    current_weight: float | None = None
    starting_weight: float | None = None
    total_change: float | None = None


class DetectedPatterns(BaseModel):
    workout: WorkoutPatterns
    nutrition: NutritionPatterns
    schedule: SchedulePatterns
    progress: ProgressPatterns


class Insight(BaseModel):
    type: Literal["recommendation", "pattern_detected", "warning"]
    title: str
    content: str
    priority: int = Field(..., ge=1, le=10)
    data: dict | None = None
    action_url: str | None = None


class PatternDetectionResult(BaseModel):
    patterns: DetectedPatterns
    insights: list[Insight]
