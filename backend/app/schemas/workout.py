"""Pydantic schemas for workouts: stored sessions and AI-parsed free text."""

from pydantic import BaseModel, ConfigDict, Field


class Exercise(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    sets: int | None = Field(None, ge=0)
    reps: int | None = Field(None, ge=0)
    weight_kg: float | None = Field(None, ge=0)
    distance_km: float | None = Field(None, ge=0)
    duration_minutes: float | None = Field(None, ge=0)
    rest_seconds: int | None = Field(None, ge=0)
    rpe: float | None = Field(None, ge=0, le=10)
    tempo: str | None = None

    @property
    def volume(self) -> float | None:
        """sets x reps x weight, only when all three are present."""
        if self.sets and self.reps and self.weight_kg:
            return self.sets * self.reps * self.weight_kg
        return None


class ParsedWorkout(BaseModel):
    """Structured output of the workout parser."""

    exercises: list[Exercise]
    total_volume: float | None = None
    estimated_calories: int | None = None
    workout_type: str | None = None
    intensity_score: int | None = Field(None, ge=1, le=10)
    raw_input: str
    corrections_needed: list[str] | None = None
