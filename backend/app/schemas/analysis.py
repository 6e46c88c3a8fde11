"""Training-load and recovery analytics (computed locally, no model call)."""

from typing import Literal

from pydantic import BaseModel


class LoadAnalysis(BaseModel):
    acute_load: int
    chronic_load: int
    ratio: float
    risk_level: Literal["low", "optimal", "moderate", "high"]
    recommendation: str
    trend: Literal["increasing", "stable", "decreasing"]


class RecoveryFactor(BaseModel):
    name: str
    impact: Literal["positive", "negative", "neutral"]
    score: float
    description: str


class RecoveryPrediction(BaseModel):
    recovery_hours: int
    readiness_score: int
    factors: list[RecoveryFactor]
    recommendations: list[str]
