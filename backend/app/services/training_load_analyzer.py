"""
Acute:chronic workload ratio (ACWR) from the last 30 days of training.

Session load follows Foster (duration x session RPE / 10) plus a capped volume
score, scaled by the session's intensity relative to a moderate 5/10.
"""
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from app.core.billing import utc_now
from app.core.errors import AIHandlerError
from app.schemas.ai import HandlerResult, ModelConfig
from app.schemas.analysis import LoadAnalysis
from app.schemas.context import AIContext, WorkoutEntry
from app.schemas.patterns import Insight
from app.services.context_store import ContextStore
from app.services.stats import round_half_up, round_int

logger = logging.getLogger(__name__)

HISTORY_DAYS = 30
ACUTE_DAYS = 7
CHRONIC_DAYS = 28
TREND_WINDOW_DAYS = 14
TREND_CHANGE_PERCENT = 10

DEFAULT_DURATION_MINUTES = 30
DEFAULT_INTENSITY = 5
VOLUME_SCORE_CAP = 10

ANALYSIS_CONFIDENCE = 0.9


def session_load(workout: WorkoutEntry) -> float:
    duration = workout.duration_minutes or DEFAULT_DURATION_MINUTES
    intensity = workout.intensity_score or DEFAULT_INTENSITY
    rpe = workout.session_rpe or intensity
    volume_score = min((workout.total_volume or 0) / 1000, VOLUME_SCORE_CAP)
    return (duration * rpe / 10 + volume_score) * (intensity / 5)


def average_daily_load(workouts: list[WorkoutEntry], start: datetime, end: datetime) -> float:
    """Sum of session loads with start <= date < end, divided by the window length in days."""
    days = (end - start).days or 1
    return sum(session_load(w) for w in workouts if start <= w.date < end) / days


def risk_level(ratio: float) -> str:
    if ratio < 0.8:
        return "low"
    if ratio <= 1.3:
        return "optimal"
    if ratio <= 1.5:
        return "moderate"
    return "high"


def recommendation(ratio: float, risk: str, recent_workout_count: int) -> str:
    if risk == "high":
        return (
            f"High injury risk detected (ratio: {ratio}). Reduce training volume by 20-30% this week. "
            "Focus on recovery with light activity, stretching, and proper nutrition. Your body needs time to adapt."
        )
    if risk == "moderate":
        return (
            f"Approaching high training load (ratio: {ratio}). Maintain current volume but avoid increasing "
            "intensity. Add an extra recovery day if feeling fatigued."
        )
    if risk == "optimal":
        return (
            f"Perfect training load balance (ratio: {ratio})! You can safely progress by 5-10% next week. "
            "Keep monitoring how you feel."
        )
    if recent_workout_count / 4 < 2:
        return (
            "Low training stimulus detected. Try adding 1-2 more workouts per week to see better progress. "
            "Start with moderate intensity."
        )
    return (
        f"Training load is low (ratio: {ratio}). You have room to increase volume or intensity by 10-15%. "
        "This is a good time to push harder."
    )


def load_trend(workouts: list[WorkoutEntry], now: datetime) -> str:
    """Last 14 days against the 14 before them; +-10% is stable."""
    if len(workouts) < 4:
        return "stable"
    split = now - timedelta(days=TREND_WINDOW_DAYS)
    recent = average_daily_load(workouts, split, now + timedelta(seconds=1))
    older = average_daily_load(workouts, split - timedelta(days=TREND_WINDOW_DAYS), split)
    if older == 0:
        return "increasing" if recent > 0 else "stable"
    change = (recent - older) / older * 100
    if change > TREND_CHANGE_PERCENT:
        return "increasing"
    if change < -TREND_CHANGE_PERCENT:
        return "decreasing"
    return "stable"


def analyze_load(workouts: list[WorkoutEntry], now: datetime, recent_workout_count: int) -> LoadAnalysis:
    end = now + timedelta(seconds=1)
    acute = average_daily_load(workouts, now - timedelta(days=ACUTE_DAYS), end)
    chronic = average_daily_load(workouts, now - timedelta(days=CHRONIC_DAYS), end)
    ratio = round_half_up(acute / chronic if chronic > 0 else 1.0, 2)
    risk = risk_level(ratio)
    return LoadAnalysis(
        acute_load=round_int(acute),
        chronic_load=round_int(chronic),
        ratio=ratio,
        risk_level=risk,
        recommendation=recommendation(ratio, risk, recent_workout_count),
        trend=load_trend(workouts, now),
    )


class TrainingLoadAnalyzer:
    def __init__(self, store: ContextStore, clock: Callable[[], datetime] = utc_now):
        self._store = store
        self._clock = clock

    async def process(self, input: Any, context: AIContext, config: ModelConfig) -> HandlerResult:
        now = self._clock()
        try:
            workouts = await self._store.get_workouts(context.user_id, since=now - timedelta(days=HISTORY_DAYS))
            analysis = analyze_load(workouts, now, len(context.recent_workouts))
            if analysis.risk_level == "high":
                await self._store.insert_insight(
                    context.user_id,
                    Insight(
                        type="warning",
                        title="High Training Load Detected",
                        content=analysis.recommendation,
                        priority=9,
                        data={
                            "acute_load": analysis.acute_load,
                            "chronic_load": analysis.chronic_load,
                            "ratio": analysis.ratio,
                        },
                        action_url="/insights",
                    ),
                )
        except Exception as e:
            logger.exception("Training load analysis failed for user_id=%s", context.user_id)
            raise AIHandlerError("Failed to analyze training load") from e
        return HandlerResult(data=analysis, confidence=ANALYSIS_CONFIDENCE, tokens_used=0)
