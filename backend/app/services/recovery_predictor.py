"""Readiness score and recovery-time estimate from recent training, nutrition and weight."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from app.core.billing import utc_now
from app.core.errors import AIHandlerError
from app.schemas.ai import HandlerResult, ModelConfig
from app.schemas.analysis import RecoveryFactor, RecoveryPrediction
from app.schemas.context import AIContext, WorkoutEntry
from app.schemas.patterns import Insight
from app.services.context_store import ContextStore
from app.services.stats import mean, round_half_up, round_int

logger = logging.getLogger(__name__)

TARGET_CALORIES = 2000
TARGET_PROTEIN_G = 150
BASE_RECOVERY_HOURS = 24
MIN_RECOVERY_HOURS = 12
MAX_RECOVERY_HOURS = 72
DEFAULT_READINESS = 75
NEGATIVE_WEIGHT = 1.5
HIGH_VOLUME_KG = 10000
MAX_RECOMMENDATIONS = 4
LOW_READINESS = 50

PREDICTION_CONFIDENCE = 0.85


def has_new_exercises(workouts: list[WorkoutEntry]) -> bool:
    """Latest session includes an exercise absent from the four sessions before it."""
    if len(workouts) < 2:
        return False
    previous = {ex.name for w in workouts[1:5] for ex in w.exercises}
    return any(ex.name not in previous for ex in workouts[0].exercises)


def consecutive_training_days(workouts: list[WorkoutEntry]) -> int:
    if not workouts:
        return 0
    ordered = sorted(workouts, key=lambda w: w.date, reverse=True)
    count = 1
    last = ordered[0].date
    for workout in ordered[1:]:
        if (last - workout.date).days == 1:
            count += 1
            last = workout.date
        else:
            break
    return count


def gather_factors(context: AIContext, now: datetime) -> list[RecoveryFactor]:
    factors: list[RecoveryFactor] = []
    workouts = context.recent_workouts
    last = workouts[0] if workouts else None

    if last is not None:
        hours_since = (now - last.date).total_seconds() / 3600
        intensity = last.intensity_score or 5
        factors.append(
            RecoveryFactor(
                name="Time Since Last Workout",
                impact="negative" if hours_since < 24 else "positive" if hours_since > 48 else "neutral",
                score=min(100, round_half_up(hours_since * 2, 1)),
                description=f"{round_int(hours_since)} hours since last session",
            )
        )
        factors.append(
            RecoveryFactor(
                name="Last Workout Intensity",
                impact="negative" if intensity > 7 else "positive" if intensity < 4 else "neutral",
                score=100 - intensity * 10,
                description=f"Intensity level {intensity}/10",
            )
        )

    nutrition = context.recent_nutrition[:3]
    if nutrition:
        calories = mean([n.total_calories or 0 for n in nutrition])
        protein = mean([n.total_protein or 0 for n in nutrition])
        calorie_adequacy = min(100, calories / TARGET_CALORIES * 100)
        protein_adequacy = min(100, protein / TARGET_PROTEIN_G * 100)
        factors.append(
            RecoveryFactor(
                name="Calorie Intake",
                impact="negative" if calorie_adequacy < 80 else "positive",
                score=round_half_up(calorie_adequacy, 1),
                description=f"{round_int(calories)} cal/day ({round_int(calorie_adequacy)}% of target)",
            )
        )
        factors.append(
            RecoveryFactor(
                name="Protein Intake",
                impact="negative" if protein_adequacy < 70 else "positive",
                score=round_half_up(protein_adequacy, 1),
                description=f"{round_int(protein)}g/day ({round_int(protein_adequacy)}% of target)",
            )
        )

    week_ago = now - timedelta(days=7)
    last_week = sum(1 for w in workouts if w.date >= week_ago)
    factors.append(
        RecoveryFactor(
            name="Weekly Training Volume",
            impact="negative" if last_week > 5 else "neutral" if last_week < 2 else "positive",
            score=80 if last_week <= 4 else max(0, 100 - last_week * 10),
            description=f"{last_week} workouts in last 7 days",
        )
    )

    high_volume = bool(last and last.total_volume and last.total_volume > HIGH_VOLUME_KG)
    if high_volume or has_new_exercises(workouts):
        factors.append(
            RecoveryFactor(
                name="Estimated Muscle Damage",
                impact="negative",
                score=40 if high_volume else 60,
                description="High training volume detected" if high_volume else "New exercises detected",
            )
        )

    consecutive = consecutive_training_days(workouts)
    if consecutive > 2:
        factors.append(
            RecoveryFactor(
                name="Consecutive Training Days",
                impact="negative",
                score=max(20, 100 - consecutive * 20),
                description=f"{consecutive} days without rest",
            )
        )

    metrics = context.body_metrics
    if len(metrics) >= 2:
        change = (metrics[0].weight_kg or 0) - (metrics[1].weight_kg or 0)
        if abs(change) > 1:
            sign = "+" if change > 0 else ""
            factors.append(
                RecoveryFactor(
                    name="Weight Fluctuation",
                    impact="negative",
                    score=60,
                    description=f"{sign}{change:.1f}kg change detected",
                )
            )
    return factors


def recovery_hours(factors: list[RecoveryFactor]) -> int:
    hours = float(BASE_RECOVERY_HOURS)
    for factor in factors:
        if factor.impact == "negative":
            hours += (100 - factor.score) / 100 * 12
        elif factor.impact == "positive":
            hours -= factor.score / 100 * 6
    return max(MIN_RECOVERY_HOURS, min(MAX_RECOVERY_HOURS, round_int(hours)))


def readiness_score(factors: list[RecoveryFactor]) -> int:
    if not factors:
        return DEFAULT_READINESS
    total = weight_sum = 0.0
    for factor in factors:
        weight = NEGATIVE_WEIGHT if factor.impact == "negative" else 1.0
        total += factor.score * weight
        weight_sum += weight
    average = total / weight_sum
    # Stretch the extremes: low scores drop further, high scores flatten.
    if average < 50:
        return round_int(average * 0.8)
    if average > 80:
        return round_int(80 + (average - 80) * 0.5)
    return round_int(average)


def _factor(factors: list[RecoveryFactor], name: str) -> RecoveryFactor | None:
    return next((f for f in factors if f.name == name), None)


def recommendations(factors: list[RecoveryFactor], readiness: int) -> list[str]:
    out: list[str] = []
    if readiness < 30:
        out.append("Take a complete rest day. Your body needs recovery.")
    elif readiness < 50:
        out.append("Consider light activity only (walking, stretching, yoga).")
    elif readiness < 70:
        out.append("Moderate training OK, but avoid high intensity.")
    else:
        out.append("You're well recovered! Ready for normal or high-intensity training.")

    protein = _factor(factors, "Protein Intake")
    if protein and protein.score < 70:
        out.append("Increase protein intake to support muscle recovery (aim for 1.6-2.2g/kg body weight).")
    calories = _factor(factors, "Calorie Intake")
    if calories and calories.score < 80:
        out.append("Ensure adequate calorie intake to fuel recovery and adaptation.")
    consecutive = _factor(factors, "Consecutive Training Days")
    if consecutive and consecutive.score < 50:
        out.append("Schedule a rest day to prevent overtraining and allow supercompensation.")
    volume = _factor(factors, "Weekly Training Volume")
    if volume and volume.score < 60:
        out.append("Consider a deload week with 40-60% reduced volume.")
    elapsed = _factor(factors, "Time Since Last Workout")
    if elapsed and elapsed.score < 50:
        out.append("Focus on recovery: foam rolling, stretching, hydration, and quality sleep.")
    return out[:MAX_RECOMMENDATIONS]


def predict_recovery(context: AIContext, now: datetime) -> RecoveryPrediction:
    factors = gather_factors(context, now)
    readiness = readiness_score(factors)
    return RecoveryPrediction(
        recovery_hours=recovery_hours(factors),
        readiness_score=readiness,
        factors=factors,
        recommendations=recommendations(factors, readiness),
    )


class RecoveryPredictor:
    def __init__(self, store: ContextStore, clock: Callable[[], datetime] = utc_now):
        self._store = store
        self._clock = clock

    async def process(self, input: Any, context: AIContext, config: ModelConfig) -> HandlerResult:
        try:
            prediction = predict_recovery(context, self._clock())
            if prediction.readiness_score < LOW_READINESS:
                await self._store.insert_insight(
                    context.user_id,
                    Insight(
                        type="warning",
                        title="Low Recovery Status",
                        content=f"Your readiness score is {prediction.readiness_score}/100. {prediction.recommendations[0]}",
                        priority=10,
                        data={
                            "readiness_score": prediction.readiness_score,
                            "recovery_hours": prediction.recovery_hours,
                            "factors": [f.model_dump() for f in prediction.factors],
                        },
                        action_url="/today",
                    ),
                )
        except Exception as e:
            logger.exception("Recovery prediction failed for user_id=%s", context.user_id)
            raise AIHandlerError("Failed to predict recovery") from e
        return HandlerResult(data=prediction, confidence=PREDICTION_CONFIDENCE, tokens_used=0)
