"""
Behavioural pattern detection over a user's recent logs.

detect() is pure: it turns workouts, food logs and body metrics into frequency
counts, trend labels and summary statistics. process() also persists the
strongest patterns as learned-pattern counters and stores advisory insights.
"""
import logging
from collections import Counter
from typing import Any

from app.core.errors import AIHandlerError
from app.schemas.ai import HandlerResult, ModelConfig
from app.schemas.context import AIContext, BodyMetricEntry, NutritionEntry, WorkoutEntry
from app.schemas.patterns import (
    CalorieStats,
    DetectedPatterns,
    GapStats,
    Insight,
    MacroDistribution,
    NamedCount,
    NutritionPatterns,
    PatternDetectionResult,
    ProgressPatterns,
    SchedulePatterns,
    WorkoutPatterns,
)
from app.services.context_store import ContextStore
from app.services.stats import mean, population_std_dev, round_half_up, round_int, trend_label

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

TARGET_WORKOUTS_PER_WEEK = 3
# Workouts are read from a 30-day window but the score always assumes four weeks.
CONSISTENCY_LOOKBACK_WEEKS = 4
MIN_VOLUME_POINTS = 3
TOP_EXERCISES = 10
TOP_FOODS = 20
PERSIST_EXERCISES = 5
PERSIST_FOODS = 10

CONSISTENCY_THRESHOLD = 70
CALORIE_STD_DEV_THRESHOLD = 500
RAPID_LOSS_KG_PER_WEEK = -1

DETECTION_CONFIDENCE = 0.8


def _top(counter: dict[str, int], n: int) -> list[NamedCount]:
    ranked = sorted(counter.items(), key=lambda kv: kv[1], reverse=True)
    return [NamedCount(name=name, count=count) for name, count in ranked[:n]]


def detect_workout_patterns(workouts: list[WorkoutEntry]) -> WorkoutPatterns:
    frequency: dict[str, int] = {}
    pairs: dict[str, int] = {}
    volumes: dict[str, list[float]] = {}

    for workout in workouts:
        names = [ex.name for ex in workout.exercises]
        for name in names:
            frequency[name] = frequency.get(name, 0) + 1
        for i in range(len(names)):
            for j in range(i + 1, len(names)):
                key = " + ".join(sorted((names[i], names[j])))
                pairs[key] = pairs.get(key, 0) + 1

    for workout in sorted(workouts, key=lambda w: w.date):
        for ex in workout.exercises:
            if ex.volume is not None:
                volumes.setdefault(ex.name, []).append(ex.volume)

    volume_trends = {
        name: trend_label(series) for name, series in volumes.items() if len(series) >= MIN_VOLUME_POINTS
    }
    return WorkoutPatterns(
        frequency=frequency,
        exercise_pairs=pairs,
        volume_trends=volume_trends,
        top_exercises=_top(frequency, TOP_EXERCISES),
    )


def detect_nutrition_patterns(nutrition: list[NutritionEntry]) -> NutritionPatterns:
    if not nutrition:
        return NutritionPatterns()

    meal_timing: dict[str, int] = {}
    foods: dict[str, int] = {}
    for log in nutrition:
        meal = log.meal_type or "unknown"
        meal_timing[meal] = meal_timing.get(meal, 0) + 1
        for food in log.foods:
            foods[food.name] = foods.get(food.name, 0) + 1

    calories = [log.total_calories or 0 for log in nutrition]
    calorie_stats = CalorieStats(
        average=round_int(mean(calories)),
        min=min(calories),
        max=max(calories),
        std_dev=round_int(population_std_dev(calories)),
    )

    protein = mean([log.total_protein or 0 for log in nutrition])
    carbs = mean([log.total_carbs or 0 for log in nutrition])
    fat = mean([log.total_fat or 0 for log in nutrition])
    total_kcal = protein * 4 + carbs * 4 + fat * 9
    if total_kcal > 0:
        macros = MacroDistribution(
            protein_percent=round_int(protein * 4 / total_kcal * 100),
            carbs_percent=round_int(carbs * 4 / total_kcal * 100),
            fat_percent=round_int(fat * 9 / total_kcal * 100),
        )
    else:
        macros = MacroDistribution()

    return NutritionPatterns(
        meal_timing=meal_timing,
        common_foods=_top(foods, TOP_FOODS),
        calorie_patterns=calorie_stats,
        macro_distribution=macros,
    )


def detect_schedule_patterns(workouts: list[WorkoutEntry]) -> SchedulePatterns:
    days: dict[str, int] = {}
    gaps: list[int] = []
    for index, workout in enumerate(workouts):
        day = WEEKDAY_NAMES[workout.date.weekday()]
        days[day] = days.get(day, 0) + 1
        if index > 0:
            gaps.append(abs(workout.date - workouts[index - 1].date).days)

    gap_stats = GapStats()
    if gaps:
        gap_stats = GapStats(average=round_int(mean(gaps)), min=min(gaps), max=max(gaps))

    per_week = len(workouts) / CONSISTENCY_LOOKBACK_WEEKS
    consistency = min(100, round_int(per_week / TARGET_WORKOUTS_PER_WEEK * 100))
    return SchedulePatterns(days_of_week=days, workout_gaps=gap_stats, consistency_score=consistency)


def detect_progress_patterns(body_metrics: list[BodyMetricEntry]) -> ProgressPatterns:
    weighed = sorted((m for m in body_metrics if m.weight_kg), key=lambda m: m.date)
    if len(body_metrics) < 2 or len(weighed) < 2:
        return ProgressPatterns(trend="insufficient_data")

    earliest, latest = weighed[0], weighed[-1]
    days_between = (latest.date - earliest.date).days
    change_per_week = 0.0
    if days_between:
        change_per_week = round_half_up((latest.weight_kg - earliest.weight_kg) / days_between * 7, 1)

    return ProgressPatterns(
        weight_trend=trend_label([m.weight_kg for m in weighed]),
        change_per_week=change_per_week,
        current_weight=latest.weight_kg,
        starting_weight=earliest.weight_kg,
        total_change=round_half_up(latest.weight_kg - earliest.weight_kg, 1),
    )


def detect(
    workouts: list[WorkoutEntry],
    nutrition: list[NutritionEntry],
    body_metrics: list[BodyMetricEntry],
) -> DetectedPatterns:
    return DetectedPatterns(
        workout=detect_workout_patterns(workouts),
        nutrition=detect_nutrition_patterns(nutrition),
        schedule=detect_schedule_patterns(workouts),
        progress=detect_progress_patterns(body_metrics),
    )


def build_insights(patterns: DetectedPatterns) -> list[Insight]:
    insights: list[Insight] = []
    consistency = patterns.schedule.consistency_score
    if consistency < CONSISTENCY_THRESHOLD:
        insights.append(
            Insight(
                type="recommendation",
                title="Improve Workout Consistency",
                content=(
                    f"Your workout consistency is at {consistency}%. "
                    "Try to maintain 3-4 workouts per week for optimal progress."
                ),
                priority=7,
                data={"consistency_score": consistency},
            )
        )
    if patterns.nutrition.calorie_patterns.std_dev > CALORIE_STD_DEV_THRESHOLD:
        insights.append(
            Insight(
                type="pattern_detected",
                title="High Calorie Variability",
                content="Your daily calories vary significantly. Consider more consistent intake for better results.",
                priority=6,
                data={"std_dev": patterns.nutrition.calorie_patterns.std_dev},
            )
        )
    progress = patterns.progress
    if (
        progress.weight_trend == "decreasing"
        and progress.change_per_week is not None
        and progress.change_per_week < RAPID_LOSS_KG_PER_WEEK
    ):
        insights.append(
            Insight(
                type="warning",
                title="Rapid Weight Loss Detected",
                content=(
                    f"You're losing {abs(progress.change_per_week)}kg per week. "
                    "Consider slowing down to 0.5-1kg/week for sustainability."
                ),
                priority=8,
                data={"change_per_week": progress.change_per_week},
            )
        )
    return insights


class PatternDetector:
    def __init__(self, store: ContextStore):
        self._store = store

    async def process(self, input: Any, context: AIContext, config: ModelConfig) -> HandlerResult:
        try:
            patterns = detect(context.recent_workouts, context.recent_nutrition, context.body_metrics)
            await self.persist(context.user_id, patterns)
            insights = await self.generate_insights(context.user_id, patterns)
        except Exception as e:
            logger.exception("Pattern detection failed for user_id=%s", context.user_id)
            raise AIHandlerError("Failed to detect patterns") from e
        return HandlerResult(
            data=PatternDetectionResult(patterns=patterns, insights=insights),
            confidence=DETECTION_CONFIDENCE,
            tokens_used=0,
        )

    async def persist(self, user_id: int, patterns: DetectedPatterns) -> None:
        for exercise in patterns.workout.top_exercises[:PERSIST_EXERCISES]:
            await self._store.increment_pattern(
                user_id, "workout_style", exercise.name, {"frequency": exercise.count}
            )
        for food in patterns.nutrition.common_foods[:PERSIST_FOODS]:
            await self._store.increment_pattern(
                user_id, "food_preference", food.name.lower(), {"frequency": food.count}
            )
        days = patterns.schedule.days_of_week
        if days:
            day, count = Counter(days).most_common(1)[0]
            await self._store.increment_pattern(user_id, "schedule", "preferred_day", {"day": day, "count": count})

    async def generate_insights(self, user_id: int, patterns: DetectedPatterns) -> list[Insight]:
        """Rule-based insights; every call stores its own rows."""
        insights = build_insights(patterns)
        for insight in insights:
            await self._store.insert_insight(user_id, insight)
        return insights
