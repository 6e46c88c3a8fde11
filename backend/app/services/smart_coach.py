"""AI coach: summarises the user's recent data into a system prompt and replays prior turns."""

import logging
import uuid
from collections import Counter
from collections.abc import Callable
from datetime import datetime

from app.core.billing import utc_now
from app.core.errors import AIHandlerError
from app.schemas.ai import HandlerResult, ModelConfig, PromptTurn
from app.schemas.coach import CoachResponse
from app.schemas.context import (
    AIContext,
    BodyMetricEntry,
    ConversationEntry,
    GoalEntry,
    NutritionEntry,
    WorkoutEntry,
)
from app.services.coach_extraction import extract_action_items, extract_references, extract_suggestions
from app.services.context_store import ContextStore
from app.services.model_gateway import ModelGateway
from app.services.stats import mean, round_half_up, round_int

logger = logging.getLogger(__name__)

HISTORY_TURNS = 10
LOOKBACK_WEEKS = 4

SYSTEM_PROMPT_TEMPLATE = """You are an expert personal fitness coach with deep knowledge of exercise science, nutrition, and behavior change. You provide evidence-based, personalized coaching.

USER PROFILE:
- Age: {age}
- Height: {height}
- Training Style: {training_style}
- Activity Level: {activity_level}
- Subscription: {tier} tier

RECENT ACTIVITY (Last 30 days):
{workouts}

NUTRITION (Last 7 days):
{nutrition}

BODY METRICS:
{metrics}

ACTIVE GOALS:
{goals}

COACHING PRINCIPLES:
1. Always reference specific user data when giving advice
2. Be encouraging but realistic
3. Provide actionable suggestions (not generic advice)
4. Use scientific principles (progressive overload, ACWR, etc.)
5. Consider user's schedule and preferences
6. Acknowledge progress and celebrate wins
7. Address potential issues proactively
8. Keep responses concise and focused

RESPONSE STRUCTURE:
1. Acknowledge the user's question/concern
2. Reference relevant data from their history
3. Provide specific, actionable advice
4. Suggest 1-3 concrete next steps
5. End with encouragement

IMPORTANT:
- Never provide medical advice
- Don't recommend extreme diets or training
- Focus on sustainable, healthy habits
- If user shows signs of overtraining or disordered eating, gently suggest rest or professional help"""


def _days_ago(moment: datetime, now: datetime) -> int:
    return (now - moment).days


def _most_common(values: list[str]) -> str | None:
    if not values:
        return None
    return Counter(values).most_common(1)[0][0]


def summarize_workouts(workouts: list[WorkoutEntry], now: datetime) -> str:
    if not workouts:
        return "No recent workouts recorded"
    per_week = round_half_up(len(workouts) / LOOKBACK_WEEKS, 1)
    counts: Counter[str] = Counter()
    for workout in workouts:
        counts.update(ex.name for ex in workout.exercises)
    top = [name for name, _ in counts.most_common(5)]
    focus = _most_common([w.workout_type or "general" for w in workouts]) or "varied"
    return (
        f"- Total Workouts: {len(workouts)} ({per_week}/week average)\n"
        f"- Last Workout: {_days_ago(workouts[0].date, now)} days ago\n"
        f"- Top Exercises: {', '.join(top)}\n"
        f"- Recent Focus: {focus}"
    )


def summarize_nutrition(nutrition: list[NutritionEntry]) -> str:
    if not nutrition:
        return "No recent nutrition data"
    calories = round_int(mean([n.total_calories or 0 for n in nutrition]))
    protein = round_int(mean([n.total_protein or 0 for n in nutrition]))
    consistency = round_int(len(nutrition) / 7 * 100)
    meal = _most_common([n.meal_type or "unknown" for n in nutrition])
    return (
        f"- Average Daily Calories: {calories}\n"
        f"- Average Daily Protein: {protein}g\n"
        f"- Logging Consistency: {consistency}%\n"
        f"- Meal Timing: Most logged: {meal}"
    )


def summarize_metrics(metrics: list[BodyMetricEntry], now: datetime) -> str:
    if not metrics:
        return "No body metrics recorded"
    latest, oldest = metrics[0], metrics[-1]
    change = 0.0
    if latest.weight_kg and oldest.weight_kg:
        change = round_half_up(latest.weight_kg - oldest.weight_kg, 1)
    sign = "+" if change > 0 else ""
    current = latest.weight_kg if latest.weight_kg else "unknown"
    return (
        f"- Current Weight: {current}kg\n"
        f"- Weight Change: {sign}{change}kg\n"
        f"- Last Updated: {_days_ago(latest.date, now)} days ago"
    )


def summarize_goals(goals: list[GoalEntry]) -> str:
    if not goals:
        return "No active goals set"
    lines = []
    for goal in goals:
        by = goal.target_date.isoformat() if goal.target_date else "no date"
        lines.append(f"- {goal.type}: {goal.target_value} by {by}")
    return "\n".join(lines)


def build_system_prompt(context: AIContext, now: datetime) -> str:
    profile = context.profile
    return SYSTEM_PROMPT_TEMPLATE.format(
        age=(profile.age if profile and profile.age else "unknown"),
        height=(f"{profile.height_cm}cm" if profile and profile.height_cm else "unknown"),
        training_style=(profile.training_style if profile and profile.training_style else "general fitness"),
        activity_level=(profile.activity_level if profile and profile.activity_level else "moderate"),
        tier=(profile.subscription_tier if profile else "free"),
        workouts=summarize_workouts(context.recent_workouts, now),
        nutrition=summarize_nutrition(context.recent_nutrition),
        metrics=summarize_metrics(context.body_metrics, now),
        goals=summarize_goals(context.goals),
    )


def coach_confidence(context: AIContext, has_references: bool, has_actions: bool) -> float:
    """Heuristic: richer context and a more specific reply score higher. Not a calibrated probability."""
    confidence = 0.5
    if len(context.recent_workouts) > 10:
        confidence += 0.2
    if len(context.recent_nutrition) > 5:
        confidence += 0.1
    if len(context.body_metrics) > 3:
        confidence += 0.1
    if context.goals:
        confidence += 0.1
    if has_references:
        confidence += 0.1
    if has_actions:
        confidence += 0.1
    return min(1.0, round(confidence, 2))


class SmartCoach:
    def __init__(
        self,
        store: ContextStore,
        gateway: ModelGateway,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._gateway = gateway
        self._clock = clock

    async def process(self, message: str, context: AIContext, config: ModelConfig) -> HandlerResult:
        now = self._clock()
        try:
            system_prompt = build_system_prompt(context, now)
            history = await self._history(context.user_id)
            completion = await self._gateway.complete(system_prompt, history, message, config)
            text = completion.text
            action_items = extract_action_items(text)
            references = extract_references(text, context, now)
            response = CoachResponse(
                message=text,
                suggestions=extract_suggestions(text),
                action_items=action_items,
                references=references,
                confidence=coach_confidence(context, has_references=bool(references), has_actions=bool(action_items)),
            )
            await self._store_conversation(context, message, text, config.model)
        except Exception as e:
            logger.exception("Smart coach failed for user_id=%s", context.user_id)
            raise AIHandlerError("Failed to generate coaching response") from e
        return HandlerResult(data=response, confidence=response.confidence, tokens_used=completion.total_tokens)

    async def _history(self, user_id: int) -> list[PromptTurn]:
        turns = await self._store.get_conversation_turns(user_id, HISTORY_TURNS)
        return [
            PromptTurn(role="assistant" if t.role == "assistant" else "user", content=t.content)
            for t in reversed(turns)
        ]

    async def _store_conversation(self, context: AIContext, message: str, reply: str, model: str) -> None:
        conversation_id = str(uuid.uuid4())
        snapshot = {
            "workout_count": len(context.recent_workouts),
            "avg_calories": context.avg_daily_calories,
            "current_weight": context.body_metrics[0].weight_kg if context.body_metrics else None,
        }
        await self._store.append_conversation_turn(
            ConversationEntry(
                user_id=context.user_id,
                conversation_id=conversation_id,
                role="user",
                content=message,
                context_snapshot=snapshot,
            )
        )
        await self._store.append_conversation_turn(
            ConversationEntry(
                user_id=context.user_id,
                conversation_id=conversation_id,
                role="assistant",
                content=reply,
                model_used=model,
            )
        )
