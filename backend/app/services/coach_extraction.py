"""
Best-effort extraction of structure from free-text coach replies.

Kept apart from SmartCoach so the heuristics can be replaced by structured
(JSON) model output without touching the handler or orchestrator contracts.
"""
import re
from datetime import datetime

from app.schemas.coach import ActionItem, DataReference
from app.schemas.context import AIContext

MAX_ITEMS = 3

ACTION_PATTERNS = (
    re.compile(r"(?:you should|try to|consider|i recommend|next steps?:?)\s+([^.!?]+)", re.IGNORECASE),
    re.compile(r"\d+\.\s+([^.!?\n]+)"),
)
SUGGESTION_PATTERNS = (
    re.compile(r"(?:you could|might want to|consider)\s+([^.!?]+)", re.IGNORECASE),
    re.compile(r"(?:try|experiment with)\s+([^.!?]+)", re.IGNORECASE),
)


def _action_type(text: str) -> str:
    lowered = text.lower()
    if "workout" in lowered or "exercise" in lowered:
        return "workout"
    if "eat" in lowered or "nutrition" in lowered or "protein" in lowered:
        return "nutrition"
    if "rest" in lowered or "recover" in lowered:
        return "rest"
    return "measurement"


def _action_priority(text: str) -> str:
    lowered = text.lower()
    if "important" in lowered or "critical" in lowered:
        return "high"
    if "consider" in lowered or "might" in lowered:
        return "low"
    return "medium"


def extract_action_items(text: str) -> list[ActionItem]:
    items: list[ActionItem] = []
    for pattern in ACTION_PATTERNS:
        for match in pattern.finditer(text or ""):
            description = match.group(1).strip()
            if not description:
                continue
            items.append(
                ActionItem(type=_action_type(description), description=description, priority=_action_priority(description))
            )
            if len(items) == MAX_ITEMS:
                return items
    return items


def extract_suggestions(text: str) -> list[str]:
    suggestions: list[str] = []
    for pattern in SUGGESTION_PATTERNS:
        for match in pattern.finditer(text or ""):
            suggestion = match.group(1).strip()
            if suggestion:
                suggestions.append(suggestion)
    return suggestions[:MAX_ITEMS]


def extract_references(text: str, context: AIContext, now: datetime | None = None) -> list[DataReference]:
    """A pointer to the latest workout when the reply mentions it, plus one per goal named in the reply."""
    lowered = (text or "").lower()
    references: list[DataReference] = []
    if "last workout" in lowered and context.recent_workouts:
        last = context.recent_workouts[0]
        references.append(
            DataReference(type="workout", id=last.id, date=last.date, summary=f"{len(last.exercises)} exercises")
        )
    for goal in context.goals:
        name = (goal.type or "").lower()
        if name and (name in lowered or name.replace("_", " ") in lowered):
            references.append(
                DataReference(
                    type="goal",
                    id=goal.id,
                    date=goal.target_date or now,
                    summary=f"{goal.type}: {goal.target_value}",
                )
            )
    return references[:MAX_ITEMS]
