"""Structured output from the AI coach."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field


class ActionItem(BaseModel):
    type: Literal["workout", "nutrition", "rest", "measurement"]
    description: str
    priority: Literal["high", "medium", "low"]
    deadline: date | None = None


class DataReference(BaseModel):
    """Pointer back to a stored workout or goal that the reply talks about."""

    type: Literal["workout", "food", "metric", "goal"]
    id: int
    date: datetime | date | None = None
    summary: str


class CoachResponse(BaseModel):
    message: str
    suggestions: list[str] = Field(default_factory=list, max_length=3)
    action_items: list[ActionItem] = Field(default_factory=list, max_length=3)
    references: list[DataReference] = Field(default_factory=list, max_length=3)
    confidence: float = Field(..., ge=0, le=1)
