"""Request kinds, tiers, model configuration and the orchestrator's response envelope."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class RequestType(str, Enum):
    PARSE_WORKOUT = "parse_workout"
    PARSE_FOOD = "parse_food"
    COACH_CHAT = "coach_chat"
    VOICE_TRANSCRIPTION = "voice_transcription"
    PHOTO_ANALYSIS = "photo_analysis"
    PATTERN_DETECTION = "pattern_detection"
    LOAD_ANALYSIS = "load_analysis"
    RECOVERY_PREDICTION = "recovery_prediction"

    @property
    def context_type(self) -> str:
        """Second segment of the request name: parse_workout -> workout, coach_chat -> chat."""
        return self.value.split("_")[1]


class Tier(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"
    ELITE = "elite"

    @property
    def next_tier(self) -> "Tier | None":
        order = list(Tier)
        idx = order.index(self)
        return order[idx + 1] if idx + 1 < len(order) else None

    @classmethod
    def parse(cls, value: str | None, default: "Tier | None" = None) -> "Tier":
        try:
            return cls((value or "").lower())
        except ValueError:
            return default or cls.FREE


class Provider(str, Enum):
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    LOCAL = "local"  # computed in-process, no gateway call


class ModelConfig(BaseModel):
    provider: Provider
    model: str
    temperature: float = Field(0.7, ge=0, le=2)
    max_tokens: int = Field(1000, ge=1)
    json_mode: bool = False


class Attachment(BaseModel):
    """Binary media (audio, image) forwarded to the model gateway."""

    mime_type: str
    data: bytes


class PromptTurn(BaseModel):
    role: str  # user | assistant
    content: str


class Completion(BaseModel):
    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    raw: dict[str, Any] | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class HandlerResult(BaseModel):
    """What every handler returns to the orchestrator."""

    data: Any
    confidence: float = Field(..., ge=0, le=1)
    tokens_used: int = Field(0, ge=0)


class AIResponse(BaseModel):
    """Discriminated result: success carries data and accounting, failure carries an error and zero cost."""

    success: bool
    data: Any = None
    error: str | None = None
    confidence: float | None = None
    tokens_used: int = 0
    cost_cents: float = 0
    model_used: str = ""
    processing_time_ms: int = 0


class UsageRecord(BaseModel):
    user_id: int
    request_type: RequestType
    provider: Provider
    model_name: str = ""
    total_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost_cents: float = 0
    tier: Tier
    success: bool = True
    created_at: datetime | None = None


class AuditEntry(BaseModel):
    user_id: int
    context_type: str
    raw_input: str
    parsed_output: Any = None
    confidence: float | None = None
    model_used: str | None = None
    tokens_used: int = 0
    processing_time_ms: int | None = None


class RequestTypeUsage(BaseModel):
    request_type: RequestType
    used: int
    limit: int | None  # None = unlimited
    remaining: int | None


class UsageSummary(BaseModel):
    user_id: int
    tier: Tier
    period_start: datetime
    period_end: datetime
    usage: list[RequestTypeUsage]
