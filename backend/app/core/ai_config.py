"""Per-request-type model configuration, monthly usage limits per tier, and model prices."""

from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, Field

from app.config import settings
from app.schemas.ai import ModelConfig, Provider, RequestType, Tier


def default_model_configs() -> dict[RequestType, ModelConfig]:
    anthropic_model = settings.anthropic_model
    gemini_model = settings.gemini_model
    return {
        RequestType.PARSE_WORKOUT: ModelConfig(
            provider=Provider.GEMINI, model=gemini_model, temperature=0.2, max_tokens=1000, json_mode=True
        ),
        RequestType.PARSE_FOOD: ModelConfig(
            provider=Provider.GEMINI, model=gemini_model, temperature=0.2, max_tokens=1000, json_mode=True
        ),
        RequestType.COACH_CHAT: ModelConfig(
            provider=Provider.ANTHROPIC, model=anthropic_model, temperature=0.7, max_tokens=2000
        ),
        RequestType.VOICE_TRANSCRIPTION: ModelConfig(
            provider=Provider.GEMINI, model=gemini_model, temperature=0, max_tokens=1000
        ),
        RequestType.PHOTO_ANALYSIS: ModelConfig(
            provider=Provider.GEMINI, model=gemini_model, temperature=0.3, max_tokens=1000, json_mode=True
        ),
        # Computed from the user's logs; no completion call.
        RequestType.PATTERN_DETECTION: ModelConfig(provider=Provider.LOCAL, model="local", temperature=0, max_tokens=500),
        RequestType.LOAD_ANALYSIS: ModelConfig(provider=Provider.LOCAL, model="local", temperature=0),
        RequestType.RECOVERY_PREDICTION: ModelConfig(provider=Provider.LOCAL, model="local", temperature=0),
    }


# None = unlimited
USAGE_LIMITS: dict[RequestType, dict[Tier, int | None]] = {
    RequestType.PARSE_WORKOUT: {Tier.FREE: 10, Tier.BASIC: 50, Tier.PREMIUM: 100, Tier.ELITE: None},
    RequestType.PARSE_FOOD: {Tier.FREE: 10, Tier.BASIC: 50, Tier.PREMIUM: 100, Tier.ELITE: None},
    RequestType.COACH_CHAT: {Tier.FREE: 5, Tier.BASIC: 25, Tier.PREMIUM: 50, Tier.ELITE: None},
    RequestType.VOICE_TRANSCRIPTION: {Tier.FREE: 0, Tier.BASIC: 10, Tier.PREMIUM: 20, Tier.ELITE: None},
    RequestType.PHOTO_ANALYSIS: {Tier.FREE: 0, Tier.BASIC: 5, Tier.PREMIUM: 10, Tier.ELITE: None},
    RequestType.PATTERN_DETECTION: {Tier.FREE: 5, Tier.BASIC: 25, Tier.PREMIUM: 50, Tier.ELITE: None},
    RequestType.LOAD_ANALYSIS: {Tier.FREE: 2, Tier.BASIC: 10, Tier.PREMIUM: 20, Tier.ELITE: None},
    RequestType.RECOVERY_PREDICTION: {Tier.FREE: 2, Tier.BASIC: 10, Tier.PREMIUM: 20, Tier.ELITE: None},
}


class TokenPrice(BaseModel):
    """USD per 1000 tokens."""

    input: float = Field(..., ge=0)
    output: float = Field(..., ge=0)


COST_PER_1K_TOKENS: dict[str, TokenPrice] = {
    "claude-3-haiku-20240307": TokenPrice(input=0.00025, output=0.00125),
    "claude-3-5-haiku-latest": TokenPrice(input=0.0008, output=0.004),
    "claude-3-5-sonnet-latest": TokenPrice(input=0.003, output=0.015),
    "gemini-2.0-flash": TokenPrice(input=0.0001, output=0.0004),
    "gemini-1.5-flash": TokenPrice(input=0.000075, output=0.0003),
    "gemini-1.5-pro": TokenPrice(input=0.00125, output=0.005),
}

# Share of total tokens assumed to be prompt tokens when pricing a call.
INPUT_TOKEN_SHARE = 0.7


class AIConfig(BaseModel):
    """Bundle handed to the orchestrator; every table can be replaced for tests or per deployment."""

    model_configs: dict[RequestType, ModelConfig] = Field(default_factory=default_model_configs)
    usage_limits: dict[RequestType, dict[Tier, int | None]] = Field(
        default_factory=lambda: {k: dict(v) for k, v in USAGE_LIMITS.items()}
    )
    prices: dict[str, TokenPrice] = Field(default_factory=lambda: dict(COST_PER_1K_TOKENS))

    def limit_for(self, request_type: RequestType, tier: Tier) -> int | None:
        return self.usage_limits.get(request_type, {}).get(tier)

    def cost_cents(self, model: str, total_tokens: int) -> float:
        """Price a call from its total tokens with a fixed 70/30 input/output split; unknown model costs nothing."""
        price = self.prices.get(model)
        if price is None:
            return 0.0
        tokens = Decimal(total_tokens)
        share = Decimal(str(INPUT_TOKEN_SHARE))
        dollars = (
            tokens * share * Decimal(str(price.input)) + tokens * (1 - share) * Decimal(str(price.output))
        ) / 1000
        # Half-up on the exact value: 2.255 cents is stored as 2.26
        return float((dollars * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
