"""
Single entry point for every AI request: quota check against the caller's tier,
context load (cached snapshot or fresh aggregation), dispatch to the handler for
the request type, then cost accounting, audit and learned-pattern updates.

process_request never raises: every path returns an AIResponse.
"""
import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from app.config import settings
from app.core.ai_config import INPUT_TOKEN_SHARE, AIConfig
from app.core.billing import BillingPeriod, utc_now
from app.core.errors import AIHandlerError
from app.schemas.ai import (
    AIResponse,
    Attachment,
    AuditEntry,
    HandlerResult,
    RequestType,
    RequestTypeUsage,
    Tier,
    UsageRecord,
    UsageSummary,
)
from app.schemas.media import MediaInput
from app.schemas.nutrition import ParsedFood
from app.schemas.workout import ParsedWorkout
from app.services.context_loader import ContextLoader
from app.services.context_store import ContextStore
from app.services.handlers import AIHandler, build_handlers, missing_handlers
from app.services.model_gateway import ModelGateway

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Processing failed"


def quota_message(count: int, limit: int, tier: Tier) -> str:
    base = f"Monthly limit reached ({count}/{limit})."
    upgrade = tier.next_tier
    if upgrade is None:
        return f"{base} Your limit resets at the start of next month."
    return f"{base} Upgrade to {upgrade.value.capitalize()} for more."


def raw_input_text(value: Any) -> str:
    """Audit-friendly rendering of a request input; binary media is summarised, not stored."""
    if isinstance(value, str):
        return value
    if isinstance(value, Attachment):
        return f"<{value.mime_type} {len(value.data)} bytes>"
    if isinstance(value, MediaInput):
        return f"<{value.mime_type} base64 {len(value.data_base64)} chars>"
    if isinstance(value, dict) and ("data_base64" in value or "data" in value):
        return f"<{value.get('mime_type', 'media')} upload>"
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    return json.dumps(value, default=str)


def _jsonable(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    return data


class AIOrchestrator:
    def __init__(
        self,
        store: ContextStore,
        gateway: ModelGateway,
        config: AIConfig | None = None,
        handlers: dict[RequestType, AIHandler] | None = None,
        clock: Callable[[], datetime] = utc_now,
        context_loader: ContextLoader | None = None,
    ):
        self._store = store
        self._config = config or AIConfig()
        self._clock = clock
        self._handlers = handlers if handlers is not None else build_handlers(store, gateway, clock)
        missing = missing_handlers(self._handlers)
        if missing:
            raise ValueError(f"No handler registered for: {', '.join(t.value for t in missing)}")
        unconfigured = [t for t in RequestType if t not in self._config.model_configs]
        if unconfigured:
            raise ValueError(f"No model config for: {', '.join(t.value for t in unconfigured)}")
        self._context_loader = context_loader or ContextLoader(store, clock)

    async def process_request(self, request_type: RequestType | str, input: Any, user_id: int) -> AIResponse:
        started = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - started) * 1000)

        try:
            request_type = RequestType(request_type)
        except ValueError:
            return AIResponse(success=False, error=f"Unknown request type: {request_type}", processing_time_ms=elapsed_ms())
        model_config = self._config.model_configs[request_type]

        try:
            tier = await self.get_tier(user_id)
            blocked = await self._check_quota(user_id, request_type, tier)
        except Exception:
            logger.exception("Quota check failed for %s user_id=%s", request_type.value, user_id)
            return AIResponse(
                success=False, error=GENERIC_ERROR, model_used=model_config.model, processing_time_ms=elapsed_ms()
            )
        if blocked:
            logger.info("Quota blocked %s for user_id=%s: %s", request_type.value, user_id, blocked)
            return AIResponse(success=False, error=blocked, model_used=model_config.model, processing_time_ms=elapsed_ms())

        try:
            context = await self._context_loader.load(user_id)
            result = await self._handlers[request_type].process(input, context, model_config)
        except Exception as e:
            if isinstance(e, AIHandlerError):
                error = e.message
                logger.warning("AI request %s failed for user_id=%s: %s", request_type.value, user_id, error)
            else:
                error = GENERIC_ERROR
                logger.exception("AI request %s failed for user_id=%s", request_type.value, user_id)
            await self._best_effort(
                "failed usage record",
                self._store.insert_usage(
                    UsageRecord(
                        user_id=user_id,
                        request_type=request_type,
                        provider=model_config.provider,
                        model_name=model_config.model,
                        tier=tier,
                        success=False,
                        created_at=self._clock(),
                    )
                ),
            )
            return AIResponse(success=False, error=error, model_used=model_config.model, processing_time_ms=elapsed_ms())

        cost_cents = self._config.cost_cents(model_config.model, result.tokens_used)
        response = AIResponse(
            success=True,
            data=result.data,
            confidence=result.confidence,
            tokens_used=result.tokens_used,
            cost_cents=cost_cents,
            model_used=model_config.model,
            processing_time_ms=elapsed_ms(),
        )
        await self._post_process(user_id, request_type, input, result, response, tier)
        return response.model_copy(update={"processing_time_ms": elapsed_ms()})

    async def get_tier(self, user_id: int) -> Tier:
        profile = await self._store.get_profile(user_id)
        default = Tier.parse(settings.default_tier)
        return Tier.parse(profile.subscription_tier if profile else None, default=default)

    async def _check_quota(self, user_id: int, request_type: RequestType, tier: Tier) -> str | None:
        """None when the call may proceed, else the user-facing refusal."""
        limit = self._config.limit_for(request_type, tier)
        if limit is None:
            return None
        period = BillingPeriod.containing(self._clock())
        count = await self._store.count_usage(user_id, request_type, period.start)
        if count >= limit:
            return quota_message(count, limit, tier)
        return None

    async def _post_process(
        self,
        user_id: int,
        request_type: RequestType,
        input: Any,
        result: HandlerResult,
        response: AIResponse,
        tier: Tier,
    ) -> None:
        model_config = self._config.model_configs[request_type]
        input_tokens = round(result.tokens_used * INPUT_TOKEN_SHARE)
        audit = AuditEntry(
            user_id=user_id,
            context_type=request_type.context_type,
            raw_input=raw_input_text(input),
            parsed_output=_jsonable(result.data),
            confidence=result.confidence,
            model_used=response.model_used,
            tokens_used=result.tokens_used,
            processing_time_ms=response.processing_time_ms,
        )
        usage = UsageRecord(
            user_id=user_id,
            request_type=request_type,
            provider=model_config.provider,
            model_name=model_config.model,
            total_tokens=result.tokens_used,
            input_tokens=input_tokens,
            output_tokens=result.tokens_used - input_tokens,
            cost_cents=response.cost_cents,
            tier=tier,
            success=True,
            created_at=self._clock(),
        )
        await asyncio.gather(
            self._best_effort("audit record", self._store.insert_audit(audit)),
            self._best_effort("usage record", self._store.insert_usage(usage)),
            self._best_effort("pattern update", self.learn_patterns(user_id, request_type, input, result.data)),
        )

    async def learn_patterns(self, user_id: int, request_type: RequestType, input: Any, data: Any) -> None:
        """Exercise abbreviations seen verbatim in the raw text (stored lowercased), and every parsed food name."""
        if request_type == RequestType.PARSE_WORKOUT and isinstance(data, ParsedWorkout):
            text = str(input)
            for exercise in data.exercises:
                prefix = exercise.name[:3]
                if prefix and prefix in text:
                    await self._store.increment_pattern(
                        user_id, "exercise_alias", prefix.lower(), {"full_name": exercise.name}
                    )
        elif request_type == RequestType.PARSE_FOOD and isinstance(data, ParsedFood):
            for food in data.foods:
                await self._store.increment_pattern(
                    user_id,
                    "food_preference",
                    food.name.lower(),
                    {"typical_quantity": food.quantity, "typical_unit": food.unit},
                )

    async def _best_effort(self, step: str, awaitable: Awaitable[Any]) -> None:
        try:
            await awaitable
        except Exception as e:
            logger.warning("AI post-processing step %r failed: %s", step, e)

    async def get_usage_summary(self, user_id: int) -> UsageSummary:
        tier = await self.get_tier(user_id)
        period = BillingPeriod.containing(self._clock())
        counts = await self._store.count_usage_by_type(user_id, period.start)
        usage = []
        for request_type in RequestType:
            used = counts.get(request_type, 0)
            limit = self._config.limit_for(request_type, tier)
            usage.append(
                RequestTypeUsage(
                    request_type=request_type,
                    used=used,
                    limit=limit,
                    remaining=None if limit is None else max(0, limit - used),
                )
            )
        return UsageSummary(
            user_id=user_id, tier=tier, period_start=period.start, period_end=period.end, usage=usage
        )

    async def should_prompt_upgrade(self, user_id: int) -> bool:
        """True when a higher tier exists and some non-zero limit is used up. Zero limits (locked features) do not count."""
        summary = await self.get_usage_summary(user_id)
        if summary.tier.next_tier is None:
            return False
        return any(u.limit and u.used >= u.limit for u in summary.usage)
