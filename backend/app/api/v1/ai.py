"""AI endpoints: one route per request type, plus usage and upgrade-prompt lookups."""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from app.api.deps import CurrentUserId, Orchestrator
from app.schemas.ai import AIResponse, RequestType, UsageSummary
from app.schemas.media import MediaInput

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])

MEDIA_REQUEST_TYPES = {RequestType.VOICE_TRANSCRIPTION, RequestType.PHOTO_ANALYSIS}
# Computed from stored history; the body is ignored
ANALYSIS_REQUEST_TYPES = {RequestType.PATTERN_DETECTION, RequestType.LOAD_ANALYSIS, RequestType.RECOVERY_PREDICTION}


class AIRequestBody(BaseModel):
    input: Any = None


class UpgradePrompt(BaseModel):
    should_prompt: bool


@router.get("/usage", response_model=UsageSummary)
async def get_usage(user_id: CurrentUserId, orchestrator: Orchestrator) -> UsageSummary:
    """Per request type: used, limit and remaining in the current billing month."""
    return await orchestrator.get_usage_summary(user_id)


@router.get("/upgrade-prompt", response_model=UpgradePrompt)
async def get_upgrade_prompt(user_id: CurrentUserId, orchestrator: Orchestrator) -> UpgradePrompt:
    return UpgradePrompt(should_prompt=await orchestrator.should_prompt_upgrade(user_id))


@router.post("/{request_type}", response_model=AIResponse)
async def process_ai_request(
    request_type: str,
    body: AIRequestBody,
    user_id: CurrentUserId,
    orchestrator: Orchestrator,
) -> AIResponse:
    try:
        kind = RequestType(request_type)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown AI request type: {request_type}")
    payload = body.input
    if kind in MEDIA_REQUEST_TYPES:
        try:
            payload = MediaInput.model_validate(payload)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=f"Expected mime_type and data_base64: {e}")
    elif kind in ANALYSIS_REQUEST_TYPES:
        payload = payload or {}
    elif not isinstance(payload, str) or not payload.strip():
        raise HTTPException(status_code=422, detail="input must be a non-empty string")
    return await orchestrator.process_request(kind, payload, user_id)
