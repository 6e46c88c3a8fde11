"""Audio -> text through the model gateway, then fitness-vocabulary corrections."""

import logging
import math
import re
from typing import Any

from app.core.errors import AIHandlerError
from app.schemas.ai import HandlerResult, ModelConfig
from app.schemas.context import AIContext, PatternEntry
from app.schemas.media import Transcription, as_attachment
from app.services.model_gateway import ModelGateway

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.7
MIN_SEGMENT_CONFIDENCE = 0.5

TRANSCRIBE_PROMPT = (
    "Transcribe this audio recording verbatim in English. It is a spoken fitness or food log. "
    "Return only the transcript text, no commentary."
)

COMMON_CORRECTIONS = {
    "benchpress": "bench press",
    "dead lift": "deadlift",
    "pull up": "pull-up",
    "push up": "push-up",
    "dumb bell": "dumbbell",
    "bar bell": "barbell",
    "kettle bell": "kettlebell",
}


def apply_corrections(text: str, patterns: list[PatternEntry]) -> str:
    """User voice_pattern corrections first, then the common fitness fixes."""
    for p in patterns:
        correction = (p.pattern_value or {}).get("correction")
        if p.pattern_type == "voice_pattern" and correction:
            text = re.sub(re.escape(p.pattern_key), lambda _m, c=correction: c, text, flags=re.IGNORECASE)
    for wrong, right in COMMON_CORRECTIONS.items():
        text = re.sub(rf"\b{re.escape(wrong)}\b", right, text, flags=re.IGNORECASE)
    return text


def transcription_confidence(raw: dict[str, Any] | None) -> float:
    segments = (raw or {}).get("segments") or []
    if not segments:
        return DEFAULT_CONFIDENCE
    no_speech = sum(float(s.get("no_speech_prob") or 0) for s in segments) / len(segments)
    return max(MIN_SEGMENT_CONFIDENCE, 1 - no_speech)


class VoiceTranscriber:
    def __init__(self, gateway: ModelGateway):
        self._gateway = gateway

    async def process(self, input: Any, context: AIContext, config: ModelConfig) -> HandlerResult:
        try:
            audio = as_attachment(input)
            completion = await self._gateway.complete("", [], TRANSCRIBE_PROMPT, config, attachments=[audio])
            text = apply_corrections(completion.text.strip(), context.patterns)
        except Exception as e:
            logger.exception("Voice transcription failed for user_id=%s", context.user_id)
            raise AIHandlerError("Failed to transcribe audio") from e
        return HandlerResult(
            data=Transcription(text=text, language="en"),
            confidence=transcription_confidence(completion.raw),
            tokens_used=math.ceil(len(text) / 4),
        )
