"""Handler contract and the default registry: one handler per RequestType."""

from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol

from app.core.billing import utc_now
from app.schemas.ai import HandlerResult, ModelConfig, RequestType
from app.schemas.context import AIContext
from app.services.context_store import ContextStore
from app.services.food_parser import FoodParser
from app.services.model_gateway import ModelGateway
from app.services.pattern_detector import PatternDetector
from app.services.photo_analyzer import PhotoAnalyzer
from app.services.recovery_predictor import RecoveryPredictor
from app.services.smart_coach import SmartCoach
from app.services.training_load_analyzer import TrainingLoadAnalyzer
from app.services.voice_transcriber import VoiceTranscriber
from app.services.workout_parser import WorkoutParser


class AIHandler(Protocol):
    async def process(self, input: Any, context: AIContext, config: ModelConfig) -> HandlerResult: ...


def build_handlers(
    store: ContextStore,
    gateway: ModelGateway,
    clock: Callable[[], datetime] = utc_now,
) -> dict[RequestType, AIHandler]:
    return {
        RequestType.PARSE_WORKOUT: WorkoutParser(gateway),
        RequestType.PARSE_FOOD: FoodParser(store, gateway),
        RequestType.COACH_CHAT: SmartCoach(store, gateway, clock),
        RequestType.VOICE_TRANSCRIPTION: VoiceTranscriber(gateway),
        RequestType.PHOTO_ANALYSIS: PhotoAnalyzer(gateway),
        RequestType.PATTERN_DETECTION: PatternDetector(store),
        RequestType.LOAD_ANALYSIS: TrainingLoadAnalyzer(store, clock),
        RequestType.RECOVERY_PREDICTION: RecoveryPredictor(store, clock),
    }


def missing_handlers(handlers: dict[RequestType, AIHandler]) -> list[RequestType]:
    return [t for t in RequestType if t not in handlers]
