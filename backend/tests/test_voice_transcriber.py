"""Tests for voice transcription: corrections, confidence and attachment handling."""

import base64

import pytest

from app.core.errors import AIHandlerError
from app.schemas.ai import Attachment, ModelConfig, Provider
from app.schemas.context import AIContext, PatternEntry
from app.schemas.media import MediaInput
from app.services.voice_transcriber import VoiceTranscriber, apply_corrections, transcription_confidence

VOICE = ModelConfig(provider=Provider.GEMINI, model="gemini-2.0-flash", temperature=0)


def test_common_corrections():
    assert apply_corrections("three sets dumb bell rows then pull up", []) == "three sets dumbbell rows then pull-up"


def test_user_corrections_run_first():
    patterns = [PatternEntry(pattern_type="voice_pattern", pattern_key="romaine deadlift", pattern_value={"correction": "romanian deadlift"})]
    assert apply_corrections("Romaine deadlift 3x8", patterns) == "romanian deadlift 3x8"


def test_confidence_from_segments():
    assert transcription_confidence(None) == 0.7
    assert transcription_confidence({"segments": [{"no_speech_prob": 0.1}, {"no_speech_prob": 0.3}]}) == pytest.approx(0.8)
    assert transcription_confidence({"segments": [{"no_speech_prob": 0.9}]}) == 0.5


@pytest.mark.asyncio
async def test_process_sends_audio_attachment(gateway):
    gateway.text = "  bench press three by eight with the bar bell  "
    audio = MediaInput(mime_type="audio/webm", data_base64=base64.b64encode(b"\x00\x01audio").decode())

    result = await VoiceTranscriber(gateway).process(audio, AIContext(user_id=1), VOICE)

    sent = gateway.calls[0]["attachments"][0]
    assert sent == Attachment(mime_type="audio/webm", data=b"\x00\x01audio")
    assert result.data.text == "bench press three by eight with the barbell"
    assert result.data.language == "en"
    assert result.confidence == 0.7
    # ceil(43 / 4)
    assert result.tokens_used == 11


@pytest.mark.asyncio
async def test_rejects_non_media_input(gateway):
    with pytest.raises(AIHandlerError, match="Failed to transcribe audio"):
        await VoiceTranscriber(gateway).process("not audio", AIContext(user_id=1), VOICE)
    assert gateway.calls == []
