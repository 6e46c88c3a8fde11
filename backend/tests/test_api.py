"""HTTP tests for the AI endpoints with the in-memory orchestrator."""

import json

import pytest

from app.schemas.ai import RequestType
from app.schemas.context import UserProfile

WORKOUT_JSON = json.dumps({"exercises": [{"name": "squat", "sets": 5, "reps": 5, "weight_kg": 100}]})


@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_requires_bearer_token(client):
    r = await client.post("/api/v1/ai/parse_workout", json={"input": "squat 5x5"})
    assert r.status_code == 401
    r = await client.get("/api/v1/ai/usage", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_unknown_request_type_is_404(client, auth_headers):
    r = await client.post("/api/v1/ai/meal_plan", json={"input": "x"}, headers=auth_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_text_request_needs_string_input(client, auth_headers):
    r = await client.post("/api/v1/ai/parse_food", json={"input": "  "}, headers=auth_headers)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_media_request_needs_base64_body(client, auth_headers):
    r = await client.post("/api/v1/ai/photo_analysis", json={"input": "photo.jpg"}, headers=auth_headers)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_parse_workout(client, auth_headers, gateway, store):
    gateway.text = WORKOUT_JSON

    r = await client.post("/api/v1/ai/parse_workout", json={"input": "squat 5x5 @100"}, headers=auth_headers)

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["data"]["exercises"][0]["name"] == "squat"
    assert body["data"]["total_volume"] == 2500
    assert body["tokens_used"] == 100
    assert body["model_used"] == "gemini-2.0-flash"
    assert store.usage[0].user_id == 1


@pytest.mark.asyncio
async def test_quota_failure_is_200_with_error(client, auth_headers, store):
    store.profiles[1] = UserProfile(id=1, subscription_tier="free")

    r = await client.post(
        "/api/v1/ai/voice_transcription",
        json={"input": {"mime_type": "audio/webm", "data_base64": "AAAA"}},
        headers=auth_headers,
    )

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is False
    assert "Upgrade to Basic" in body["error"]


@pytest.mark.asyncio
async def test_recovery_prediction_ignores_body(client, auth_headers):
    r = await client.post("/api/v1/ai/recovery_prediction", json={}, headers=auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["data"]["readiness_score"] == 80


@pytest.mark.asyncio
async def test_usage_and_upgrade_prompt(client, auth_headers, gateway):
    gateway.text = WORKOUT_JSON
    await client.post("/api/v1/ai/parse_workout", json={"input": "squat 5x5"}, headers=auth_headers)

    r = await client.get("/api/v1/ai/usage", headers=auth_headers)
    assert r.status_code == 200
    usage = {u["request_type"]: u for u in r.json()["usage"]}
    assert usage[RequestType.PARSE_WORKOUT.value] == {
        "request_type": "parse_workout",
        "used": 1,
        "limit": 10,
        "remaining": 9,
    }

    r = await client.get("/api/v1/ai/upgrade-prompt", headers=auth_headers)
    assert r.json() == {"should_prompt": False}
