"""FastAPI dependencies: caller id from JWT and the shared AI orchestrator."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from app.config import settings
from app.core.auth import decode_token
from app.schemas.ai import Provider
from app.services.ai_orchestrator import AIOrchestrator
from app.services.context_store import SqlContextStore
from app.services.model_gateway import AnthropicGateway, GeminiGateway, ProviderRouter


async def get_current_user_id(request: Request) -> int:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")
    token = auth_header[7:].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    user_id_str = payload.get("sub")
    if not user_id_str:
        raise HTTPException(status_code=401, detail="Invalid token")
    try:
        return int(user_id_str)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")


@lru_cache
def get_orchestrator() -> AIOrchestrator:
    """One orchestrator per process; the store opens its own sessions."""
    gateway = ProviderRouter(
        {
            Provider.ANTHROPIC: AnthropicGateway(settings.anthropic_api_key),
            Provider.GEMINI: GeminiGateway(),
        }
    )
    return AIOrchestrator(SqlContextStore(), gateway)


CurrentUserId = Annotated[int, Depends(get_current_user_id)]
Orchestrator = Annotated[AIOrchestrator, Depends(get_orchestrator)]
