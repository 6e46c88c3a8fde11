"""
Shared helpers for Gemini: run blocking generate_content in threadpool to avoid blocking the event loop.
Timeout and optional retry for transient errors (429, 5xx); attempts come from settings.gemini_max_attempts.
Also JSON extraction from model text, which may arrive wrapped in a markdown fence.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any

from starlette.concurrency import run_in_threadpool

from app.config import settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_PATTERN = re.compile(r"\b(429|5\d{2})\b")
JSON_OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)


def _is_retryable_error(exc: BaseException) -> bool:
    """True if the exception looks like 429 or 5xx."""
    msg = (getattr(exc, "message", None) or str(exc)) if exc else ""
    return bool(RETRYABLE_STATUS_PATTERN.search(msg))


async def run_generate_content(model, contents, **kwargs):
    """
    Run model.generate_content(contents, **kwargs) in a thread pool with timeout.
    With gemini_max_attempts > 1, retries with exponential backoff on timeouts and 429/5xx-like errors.
    """
    timeout = settings.gemini_request_timeout_seconds or 90
    max_attempts = max(1, settings.gemini_max_attempts)
    for attempt in range(max_attempts):
        try:
            def _call():
                return model.generate_content(contents, **kwargs)
            return await asyncio.wait_for(
                run_in_threadpool(_call),
                timeout=float(timeout),
            )
        except asyncio.TimeoutError:
            logger.warning("Gemini request timed out after %ss (attempt %d)", timeout, attempt + 1)
            if attempt == max_attempts - 1:
                raise
            await asyncio.sleep(2 ** attempt)
        except Exception as e:
            if attempt < max_attempts - 1 and _is_retryable_error(e):
                delay = 2 ** attempt
                logger.warning("Gemini request failed (attempt %d), retrying in %ss: %s", attempt + 1, delay, e)
                await asyncio.sleep(delay)
            else:
                raise
    raise RuntimeError("run_generate_content: unexpected exit")


def strip_code_fence(text: str) -> str:
    text = (text or "").strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        text = text.rsplit("```", 1)[0].strip()
    return text


def parse_json_text(text: str) -> Any:
    """json.loads on model output; falls back to the outermost {...} span. Raises ValueError if neither parses."""
    cleaned = strip_code_fence(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        match = JSON_OBJECT_PATTERN.search(cleaned)
        if not match:
            raise ValueError("No JSON object in model output")
        return json.loads(match.group(0))
