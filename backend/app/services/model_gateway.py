"""
Text-completion gateways. Handlers depend on the ModelGateway protocol only;
ProviderRouter picks the concrete client from ModelConfig.provider.
"""
from __future__ import annotations

import base64
import logging
from typing import Protocol

import google.generativeai as genai
from anthropic import AsyncAnthropic
from google.generativeai.types import HarmBlockThreshold, HarmCategory

from app.schemas.ai import Attachment, Completion, ModelConfig, PromptTurn, Provider
from app.services.gemini_common import run_generate_content

logger = logging.getLogger(__name__)

SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
}


class ModelGateway(Protocol):
    async def complete(
        self,
        system_prompt: str,
        prior_turns: list[PromptTurn],
        new_message: str,
        config: ModelConfig,
        attachments: list[Attachment] | None = None,
    ) -> Completion:
        ...


def _alternating_turns(turns: list[PromptTurn]) -> list[PromptTurn]:
    """Drop leading assistant turns and merge consecutive turns of the same role."""
    out: list[PromptTurn] = []
    for turn in turns:
        if not turn.content:
            continue
        if not out and turn.role != "user":
            continue
        if out and out[-1].role == turn.role:
            out[-1] = PromptTurn(role=turn.role, content=out[-1].content + "\n\n" + turn.content)
        else:
            out.append(turn)
    return out


class AnthropicGateway:
    """Anthropic Messages API."""

    def __init__(self, api_key: str, client: AsyncAnthropic | None = None):
        self._client = client or AsyncAnthropic(api_key=api_key)

    async def complete(
        self,
        system_prompt: str,
        prior_turns: list[PromptTurn],
        new_message: str,
        config: ModelConfig,
        attachments: list[Attachment] | None = None,
    ) -> Completion:
        history = _alternating_turns(prior_turns)
        if history and history[-1].role == "user":
            # The new message must follow an assistant turn.
            history = history[:-1]
        messages: list[dict] = [{"role": t.role, "content": t.content} for t in history]
        content: list[dict] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": a.mime_type,
                    "data": base64.b64encode(a.data).decode("ascii"),
                },
            }
            for a in attachments or []
            if a.mime_type.startswith("image/")
        ]
        content.append({"type": "text", "text": new_message})
        messages.append({"role": "user", "content": content})

        kwargs = {}
        if system_prompt:
            kwargs["system"] = system_prompt
        response = await self._client.messages.create(
            model=config.model,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            messages=messages,
            **kwargs,
        )
        text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
        usage = getattr(response, "usage", None)
        return Completion(
            text=text,
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
        )


class GeminiGateway:
    """Google Gemini through google-generativeai; genai.configure() is done once at startup."""

    async def complete(
        self,
        system_prompt: str,
        prior_turns: list[PromptTurn],
        new_message: str,
        config: ModelConfig,
        attachments: list[Attachment] | None = None,
    ) -> Completion:
        generation_config = {
            "temperature": config.temperature,
            "max_output_tokens": config.max_tokens,
        }
        if config.json_mode:
            generation_config["response_mime_type"] = "application/json"
        model = genai.GenerativeModel(
            config.model,
            system_instruction=system_prompt or None,
            generation_config=generation_config,
            safety_settings=SAFETY_SETTINGS,
        )
        contents = [
            {"role": "model" if t.role == "assistant" else "user", "parts": [t.content]}
            for t in _alternating_turns(prior_turns)
        ]
        parts: list = [{"mime_type": a.mime_type, "data": a.data} for a in attachments or []]
        parts.append(new_message)
        contents.append({"role": "user", "parts": parts})

        response = await run_generate_content(model, contents)
        if not response or not response.candidates or not response.candidates[0].content.parts:
            finish_reason = response.candidates[0].finish_reason if response and response.candidates else "UNKNOWN"
            raise ValueError(f"Empty response from Gemini (finish_reason={finish_reason})")
        usage = getattr(response, "usage_metadata", None)
        return Completion(
            text=response.text,
            input_tokens=getattr(usage, "prompt_token_count", 0) or 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) or 0,
        )


class ProviderRouter:
    """ModelGateway that forwards to the client registered for config.provider."""

    def __init__(self, gateways: dict[Provider, ModelGateway]):
        self._gateways = dict(gateways)

    async def complete(
        self,
        system_prompt: str,
        prior_turns: list[PromptTurn],
        new_message: str,
        config: ModelConfig,
        attachments: list[Attachment] | None = None,
    ) -> Completion:
        gateway = self._gateways.get(config.provider)
        if gateway is None:
            raise ValueError(f"No model gateway configured for provider {config.provider.value}")
        logger.debug("Completion via %s model=%s", config.provider.value, config.model)
        return await gateway.complete(system_prompt, prior_turns, new_message, config, attachments)
