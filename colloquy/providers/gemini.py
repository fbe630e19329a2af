"""Gemini provider using google-genai SDK with native async."""

import asyncio
import logging
import os
import time

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from colloquy.models import CallDescriptor, Completion
from colloquy.providers.base import AIProvider, ProviderError, system_text

logger = logging.getLogger(__name__)


def _contents(call: CallDescriptor) -> list[genai_types.Content]:
    """Gemini names the assistant role 'model'."""
    contents = [
        genai_types.Content(
            role="model" if m.get("role") == "assistant" else "user",
            parts=[genai_types.Part(text=m.get("content", ""))],
        )
        for m in call.history
    ]
    contents.append(genai_types.Content(role="user", parts=[genai_types.Part(text=call.user_prompt)]))
    return contents


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def complete(self, call: CallDescriptor) -> Completion:
        generate_config = genai_types.GenerateContentConfig(
            system_instruction=system_text(call),
            max_output_tokens=call.max_tokens or self._config.max_tokens,
            temperature=call.temperature,
            response_mime_type="application/json" if call.response_format == "json" else None,
        )
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=call.model or self._config.model,
                    contents=_contents(call),
                    config=generate_config,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        if not response.text:
            raise ProviderError(self._config.name, "Empty response text")

        usage: dict[str, int] = {}
        if response.usage_metadata:
            usage = {
                "input_tokens": response.usage_metadata.prompt_token_count or 0,
                "output_tokens": response.usage_metadata.candidates_token_count or 0,
            }

        logger.info("Gemini %s: %.2fs, %s", call.role, latency, usage or "no usage")

        return Completion(
            content=response.text,
            call_id=call.call_id,
            provider=self._config.name,
            model=call.model or self._config.model,
            latency_sec=latency,
            usage=usage,
        )
