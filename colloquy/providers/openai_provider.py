"""OpenAI provider using openai SDK with native async."""

import asyncio
import logging
import os
import time

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from colloquy.models import CallDescriptor, Completion
from colloquy.providers.base import AIProvider, ProviderError, chat_messages, system_text

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI provider via openai SDK.

    Also serves OpenAI-compatible gateways when the model config sets base_url.
    """

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        if config.base_url:
            self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url)
        else:
            self._client = AsyncOpenAI(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def complete(self, call: CallDescriptor) -> Completion:
        messages = [{"role": "system", "content": system_text(call)}, *chat_messages(call)]
        kwargs: dict = {
            "model": call.model or self._config.model,
            "messages": messages,
            "max_tokens": call.max_tokens or self._config.max_tokens,
            "temperature": call.temperature,
        }
        if call.response_format == "json":
            kwargs["response_format"] = {"type": "json_object"}

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(**kwargs),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, "Empty response content")

        usage: dict[str, int] = {}
        if response.usage:
            usage = {
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
            }

        logger.info("%s %s: %.2fs, %s", self._config.name, call.role, latency, usage or "no usage")

        return Completion(
            content=choice.message.content,
            call_id=call.call_id,
            provider=self._config.name,
            model=kwargs["model"],
            latency_sec=latency,
            usage=usage,
        )
