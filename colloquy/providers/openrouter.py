"""OpenRouter provider: the OpenAI SDK pointed at an OpenAI-compatible gateway."""

from config.config_loader import ModelConfig
from colloquy.providers.base import ProviderError
from colloquy.providers.openai_provider import OpenAIProvider


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter (or any OpenAI-compatible gateway) via the openai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        if not config.base_url:
            raise ProviderError(config.name, "base_url is required for OpenRouter provider")
        super().__init__(config)
