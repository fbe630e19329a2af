"""Completion service: routes call descriptors to providers, retrying once on timeout."""

import logging

from colloquy.models import CallDescriptor, Completion
from colloquy.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)

_RETRY_TIMEOUT_FACTOR = 1.5


class CompletionService:
    """Executes CallDescriptors against the provider named in each descriptor."""

    def __init__(self, providers: dict[str, AIProvider]) -> None:
        self._providers = dict(providers)

    @property
    def providers(self) -> dict[str, AIProvider]:
        return dict(self._providers)

    def has_provider(self, name: str) -> bool:
        return name in self._providers

    async def complete(self, call: CallDescriptor) -> Completion:
        """Run one call. A timed-out call is retried once with 1.5x the timeout.

        Raises:
            ProviderError: Unknown provider, empty content, or failure after retry.
        """
        if not self.has_provider(call.provider):
            raise ProviderError(call.provider, f"Provider not available for {call.role}")
        provider = self._providers[call.provider]

        try:
            completion = await provider.complete(call)
        except ProviderError as exc:
            if "timed out" not in str(exc).lower():
                raise
            completion = await self._retry_with_longer_timeout(provider, call)

        if not completion.content or not completion.content.strip():
            raise ProviderError(call.provider, f"Empty content returned for {call.role}")
        return completion

    async def _retry_with_longer_timeout(self, provider: AIProvider, call: CallDescriptor) -> Completion:
        # Temporarily patch the provider's timeout; restored whatever happens.
        cfg = getattr(provider, "_config", None)
        original_timeout: int | None = None
        if cfg is not None and hasattr(cfg, "timeout_sec"):
            original_timeout = cfg.timeout_sec
            cfg.timeout_sec = int(original_timeout * _RETRY_TIMEOUT_FACTOR)
            logger.warning(
                "Provider %s timed out on %s, retrying with %ds (1.5x)",
                provider.name(), call.role, cfg.timeout_sec,
            )
        else:
            logger.warning("Provider %s timed out on %s, retrying", provider.name(), call.role)
        try:
            return await provider.complete(call)
        finally:
            if cfg is not None and original_timeout is not None:
                cfg.timeout_sec = original_timeout
