"""Provider health checks: ping each API before starting a run."""

import asyncio
import logging

from colloquy.models import CallDescriptor
from colloquy.providers.base import AIProvider

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


def _ping_call(name: str, provider: AIProvider) -> CallDescriptor:
    return CallDescriptor(
        call_id=f"healthcheck-{name}",
        role="healthcheck",
        provider=name,
        model=provider.model_string(),
        system_prompt="You are a connectivity check.",
        user_prompt=_PING_PROMPT,
        temperature=0.0,
        max_tokens=16,
    )


async def _check_one(name: str, provider: AIProvider) -> tuple[str, bool, str]:
    """Ping a single provider. Returns (name, ok, error_message)."""
    try:
        await asyncio.wait_for(provider.complete(_ping_call(name, provider)), timeout=_TIMEOUT_SEC)
        return name, True, ""
    except Exception as exc:
        logger.debug("Health check for %s failed: %s", name, exc)
        return name, False, str(exc) or type(exc).__name__


async def run_health_checks(
    providers: dict[str, AIProvider],
) -> dict[str, tuple[bool, str]]:
    """Ping all providers in parallel.

    Returns:
        Dict mapping provider name -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(n, p) for n, p in providers.items()))
    return {name: (ok, err) for name, ok, err in results}
