"""Moderator directive parsing with a three-tier fallback.

The moderator is asked for a JSON object naming the next speaker and the
prompt to give them. Models do not always comply, so parsing degrades in
three steps and never raises:

1. Strict: a JSON object whose ``next_speaker`` resolves in the registry.
2. Partial recovery: JSON parsed but the speaker is missing or unknown; the
   raw text is scanned for speaker keywords and the discrepancy recorded.
3. Full fallback: no JSON object at all; a deterministic decision is built
   from a keyword scan (or the registry default) and tagged ``_fallback``.
"""

import json
import logging
import re
from typing import Any

from colloquy.errors import ModeratorParsingError
from colloquy.models import ModeratorDecision
from colloquy.speakers import SpeakerRegistry

logger = logging.getLogger(__name__)

FALLBACK_COMMENT = "Continuing discussion... (fallback mode)"
CONTINUE_PROMPT = "Please continue the discussion based on the context provided."

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", re.IGNORECASE)
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def extract_directive(raw: str) -> dict[str, Any]:
    """Pull a JSON object out of moderator output.

    Tries the whole text, then a fenced ```json block, then the outermost
    brace span.

    Raises:
        ModeratorParsingError: No JSON object could be decoded.
    """
    text = (raw or "").strip()
    if not text:
        raise ModeratorParsingError("Empty moderator response")

    candidates = [text]
    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    braces = _JSON_OBJECT.search(text)
    if braces:
        candidates.append(braces.group(0))

    last_error = "no JSON object found"
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as exc:
            last_error = f"invalid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})"
            continue
        if isinstance(parsed, dict):
            return parsed
        last_error = f"expected a JSON object, got {type(parsed).__name__}"
    raise ModeratorParsingError(last_error)


def parse_moderator_response(raw: str, registry: SpeakerRegistry, context: str) -> ModeratorDecision:
    """Turn raw moderator output into a ModeratorDecision. Never raises.

    The returned ``next_speaker`` is always a registry token and
    ``speaking_prompt`` is never empty.
    """
    raw = raw if isinstance(raw, str) else ""

    try:
        parsed = extract_directive(raw)
    except ModeratorParsingError as exc:
        return _fallback_decision(raw, registry, context, str(exc))

    comment = _text(parsed.get("moderator_comment")) or _text(parsed.get("moderator_response"))
    prompt = _text(parsed.get("speaking_prompt")) or CONTINUE_PROMPT
    reasoning = _text(parsed.get("reasoning"))
    responds = parsed.get("moderator_responds") is True

    requested = parsed.get("next_speaker")
    token = registry.resolve(requested)
    if token is not None:
        return ModeratorDecision(
            next_speaker=token,
            speaking_prompt=prompt,
            moderator_comment=comment,
            reasoning=reasoning,
            raw_response=raw,
            context=context,
            moderator_responds=responds,
        )

    if requested is None or _text(requested) == "":
        problem = "Missing next_speaker field"
    else:
        problem = f"Invalid next_speaker {requested!r}; expected one of {', '.join(registry.tokens)}"

    scanned = registry.scan(raw)
    token = scanned or registry.default
    source = "keyword scan" if scanned else "default speaker"
    logger.warning("Moderator directive in %s: %s; using %s '%s'", context, problem, source, token)

    return ModeratorDecision(
        next_speaker=token,
        speaking_prompt=prompt,
        moderator_comment=comment,
        reasoning=reasoning or f"Speaker selected by {source}: {problem}",
        parsing_error=problem,
        raw_response=raw,
        context=context,
        moderator_responds=responds,
    )


def _fallback_decision(raw: str, registry: SpeakerRegistry, context: str, error: str) -> ModeratorDecision:
    logger.warning("Failed to parse moderator JSON in %s: %s", context, error)
    logger.debug("Raw moderator content: %s", raw)
    token = registry.scan(raw) or registry.default
    return ModeratorDecision(
        next_speaker=token,
        speaking_prompt=CONTINUE_PROMPT,
        moderator_comment=FALLBACK_COMMENT,
        reasoning=f"Fallback selection due to parsing error: {error}",
        parsing_error=error,
        raw_response=raw,
        context=f"{context}_fallback",
    )
