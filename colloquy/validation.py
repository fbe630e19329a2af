"""Session config validation. Runs before any agent call."""

from collections.abc import Collection, Mapping
from typing import Any

from colloquy.errors import ConfigValidationError
from colloquy.models import SessionConfig
from colloquy.scheduling import MAX_BUDGET, MIN_BUDGET

DEFAULT_BUDGET = 4

# Accepted spellings, first match wins.
_SOURCE_KEYS = ("sourceText", "source_text")
_TOPIC_KEYS = ("discussionSubject", "discussionPrompt", "topic", "subject")
_BUDGET_KEYS = ("panelInteractions", "iterations", "interaction_budget", "interactions")
_FOCUS_KEYS = ("summaryFocus", "summary_focus")
_FACILITATOR_KEYS = ("facilitatorEnabled", "facilitator_enabled", "facilitator")
_PANEL_TYPE_KEYS = ("panelType", "panel_type")


def _first(raw: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _required_text(raw: Mapping[str, Any], keys: tuple[str, ...], errors: list[str]) -> str:
    value = _first(raw, keys)
    if not isinstance(value, str) or not value.strip():
        errors.append(f"{keys[0]} is required and must be a non-empty string")
        return ""
    return value.strip()


def validate_session_config(
    raw: Mapping[str, Any],
    *,
    default_summary_focus: str = "",
    panel_types: Collection[str] | None = None,
    default_panel_type: str = "discussion",
) -> SessionConfig:
    """Validate a raw input mapping and return a SessionConfig.

    All problems are collected before raising.

    Raises:
        ConfigValidationError: With the full list of problems.
    """
    errors: list[str] = []

    source_text = _required_text(raw, _SOURCE_KEYS, errors)
    topic = _required_text(raw, _TOPIC_KEYS, errors)

    budget = _first(raw, _BUDGET_KEYS)
    if budget is None:
        budget = DEFAULT_BUDGET
    elif isinstance(budget, bool) or not isinstance(budget, int):
        errors.append("panelInteractions must be an integer")
        budget = None
    elif not MIN_BUDGET <= budget <= MAX_BUDGET:
        errors.append(f"panelInteractions must be between {MIN_BUDGET} and {MAX_BUDGET}")

    facilitator = _first(raw, _FACILITATOR_KEYS)
    if facilitator is None:
        facilitator = False
    elif not isinstance(facilitator, bool):
        errors.append("facilitatorEnabled must be a boolean")
        facilitator = False

    if facilitator and isinstance(budget, int) and budget % 2 != 0:
        errors.append("panelInteractions must be an even number when facilitator is enabled")

    summary_focus = _first(raw, _FOCUS_KEYS)
    if summary_focus is None or (isinstance(summary_focus, str) and not summary_focus.strip()):
        summary_focus = default_summary_focus
    elif not isinstance(summary_focus, str):
        errors.append("summaryFocus must be a string")
        summary_focus = default_summary_focus

    panel_type = _first(raw, _PANEL_TYPE_KEYS) or default_panel_type
    if not isinstance(panel_type, str):
        errors.append("panelType must be a string")
        panel_type = default_panel_type
    panel_type = panel_type.strip().lower()
    if panel_types is not None and panel_type not in panel_types:
        errors.append(f"Unsupported panelType '{panel_type}'. Supported: {', '.join(sorted(panel_types))}")

    if errors:
        raise ConfigValidationError(errors)

    return SessionConfig(
        source_text=source_text,
        topic=topic,
        interaction_budget=budget,
        summary_focus=summary_focus.strip(),
        facilitator_enabled=facilitator,
        panel_type=panel_type,
    )


def requested_features(raw: Mapping[str, Any]) -> set[str]:
    """Optional features a raw input asks for: ``panel_type`` and ``facilitator``."""
    features: set[str] = set()
    if _first(raw, _PANEL_TYPE_KEYS) is not None:
        features.add("panel_type")
    if _first(raw, _FACILITATOR_KEYS) is True:
        features.add("facilitator")
    return features
