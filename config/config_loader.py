"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class AgentConfig:
    model: str             # key into AppConfig.models
    system_prompt: str
    temperature: float = 0.7
    json_output: bool = False


@dataclass
class ParticipantConfig:
    token: str
    name: str
    description: str
    agent: AgentConfig
    keywords: list[str] = field(default_factory=list)


@dataclass
class PanelTypeConfig:
    name: str
    default_speaker: str
    default_interactions: int
    summary_focus: str
    moderator: AgentConfig
    summarizer: AgentConfig
    participants: list[ParticipantConfig] = field(default_factory=list)


@dataclass
class DialogueConfig:
    summary_focus: str
    initiator: AgentConfig
    respondent: AgentConfig
    summarizer: AgentConfig


@dataclass
class PromptsConfig:
    moderator_setup: str
    moderator_decision: str
    panel_turn: str
    panel_summary: str
    facilitator: str
    dialogue_opening: str
    dialogue_reply: str
    dialogue_followup: str
    dialogue_summary: str


@dataclass
class DefaultsConfig:
    interactions: int
    output_dir: Path
    pipeline: str = "panel"
    panel_type: str = "discussion"


@dataclass
class InboxConfig:
    dir: Path
    archive_dir: Path


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    panels: dict[str, PanelTypeConfig]
    dialogue: DialogueConfig
    facilitator: AgentConfig
    inbox: InboxConfig
    available_providers: set[str] = field(default_factory=set)


def _agent(raw: dict) -> AgentConfig:
    return AgentConfig(
        model=str(raw["model"]),
        system_prompt=str(raw["system_prompt"]).strip(),
        temperature=float(raw.get("temperature", 0.7)),
        json_output=bool(raw.get("json_output", False)),
    )


def _panel(name: str, raw: dict) -> PanelTypeConfig:
    participants = [
        ParticipantConfig(
            token=str(p["token"]).lower(),
            name=str(p["name"]),
            description=str(p.get("description", "")),
            agent=_agent(p),
            keywords=[str(k).lower() for k in p.get("keywords", [])],
        )
        for p in raw["participants"]
    ]
    tokens = [p.token for p in participants]
    if len(set(tokens)) != len(tokens):
        raise ValueError(f"Panel '{name}' has duplicate participant tokens: {tokens}")

    default_speaker = str(raw["default_speaker"]).lower()
    if default_speaker not in tokens:
        raise ValueError(
            f"Panel '{name}' default_speaker '{default_speaker}' is not one of {tokens}"
        )

    return PanelTypeConfig(
        name=name,
        default_speaker=default_speaker,
        default_interactions=int(raw.get("default_interactions", 4)),
        summary_focus=str(raw["summary_focus"]).strip(),
        moderator=_agent(raw["moderator"]),
        summarizer=_agent(raw["summarizer"]),
        participants=participants,
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if a panel
    definition is inconsistent. Logs missing API keys but does not raise;
    callers check available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        interactions=int(defaults_raw["interactions"]),
        output_dir=Path(defaults_raw["output_dir"]),
        pipeline=str(defaults_raw.get("pipeline", "panel")),
        panel_type=str(defaults_raw.get("panel_type", "discussion")),
    )

    inbox_raw = raw.get("inbox", {})
    inbox = InboxConfig(
        dir=Path(inbox_raw.get("dir", "./inbox")),
        archive_dir=Path(inbox_raw.get("archive_dir", "./inbox/archive")),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(**{k: str(prompts_raw[k]) for k in PromptsConfig.__dataclass_fields__})

    panels = {name: _panel(name, p) for name, p in raw["panels"].items()}
    if defaults.panel_type not in panels:
        raise ValueError(f"Default panel_type '{defaults.panel_type}' not defined under panels")

    dialogue_raw = raw["dialogue"]
    dialogue = DialogueConfig(
        summary_focus=str(dialogue_raw["summary_focus"]).strip(),
        initiator=_agent(dialogue_raw["initiator"]),
        respondent=_agent(dialogue_raw["respondent"]),
        summarizer=_agent(dialogue_raw["summarizer"]),
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        panels=panels,
        dialogue=dialogue,
        facilitator=_agent(raw["facilitator"]),
        inbox=inbox,
        available_providers=available_providers,
    )
