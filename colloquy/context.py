"""Per-process orchestration context: rosters, prompts, completion and persistence."""

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from config.config_loader import AppConfig, PanelTypeConfig, PromptsConfig
from colloquy.agents import AgentInvoker
from colloquy.completion import CompletionService
from colloquy.models import RunResult, Session, Turn
from colloquy.speakers import Invoker, Speaker, SpeakerRegistry

Persist = Callable[[Session, RunResult], Path]

INITIATOR = "initiator"
RESPONDENT = "respondent"


@dataclass
class Roster:
    """The agents taking part in one kind of conversation."""

    speakers: SpeakerRegistry
    summarizer: Invoker
    summary_focus: str
    moderator: Invoker | None = None
    facilitator: Invoker | None = None
    name: str = ""


@dataclass
class OrchestratorContext:
    completion: CompletionService
    prompts: PromptsConfig
    panels: dict[str, Roster]
    dialogue: Roster | None = None
    persist: Persist | None = None
    default_panel_type: str = "discussion"
    on_turn: Callable[[Turn], None] | None = field(default=None, repr=False)


def build_panel_roster(config: AppConfig, panel: PanelTypeConfig) -> Roster:
    speakers = [
        Speaker(
            token=p.token,
            name=p.name,
            description=p.description,
            keywords=tuple(p.keywords),
            invoker=AgentInvoker(p.token, p.agent, config.models),
        )
        for p in panel.participants
    ]
    return Roster(
        name=panel.name,
        speakers=SpeakerRegistry(speakers, default=panel.default_speaker),
        moderator=AgentInvoker("moderator", panel.moderator, config.models),
        summarizer=AgentInvoker("summarizer", panel.summarizer, config.models),
        facilitator=AgentInvoker("facilitator", config.facilitator, config.models),
        summary_focus=panel.summary_focus,
    )


def build_dialogue_roster(config: AppConfig) -> Roster:
    dialogue = config.dialogue
    speakers = [
        Speaker(
            token=INITIATOR,
            name="Initiator",
            description="Opens the dialogue and follows up each reply",
            invoker=AgentInvoker(INITIATOR, dialogue.initiator, config.models),
        ),
        Speaker(
            token=RESPONDENT,
            name="Respondent",
            description="Replies to the initiator",
            invoker=AgentInvoker(RESPONDENT, dialogue.respondent, config.models),
        ),
    ]
    return Roster(
        name="dialogue",
        speakers=SpeakerRegistry(speakers, default=INITIATOR),
        summarizer=AgentInvoker("summarizer", dialogue.summarizer, config.models),
        facilitator=AgentInvoker("facilitator", config.facilitator, config.models),
        summary_focus=dialogue.summary_focus,
    )


def build_context(
    config: AppConfig,
    completion: CompletionService,
    persist: Persist | None = None,
    on_turn: Callable[[Turn], None] | None = None,
) -> OrchestratorContext:
    return OrchestratorContext(
        completion=completion,
        prompts=config.prompts,
        panels={name: build_panel_roster(config, panel) for name, panel in config.panels.items()},
        dialogue=build_dialogue_roster(config),
        persist=persist,
        default_panel_type=config.defaults.panel_type,
        on_turn=on_turn,
    )


def roster_providers(roster: Roster) -> set[str]:
    """Provider names a roster will call."""
    invokers = [s.invoker for s in roster.speakers]
    invokers += [roster.summarizer, roster.moderator, roster.facilitator]
    return {inv.provider for inv in invokers if isinstance(inv, AgentInvoker)}
