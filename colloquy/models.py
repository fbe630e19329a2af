"""Dataclasses for sessions, turns, moderator decisions and completion calls."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

# Turn types
SETUP = "setup"
PANEL_RESPONSE = "panel_response"
MODERATOR_DECISION = "moderator_decision"
FACILITATOR_INTERVENTION = "facilitator_intervention"
FOLLOWUP = "followup"
SUMMARY = "summary"

# Fixed speakers outside the panel
MODERATOR = "moderator"
FACILITATOR = "facilitator"
SUMMARIZER = "summarizer"

# Session status
RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SessionConfig:
    source_text: str
    topic: str
    interaction_budget: int = 4
    summary_focus: str = ""
    facilitator_enabled: bool = False
    panel_type: str = "discussion"


@dataclass
class Turn:
    speaker: str
    type: str
    content: str
    iteration: int
    timestamp: str = field(default_factory=utc_now)
    is_facilitator: bool = False
    call_id: str | None = None


@dataclass
class ModeratorDecision:
    next_speaker: str
    speaking_prompt: str
    moderator_comment: str = ""
    reasoning: str = ""
    parsing_error: str | None = None
    raw_response: str = ""
    context: str = ""
    moderator_responds: bool = False
    timestamp: str = field(default_factory=utc_now)

    @property
    def is_fallback(self) -> bool:
        return self.context.endswith("_fallback")


@dataclass
class CallDescriptor:
    """Everything a provider needs to execute one completion call."""

    call_id: str
    role: str
    provider: str
    model: str
    system_prompt: str
    user_prompt: str
    context: str = ""
    history: list[dict[str, str]] = field(default_factory=list)
    temperature: float = 0.7
    max_tokens: int | None = None
    response_format: str | None = None  # "json" or None


@dataclass
class Completion:
    content: str
    call_id: str
    provider: str
    model: str
    latency_sec: float
    usage: dict[str, int] = field(default_factory=dict)


@dataclass
class StepRecord:
    step_id: str
    role: str
    status: str            # "completed" or "failed"
    call_id: str | None = None
    latency_sec: float | None = None
    usage: dict[str, int] = field(default_factory=dict)
    error: str | None = None
    timestamp: str = field(default_factory=utc_now)


@dataclass
class FacilitatorIntervention:
    iteration: int
    content: str
    call_id: str | None = None
    timestamp: str = field(default_factory=utc_now)


@dataclass
class Session:
    run_id: str
    pipeline: str
    config: SessionConfig
    status: str = RUNNING
    conversation: list[Turn] = field(default_factory=list)
    moderator_decisions: list[ModeratorDecision] = field(default_factory=list)
    panel_stats: dict[str, int] = field(default_factory=dict)
    steps: list[StepRecord] = field(default_factory=list)
    facilitator_interventions: list[FacilitatorIntervention] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    started_at: str = field(default_factory=utc_now)
    ended_at: str | None = None
    duration_sec: float | None = None

    @property
    def api_calls(self) -> int:
        return len(self.steps)

    def turns_of_type(self, turn_type: str) -> list[Turn]:
        return [t for t in self.conversation if t.type == turn_type]


@dataclass
class RunResult:
    run_id: str
    pipeline: str
    status: str
    conversation: list[Turn]
    moderator_decisions: list[ModeratorDecision]
    panel_stats: dict[str, int]
    summary: str
    metadata: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    output_dir: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Render the external camelCase result shape."""
        return {
            "runId": self.run_id,
            "pipeline": {"name": self.pipeline, "status": self.status},
            "conversation": [_turn_dict(t) for t in self.conversation],
            "moderatorDecisions": [_decision_dict(d) for d in self.moderator_decisions],
            "panelStats": dict(self.panel_stats),
            "summary": self.summary,
            "metadata": {_camel(k): v for k, v in self.metadata.items()},
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "outputDir": self.output_dir,
        }


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _turn_dict(turn: Turn) -> dict[str, Any]:
    return {_camel(k): v for k, v in asdict(turn).items()}


def _decision_dict(decision: ModeratorDecision) -> dict[str, Any]:
    return {_camel(k): v for k, v in asdict(decision).items()}
