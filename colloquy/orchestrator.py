"""Conversation orchestration: moderated panels and facilitated dialogues.

Both pipelines follow the same life cycle:

    init -> setup -> {panel turn <-> moderator/follow-up turn}* -> final panel turn
         -> summary -> completed

with a transition to ``failed`` from any state when a step raises.
Turns run strictly one after another; each prompt depends on the previous
turn, so every completion call is awaited before the next is built.
"""

import logging
import uuid
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from colloquy.context import INITIATOR, RESPONDENT, OrchestratorContext, Roster
from colloquy.directive import parse_moderator_response
from colloquy.errors import AgentInvocationError, ConfigValidationError, FacilitatorInvocationError
from colloquy.models import (
    COMPLETED,
    FACILITATOR,
    FACILITATOR_INTERVENTION,
    FAILED,
    FOLLOWUP,
    MODERATOR,
    MODERATOR_DECISION,
    PANEL_RESPONSE,
    SETUP,
    SUMMARIZER,
    SUMMARY,
    Completion,
    FacilitatorIntervention,
    ModeratorDecision,
    RunResult,
    Session,
    SessionConfig,
    StepRecord,
    Turn,
    utc_now,
)
from colloquy.scheduling import TurnScheduler, should_intervene
from colloquy.speakers import Invoker, SpeakerRegistry
from colloquy.validation import validate_session_config

logger = logging.getLogger(__name__)

PANEL = "panel"
DIALOGUE = "dialogue"

_DIALOGUE_CONTEXT = (
    "You are in a dialogue about the provided source material. "
    "Focus on the discussion prompt and engage thoughtfully with the content."
)
_FACILITATOR_CONTEXT = "You are a dialogue facilitator. Provide guidance to improve discussion quality."


@dataclass
class FacilitatorContext:
    """What the facilitator sees: everything said so far and where we are."""

    iteration: int
    history: list[Turn]
    source_text: str
    topic: str


def format_transcript(conversation: list[Turn], registry: SpeakerRegistry | None = None) -> str:
    """Render turns as 'Speaker: content' blocks, skipping empty and summary turns."""
    parts: list[str] = []
    for turn in conversation:
        if turn.type == SUMMARY or not turn.content.strip():
            continue
        if turn.is_facilitator:
            label = f"Facilitator (iteration {turn.iteration})"
        elif turn.speaker == MODERATOR:
            label = "Moderator"
        elif registry is not None and turn.speaker in registry:
            label = registry.get(turn.speaker).name
        else:
            label = turn.speaker
        parts.append(f"{label}: {turn.content}")
    return "\n\n".join(parts)


def format_stats(panel_stats: dict[str, int], registry: SpeakerRegistry) -> str:
    return "\n".join(
        f"- {registry.get(token).name}: {count} times" for token, count in panel_stats.items()
    )


class ConversationOrchestrator:
    """Drives one session at a time through a pipeline.

    The orchestrator holds no per-run state; each run owns its Session.
    """

    def __init__(self, context: OrchestratorContext) -> None:
        self._ctx = context

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_panel_config(self, raw: Mapping[str, Any]) -> SessionConfig:
        config = validate_session_config(
            raw,
            panel_types=self._ctx.panels.keys(),
            default_panel_type=self._ctx.default_panel_type,
        )
        if not config.summary_focus:
            config.summary_focus = self._ctx.panels[config.panel_type].summary_focus
        return config

    def validate_dialogue_config(self, raw: Mapping[str, Any]) -> SessionConfig:
        if self._ctx.dialogue is None:
            raise ConfigValidationError(["No dialogue roster configured"])
        config = validate_session_config(raw, default_summary_focus=self._ctx.dialogue.summary_focus)
        config.panel_type = DIALOGUE
        return config

    # ------------------------------------------------------------------
    # Moderated panel
    # ------------------------------------------------------------------

    async def run_panel(self, raw: Mapping[str, Any]) -> RunResult:
        """Run a moderated panel discussion.

        Raises:
            ConfigValidationError: Before any agent is called.
            AgentInvocationError: When a moderator, panelist or summarizer call
                fails, or any other step raises; ``exc.result`` holds the failed
                run with its partial conversation.
        """
        config = self.validate_panel_config(raw)
        roster = self._ctx.panels[config.panel_type]
        session = self._new_session(PANEL, config, roster.speakers)

        logger.info(
            "Starting %s panel %s with %d interactions (expected API calls: %d)",
            config.panel_type,
            session.run_id,
            config.interaction_budget,
            TurnScheduler.expected_api_calls(config.interaction_budget, config.facilitator_enabled),
        )

        return await self._drive(session, self._panel_turns(session, roster))

    async def _panel_turns(self, session: Session, roster: Roster) -> str:
        config = session.config
        registry = roster.speakers
        prompts = self._ctx.prompts
        scheduler = TurnScheduler(config.interaction_budget)

        # Setup: the moderator opens and picks the first speaker.
        setup_prompt = prompts.moderator_setup.format(
            source_text=config.source_text,
            topic=config.topic,
            roster=registry.roster_text(),
        )
        decision = await self._moderate(session, roster, setup_prompt, "setup")
        self._add_turn(session, Turn(speaker=MODERATOR, type=SETUP, content=decision.moderator_comment, iteration=0))

        while not scheduler.is_complete:
            iteration = scheduler.iteration
            speaker = registry.get(registry.validate(decision.next_speaker))
            logger.info(
                "Panel interaction %d/%d - %s speaking (%d left)",
                iteration, scheduler.budget, speaker.token, scheduler.remaining,
            )

            panel_prompt = prompts.panel_turn.format(
                transcript=format_transcript(session.conversation, registry),
                source_text=config.source_text,
                topic=config.topic,
                speaking_prompt=decision.speaking_prompt,
                speaker_name=speaker.name,
            )
            completion = await self._invoke(
                session, speaker.invoker, f"{speaker.token}_interaction_{iteration}",
                panel_prompt, config.topic,
            )
            scheduler.record_panel_response()
            session.panel_stats[speaker.token] += 1
            self._add_turn(session, Turn(
                speaker=speaker.token,
                type=PANEL_RESPONSE,
                content=completion.content,
                iteration=iteration,
                call_id=completion.call_id,
            ))

            await self._maybe_facilitate(session, roster, iteration)

            if not scheduler.needs_moderator_decision:
                break

            logger.info("Moderator selecting next speaker...")
            decision_prompt = prompts.moderator_decision.format(
                transcript=format_transcript(session.conversation, registry),
                source_text=config.source_text,
                topic=config.topic,
                iteration=iteration,
                budget=scheduler.budget,
                stats=format_stats(session.panel_stats, registry),
            )
            decision = await self._moderate(session, roster, decision_prompt, f"decision_{iteration}")
            self._add_turn(session, Turn(
                speaker=MODERATOR,
                type=MODERATOR_DECISION,
                content=decision.moderator_comment,
                iteration=iteration,
            ))

        logger.info("Generating panel summary...")
        summary_prompt = prompts.panel_summary.format(
            transcript=format_transcript(session.conversation, registry),
            source_text=config.source_text,
            topic=config.topic,
            stats=format_stats(session.panel_stats, registry),
            summary_focus=config.summary_focus,
        )
        return await self._summarize(session, roster, summary_prompt)

    async def _moderate(self, session: Session, roster: Roster, prompt: str, step: str) -> ModeratorDecision:
        if roster.moderator is None:
            raise AgentInvocationError(MODERATOR, f"Roster '{roster.name}' has no moderator")
        completion = await self._invoke(session, roster.moderator, f"moderator_{step}", prompt, session.config.topic)
        decision = parse_moderator_response(completion.content, roster.speakers, step)
        session.moderator_decisions.append(decision)
        if decision.is_fallback:
            session.warnings.append(f"Moderator {step} fell back to keyword selection: {decision.parsing_error}")
        elif decision.parsing_error:
            session.warnings.append(f"Moderator {step}: {decision.parsing_error}")
        return decision

    # ------------------------------------------------------------------
    # Facilitated dialogue
    # ------------------------------------------------------------------

    async def run_dialogue(self, raw: Mapping[str, Any]) -> RunResult:
        """Run a two-agent dialogue with optional facilitator interventions.

        Raises:
            ConfigValidationError: Before any agent is called.
            AgentInvocationError: When the initiator, respondent or summarizer
                call fails, or any other step raises; ``exc.result`` holds the
                failed run.
        """
        config = self.validate_dialogue_config(raw)
        roster = self._ctx.dialogue
        session = self._new_session(DIALOGUE, config, roster.speakers)

        logger.info(
            "Starting dialogue %s with %d iterations, facilitator %s",
            session.run_id,
            config.interaction_budget,
            "enabled" if config.facilitator_enabled else "disabled",
        )

        return await self._drive(session, self._dialogue_turns(session, roster))

    async def _dialogue_turns(self, session: Session, roster: Roster) -> str:
        config = session.config
        registry = roster.speakers
        prompts = self._ctx.prompts
        initiator = registry.get(INITIATOR)
        respondent = registry.get(RESPONDENT)
        scheduler = TurnScheduler(config.interaction_budget)

        opening = prompts.dialogue_opening.format(source_text=config.source_text, topic=config.topic)
        completion = await self._invoke(session, initiator.invoker, "initiator_opening", opening, _DIALOGUE_CONTEXT)
        session.panel_stats[INITIATOR] += 1
        self._add_turn(session, Turn(
            speaker=INITIATOR, type=SETUP, content=completion.content, iteration=0, call_id=completion.call_id,
        ))

        while not scheduler.is_complete:
            iteration = scheduler.iteration
            logger.info("Dialogue iteration %d/%d", iteration, scheduler.budget)

            completion = await self._invoke(
                session, respondent.invoker, f"respondent_iteration_{iteration}",
                prompts.dialogue_reply, _DIALOGUE_CONTEXT, self._dialogue_history(session, RESPONDENT),
            )
            scheduler.record_panel_response()
            session.panel_stats[RESPONDENT] += 1
            self._add_turn(session, Turn(
                speaker=RESPONDENT,
                type=PANEL_RESPONSE,
                content=completion.content,
                iteration=iteration,
                call_id=completion.call_id,
            ))

            await self._maybe_facilitate(session, roster, iteration)

            if scheduler.is_complete:
                break

            completion = await self._invoke(
                session, initiator.invoker, f"initiator_followup_{iteration}",
                prompts.dialogue_followup, _DIALOGUE_CONTEXT, self._dialogue_history(session, INITIATOR),
            )
            session.panel_stats[INITIATOR] += 1
            self._add_turn(session, Turn(
                speaker=INITIATOR,
                type=FOLLOWUP,
                content=completion.content,
                iteration=iteration,
                call_id=completion.call_id,
            ))

        logger.info("Generating conversation summary...")
        summary_prompt = prompts.dialogue_summary.format(
            transcript=format_transcript(session.conversation, registry),
            summary_focus=config.summary_focus,
        )
        return await self._summarize(session, roster, summary_prompt, context=config.summary_focus)

    @staticmethod
    def _dialogue_history(session: Session, speaker: str) -> list[dict[str, str]]:
        """The conversation so far from one participant's point of view."""
        history: list[dict[str, str]] = []
        for turn in session.conversation:
            if turn.is_facilitator:
                history.append({"role": "user", "content": f"Facilitator: {turn.content}"})
            elif turn.speaker == speaker:
                history.append({"role": "assistant", "content": turn.content})
            else:
                history.append({"role": "user", "content": turn.content})
        return history

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    async def _maybe_facilitate(self, session: Session, roster: Roster, iteration: int) -> None:
        enabled = session.config.facilitator_enabled and roster.facilitator is not None
        if not should_intervene(iteration, enabled):
            return

        logger.info("Facilitator intervention at iteration %d...", iteration)
        bundle = FacilitatorContext(
            iteration=iteration,
            history=list(session.conversation),
            source_text=session.config.source_text,
            topic=session.config.topic,
        )
        try:
            completion = await self._facilitate(session, roster, bundle)
        except FacilitatorInvocationError as exc:
            logger.warning("Facilitator intervention %d failed, continuing without it: %s", iteration, exc)
            session.warnings.append(f"Facilitator intervention {iteration} failed: {exc}")
            return

        self._add_turn(session, Turn(
            speaker=FACILITATOR,
            type=FACILITATOR_INTERVENTION,
            content=completion.content,
            iteration=iteration,
            is_facilitator=True,
            call_id=completion.call_id,
        ))
        session.facilitator_interventions.append(FacilitatorIntervention(
            iteration=iteration, content=completion.content, call_id=completion.call_id,
        ))

    async def _facilitate(self, session: Session, roster: Roster, bundle: FacilitatorContext) -> Completion:
        prompt = self._ctx.prompts.facilitator.format(
            iteration=bundle.iteration,
            transcript=format_transcript(bundle.history, roster.speakers),
            source_text=bundle.source_text,
            topic=bundle.topic,
        )
        try:
            return await self._invoke(
                session, roster.facilitator, f"facilitator_iteration_{bundle.iteration}", prompt, _FACILITATOR_CONTEXT,
            )
        except AgentInvocationError as exc:
            raise FacilitatorInvocationError(str(exc)) from exc

    async def _summarize(self, session: Session, roster: Roster, prompt: str, context: str = "") -> str:
        completion = await self._invoke(session, roster.summarizer, "summary", prompt, context)
        self._add_turn(session, Turn(
            speaker=SUMMARIZER,
            type=SUMMARY,
            content=completion.content,
            iteration=session.config.interaction_budget,
            call_id=completion.call_id,
        ))
        return completion.content

    async def _invoke(
        self,
        session: Session,
        invoker: Invoker,
        step_id: str,
        message: str,
        context: str = "",
        history: list[dict[str, str]] | None = None,
    ) -> Completion:
        """Build and execute one call, recording it as a pipeline step.

        Raises:
            AgentInvocationError: Wrapping whatever the invoker or the
                completion service raised.
        """
        role = getattr(invoker, "role", step_id)
        try:
            call = invoker(message, context, history or [])
        except Exception as exc:
            raise AgentInvocationError(role, f"Could not build call for {step_id}: {exc}") from exc

        logger.debug("Step %s: calling %s (%s)", step_id, call.provider, call.model)
        try:
            completion = await self._ctx.completion.complete(call)
        except Exception as exc:
            session.steps.append(StepRecord(
                step_id=step_id, role=call.role, status=FAILED, call_id=call.call_id, error=str(exc),
            ))
            raise AgentInvocationError(call.role, f"{step_id} failed: {exc}") from exc

        session.steps.append(StepRecord(
            step_id=step_id,
            role=call.role,
            status=COMPLETED,
            call_id=completion.call_id,
            latency_sec=completion.latency_sec,
            usage=dict(completion.usage),
        ))
        return completion

    # ------------------------------------------------------------------
    # Session life cycle
    # ------------------------------------------------------------------

    @staticmethod
    def _new_session(pipeline: str, config: SessionConfig, registry: SpeakerRegistry) -> Session:
        return Session(
            run_id=str(uuid.uuid4()),
            pipeline=pipeline,
            config=config,
            panel_stats=registry.empty_stats(),
        )

    def _add_turn(self, session: Session, turn: Turn) -> None:
        session.conversation.append(turn)
        if self._ctx.on_turn is not None:
            self._ctx.on_turn(turn)

    @staticmethod
    def _finalize(session: Session, status: str) -> None:
        session.status = status
        session.ended_at = utc_now()
        started = datetime.fromisoformat(session.started_at)
        ended = datetime.fromisoformat(session.ended_at)
        session.duration_sec = round((ended - started).total_seconds(), 3)

    @staticmethod
    def _result(session: Session, summary: str) -> RunResult:
        config = session.config
        warnings = list(session.warnings)
        return RunResult(
            run_id=session.run_id,
            pipeline=session.pipeline,
            status=session.status,
            conversation=list(session.conversation),
            moderator_decisions=list(session.moderator_decisions),
            panel_stats=dict(session.panel_stats),
            summary=summary,
            metadata={
                "panel_interactions": config.interaction_budget,
                "api_calls": session.api_calls,
                "expected_api_calls": TurnScheduler.expected_api_calls(
                    config.interaction_budget, config.facilitator_enabled
                ),
                "facilitator_enabled": config.facilitator_enabled,
                "facilitator_interventions": len(session.turns_of_type(FACILITATOR_INTERVENTION)),
                "moderator_fallbacks": sum(1 for d in session.moderator_decisions if d.is_fallback),
                "summary_focus": config.summary_focus,
                "total_messages": len(session.conversation),
                "panel_type": config.panel_type,
                "duration_sec": session.duration_sec,
                "warnings": warnings,
            },
            warnings=warnings,
            errors=list(session.errors),
        )

    async def _drive(self, session: Session, turns: Awaitable[str]) -> RunResult:
        """Await the pipeline's turns and settle the session as completed or failed.

        Any error other than AgentInvocationError is wrapped in one, so
        callers always get ``exc.result`` with the partial conversation.
        """
        try:
            summary = await turns
        except AgentInvocationError as exc:
            self._fail(session, exc)
            raise
        except Exception as exc:
            error = AgentInvocationError("orchestrator", f"{type(exc).__name__}: {exc}")
            self._fail(session, error)
            raise error from exc
        return self._complete(session, summary)

    def _complete(self, session: Session, summary: str) -> RunResult:
        self._finalize(session, COMPLETED)
        result = self._result(session, summary)

        if self._ctx.persist is not None:
            try:
                result.output_dir = str(self._ctx.persist(session, result))
            except OSError as exc:
                logger.warning("File generation failed (non-critical): %s", exc)
                result.warnings.append(f"File generation failed: {exc}")

        logger.info(
            "%s run %s completed: %d API calls, stats %s",
            session.pipeline, session.run_id, session.api_calls, session.panel_stats,
        )
        return result

    def _fail(self, session: Session, exc: AgentInvocationError) -> None:
        session.errors.append(str(exc))
        self._finalize(session, FAILED)
        logger.error("%s run %s failed after %d turns: %s", session.pipeline, session.run_id,
                     len(session.conversation), exc)
        exc.result = self._result(session, summary="")
