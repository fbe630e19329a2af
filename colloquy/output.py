"""Rich console output and per-run artifact files for conversation results."""

import json
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from colloquy.models import (
    FACILITATOR_INTERVENTION,
    MODERATOR,
    MODERATOR_DECISION,
    SETUP,
    SUMMARY,
    RunResult,
    Session,
    Turn,
)

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

MAX_FOLDER_ATTEMPTS = 100

_TURN_STYLES = {
    SETUP: "cyan",
    MODERATOR_DECISION: "cyan",
    FACILITATOR_INTERVENTION: "magenta",
    SUMMARY: "green",
}


def _preview(content: str, words: int = 50) -> str:
    """Return first N words of a turn."""
    all_words = content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _label(turn: Turn, names: dict[str, str] | None = None) -> str:
    if turn.is_facilitator:
        return "Facilitator"
    if turn.speaker == MODERATOR:
        return "Moderator"
    if names and turn.speaker in names:
        return names[turn.speaker]
    return turn.speaker.title()


def print_turn(turn: Turn, names: dict[str, str] | None = None) -> None:
    """Print a brief preview of one turn as it happens."""
    if turn.type == SUMMARY or not turn.content.strip():
        return
    console.print(
        Panel(
            _preview(turn.content),
            title=f"[bold]{_label(turn, names)}[/bold] ({turn.type})",
            subtitle=f"iteration {turn.iteration}",
            border_style=_TURN_STYLES.get(turn.type, "dim"),
        )
    )


def print_result(result: RunResult, names: dict[str, str] | None = None) -> None:
    """Print the summary and run statistics using Rich markdown."""
    console.print(Rule(f"[bold green]{result.pipeline.title()} Summary[/bold green]"))
    meta = result.metadata
    stats = ", ".join(f"{(names or {}).get(k, k)}: {v}" for k, v in result.panel_stats.items())
    console.print(
        Text(
            f"Interactions: {meta.get('panel_interactions')} | "
            f"API calls: {meta.get('api_calls')}/{meta.get('expected_api_calls')} | "
            f"Facilitator interventions: {meta.get('facilitator_interventions', 0)} | "
            f"Duration: {meta.get('duration_sec') or 0:.1f}s",
            style="dim",
        )
    )
    console.print(Text(f"Panel stats: {stats}", style="dim"))
    console.print(Markdown(result.summary))
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


def make_run_dir(base_dir: Path, facilitated: bool = False, now: datetime | None = None) -> Path:
    """Create and return an unused ``YY_MM_DD_HH_MM_SS_N[_facilitated]`` folder in base_dir.

    Each name is claimed with an exclusive mkdir, so two runs started in the
    same second get different folders.

    Raises:
        FileExistsError: All collision IDs are taken.
    """
    stamp = (now or datetime.now()).strftime("%y_%m_%d_%H_%M_%S")
    suffix = "_facilitated" if facilitated else ""
    for run_number in range(1, MAX_FOLDER_ATTEMPTS + 1):
        run_dir = base_dir / f"{stamp}_{run_number}{suffix}"
        try:
            run_dir.mkdir(exist_ok=False)
        except FileExistsError:
            continue
        return run_dir
    raise FileExistsError(f"Unable to generate unique folder name after {MAX_FOLDER_ATTEMPTS} attempts")


def conversation_markdown(session: Session, result: RunResult, names: dict[str, str] | None = None) -> str:
    config = session.config
    lines: list[str] = [
        f"# {result.pipeline.title()} Conversation: {config.topic[:80]}",
        "",
        f"**Run ID:** {result.run_id}",
        f"**Started:** {session.started_at}",
        f"**Panel type:** {config.panel_type}",
        f"**Interactions:** {config.interaction_budget}",
        f"**Facilitator:** {'enabled' if config.facilitator_enabled else 'disabled'}",
        f"**API calls:** {result.metadata.get('api_calls')}",
        "",
        "## Source Material",
        "",
        config.source_text,
        "",
        "---",
        "",
    ]

    for turn in result.conversation:
        if turn.type == SUMMARY or not turn.content.strip():
            continue
        heading = f"### {_label(turn, names)}"
        if turn.type == FACILITATOR_INTERVENTION:
            heading += f" (intervention after iteration {turn.iteration})"
        elif turn.iteration:
            heading += f" (iteration {turn.iteration})"
        lines += [heading, "", turn.content, ""]

    return "\n".join(lines)


def summary_markdown(session: Session, result: RunResult, names: dict[str, str] | None = None) -> str:
    config = session.config
    lines: list[str] = [
        f"# Summary: {config.topic[:80]}",
        "",
        f"**Run ID:** {result.run_id}",
        f"**Focus:** {config.summary_focus}",
        "",
        result.summary,
        "",
        "## Participation",
        "",
    ]
    for token, count in result.panel_stats.items():
        lines.append(f"- {(names or {}).get(token, token)}: {count}")
    lines += [
        "",
        "## Context",
        "",
        f"- **Source material length:** {len(config.source_text)} characters",
        f"- **Interactions:** {config.interaction_budget}",
        f"- **Facilitator interventions:** {len(session.facilitator_interventions)}",
        "",
    ]
    return "\n".join(lines)


class RunWriter:
    """Persists a finished run under ``<output_dir>/<pipeline>/<folder>/``."""

    def __init__(self, output_dir: Path, names: dict[str, str] | None = None) -> None:
        self.output_dir = Path(output_dir)
        self.names = names

    def __call__(self, session: Session, result: RunResult) -> Path:
        base_dir = self.output_dir / session.pipeline
        base_dir.mkdir(parents=True, exist_ok=True)
        run_dir = make_run_dir(base_dir, facilitated=session.config.facilitator_enabled)

        (run_dir / "conversation.md").write_text(
            conversation_markdown(session, result, self.names), encoding="utf-8"
        )
        (run_dir / "summary.md").write_text(summary_markdown(session, result, self.names), encoding="utf-8")

        data = result.to_dict()
        data["outputDir"] = str(run_dir)
        data["config"] = asdict(session.config)
        data["steps"] = [asdict(step) for step in session.steps]
        if result.moderator_decisions:
            (run_dir / "moderator_decisions.json").write_text(
                json.dumps(data["moderatorDecisions"], indent=2, ensure_ascii=False), encoding="utf-8"
            )
        (run_dir / "data.json").write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

        logger.info("Run saved to: %s", run_dir)
        return run_dir
