"""Tests for colloquy/output.py."""

import json
from datetime import datetime
from pathlib import Path

import pytest

from colloquy.models import PANEL_RESPONSE, SETUP, SUMMARY, ModeratorDecision, RunResult, Session, SessionConfig, Turn
from colloquy.output import RunWriter, conversation_markdown, make_run_dir, summary_markdown

_NOW = datetime(2025, 3, 7, 14, 5, 9)


@pytest.fixture
def finished_run() -> tuple[Session, RunResult]:
    config = SessionConfig(
        source_text="The source material.",
        topic="The subject",
        interaction_budget=2,
        summary_focus="Key insights",
    )
    conversation = [
        Turn(speaker="moderator", type=SETUP, content="Welcome to the panel.", iteration=0),
        Turn(speaker="analyst", type=PANEL_RESPONSE, content="The evidence suggests X.", iteration=1),
        Turn(speaker="summarizer", type=SUMMARY, content="## Summary\nX wins.", iteration=2),
    ]
    session = Session(run_id="run-1", pipeline="panel", config=config, conversation=conversation)
    result = RunResult(
        run_id="run-1",
        pipeline="panel",
        status="completed",
        conversation=conversation,
        moderator_decisions=[ModeratorDecision(next_speaker="analyst", speaking_prompt="Go ahead.")],
        panel_stats={"challenger": 0, "analyst": 1, "explorer": 0},
        summary="## Summary\nX wins.",
        metadata={"panel_interactions": 2, "api_calls": 5},
    )
    return session, result


def test_run_dir_format(tmp_path: Path):
    run_dir = make_run_dir(tmp_path, now=_NOW)
    assert run_dir == tmp_path / "25_03_07_14_05_09_1"
    assert run_dir.is_dir()


def test_run_dir_facilitated_suffix(tmp_path: Path):
    assert make_run_dir(tmp_path, facilitated=True, now=_NOW).name == "25_03_07_14_05_09_1_facilitated"


def test_run_dir_skips_existing(tmp_path: Path):
    (tmp_path / "25_03_07_14_05_09_1").mkdir()
    (tmp_path / "25_03_07_14_05_09_2").mkdir()
    assert make_run_dir(tmp_path, now=_NOW).name == "25_03_07_14_05_09_3"


def test_run_dir_same_second_gets_distinct_folders(tmp_path: Path):
    first = make_run_dir(tmp_path, now=_NOW)
    second = make_run_dir(tmp_path, now=_NOW)
    assert first != second
    assert second.name == "25_03_07_14_05_09_2"


def test_run_dir_gives_up_after_100(tmp_path: Path):
    for n in range(1, 101):
        (tmp_path / f"25_03_07_14_05_09_{n}").mkdir()
    with pytest.raises(FileExistsError):
        make_run_dir(tmp_path, now=_NOW)


def test_conversation_markdown(finished_run):
    session, result = finished_run
    text = conversation_markdown(session, result, {"analyst": "The Analyst"})
    assert "# Panel Conversation: The subject" in text
    assert "The source material." in text
    assert "### The Analyst (iteration 1)" in text
    assert "### Moderator" in text
    assert "X wins." not in text


def test_summary_markdown(finished_run):
    session, result = finished_run
    text = summary_markdown(session, result)
    assert "**Focus:** Key insights" in text
    assert "## Summary\nX wins." in text
    assert "- analyst: 1" in text


def test_run_writer_creates_all_files(tmp_path: Path, finished_run):
    session, result = finished_run
    run_dir = RunWriter(tmp_path / "output")(session, result)

    assert run_dir.parent == tmp_path / "output" / "panel"
    assert sorted(p.name for p in run_dir.iterdir()) == [
        "conversation.md", "data.json", "moderator_decisions.json", "summary.md",
    ]
    data = json.loads((run_dir / "data.json").read_text(encoding="utf-8"))
    assert data["runId"] == "run-1"
    assert data["pipeline"] == {"name": "panel", "status": "completed"}
    assert data["metadata"]["apiCalls"] == 5
    assert data["config"]["topic"] == "The subject"
    decisions = json.loads((run_dir / "moderator_decisions.json").read_text(encoding="utf-8"))
    assert decisions[0]["nextSpeaker"] == "analyst"


def test_run_writer_skips_decisions_file_without_decisions(tmp_path: Path, finished_run):
    session, result = finished_run
    result.moderator_decisions = []
    run_dir = RunWriter(tmp_path)(session, result)
    assert not (run_dir / "moderator_decisions.json").exists()


def test_run_writer_two_runs_same_second(tmp_path: Path, finished_run):
    session, result = finished_run
    writer = RunWriter(tmp_path)
    first = writer(session, result)
    second = writer(session, result)
    assert first != second
