"""Unit tests for colloquy/inbox.py, no API calls."""

import textwrap
from pathlib import Path

from colloquy.inbox import archive_file, ensure_dirs, parse_file, scan_inbox, session_input
from colloquy.validation import validate_session_config


def test_parse_file_no_frontmatter(tmp_path: Path) -> None:
    """File without frontmatter returns full content and empty metadata."""
    f = tmp_path / "article.md"
    f.write_text("Remote work is here to stay.", encoding="utf-8")
    content, metadata = parse_file(f)
    assert content == "Remote work is here to stay."
    assert metadata == {}


def test_parse_file_with_frontmatter(tmp_path: Path) -> None:
    """File with frontmatter returns metadata keys and body content."""
    f = tmp_path / "article.md"
    f.write_text(
        textwrap.dedent("""\
            ---
            subject: What does this mean for managers?
            interactions: 4
            pipeline: dialogue
            facilitator: true
            ---
            Remote work is here to stay.
        """),
        encoding="utf-8",
    )
    content, metadata = parse_file(f)
    assert content == "Remote work is here to stay."
    assert metadata["subject"] == "What does this mean for managers?"
    assert metadata["interactions"] == 4
    assert metadata["pipeline"] == "dialogue"
    assert metadata["facilitator"] is True


def test_session_input_maps_frontmatter_fields() -> None:
    raw = session_input(
        "Source body",
        {
            "subject": "Subject",
            "interactions": 6,
            "panel_type": "security",
            "facilitator": True,
            "summary_focus": "Risks",
            "pipeline": "panel",
        },
    )
    assert raw == {
        "sourceText": "Source body",
        "discussionSubject": "Subject",
        "panelInteractions": 6,
        "panelType": "security",
        "facilitatorEnabled": True,
        "summaryFocus": "Risks",
    }


def test_session_input_validates() -> None:
    raw = session_input("Source body", {"topic": "Subject", "interactions": 2})
    config = validate_session_config(raw)
    assert config.topic == "Subject"
    assert config.interaction_budget == 2


def test_archive_file_success(tmp_path: Path) -> None:
    """archive_file() moves file to archive dir with timestamp prefix."""
    inbox = tmp_path / "inbox"
    archive = tmp_path / "archive"
    ensure_dirs(inbox, archive)

    src = inbox / "my-article.md"
    src.write_text("An article", encoding="utf-8")

    dest = archive_file(src, archive)

    assert not src.exists(), "Source should be moved"
    assert dest.exists(), "Destination should exist"
    assert dest.parent == archive
    # Timestamp prefix: YYYY-MM-DDTHHMM_my-article.md
    assert dest.name.endswith("_my-article.md")
    assert not dest.name.startswith("FAILED_")


def test_archive_file_failed(tmp_path: Path) -> None:
    """archive_file(failed=True) prefixes filename with FAILED_."""
    inbox = tmp_path / "inbox"
    archive = tmp_path / "archive"
    ensure_dirs(inbox, archive)

    src = inbox / "broken.md"
    src.write_text("Bad article", encoding="utf-8")

    dest = archive_file(src, archive, failed=True)

    assert not src.exists()
    assert dest.name.startswith("FAILED_")
    assert "broken.md" in dest.name


def test_scan_inbox_empty(tmp_path: Path) -> None:
    """scan_inbox() on an empty directory returns an empty list."""
    inbox = tmp_path / "inbox"
    inbox.mkdir()
    assert scan_inbox(inbox) == []


def test_scan_inbox_only_markdown(tmp_path: Path) -> None:
    (tmp_path / "a.md").write_text("a", encoding="utf-8")
    (tmp_path / "b.txt").write_text("b", encoding="utf-8")
    assert [p.name for p in scan_inbox(tmp_path)] == ["a.md"]
