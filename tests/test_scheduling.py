"""Tests for colloquy/scheduling.py."""

import pytest

from colloquy.scheduling import TurnScheduler, facilitator_turns, should_intervene


@pytest.mark.parametrize("budget", range(2, 16))
def test_expected_api_calls(budget):
    assert TurnScheduler.expected_api_calls(budget) == 2 * budget + 1
    assert len(TurnScheduler.expected_sequence(budget)) == 2 * budget + 1


@pytest.mark.parametrize("budget", [2, 4, 6, 14])
def test_expected_api_calls_with_facilitator(budget):
    assert TurnScheduler.expected_api_calls(budget, True) == 2 * budget + 1 + budget // 2


def test_expected_sequence():
    assert TurnScheduler.expected_sequence(2) == ["setup", "panel", "moderator", "panel", "summary"]
    assert TurnScheduler.expected_sequence(2, facilitator_enabled=True) == [
        "setup", "panel", "moderator", "panel", "facilitator", "summary",
    ]


def test_should_intervene():
    assert [i for i in range(0, 9) if should_intervene(i, True)] == [2, 4, 6, 8]
    assert not any(should_intervene(i, False) for i in range(0, 9))


def test_facilitator_turns():
    assert facilitator_turns(4, True) == 2
    assert facilitator_turns(5, True) == 2
    assert facilitator_turns(4, False) == 0


def test_scheduler_progress():
    scheduler = TurnScheduler(3)
    assert scheduler.iteration == 1
    assert not scheduler.needs_moderator_decision

    scheduler.record_panel_response()
    assert scheduler.needs_moderator_decision
    assert scheduler.remaining == 2

    scheduler.record_panel_response()
    scheduler.record_panel_response()
    assert scheduler.is_complete
    assert not scheduler.needs_moderator_decision
    assert scheduler.remaining == 0


def test_scheduler_rejects_overrun():
    scheduler = TurnScheduler(2)
    scheduler.record_panel_response()
    scheduler.record_panel_response()
    with pytest.raises(RuntimeError, match="already spent"):
        scheduler.record_panel_response()


def test_scheduler_rejects_bad_budget():
    with pytest.raises(ValueError):
        TurnScheduler(0)
