"""Turn budget tracking and facilitator cadence."""

MIN_BUDGET = 2
MAX_BUDGET = 15
FACILITATOR_INTERVAL = 2


def should_intervene(iteration: int, enabled: bool) -> bool:
    """True when the facilitator speaks after this iteration (every second one)."""
    return bool(enabled) and iteration > 0 and iteration % FACILITATOR_INTERVAL == 0


def facilitator_turns(budget: int, enabled: bool) -> int:
    return sum(1 for i in range(1, budget + 1) if should_intervene(i, enabled))


class TurnScheduler:
    """Counts panel responses against the budget.

    Every panel response except the last is followed by one moderator
    decision; the last goes straight to the summary.
    """

    def __init__(self, budget: int) -> None:
        if budget < 1:
            raise ValueError(f"budget must be positive, got {budget}")
        self.budget = budget
        self.panel_responses = 0

    @property
    def iteration(self) -> int:
        """1-based index of the next panel response."""
        return self.panel_responses + 1

    @property
    def remaining(self) -> int:
        return self.budget - self.panel_responses

    @property
    def is_complete(self) -> bool:
        return self.panel_responses >= self.budget

    @property
    def needs_moderator_decision(self) -> bool:
        return 0 < self.panel_responses < self.budget

    def record_panel_response(self) -> int:
        if self.is_complete:
            raise RuntimeError(f"Panel budget of {self.budget} already spent")
        self.panel_responses += 1
        return self.panel_responses

    @staticmethod
    def expected_api_calls(budget: int, facilitator_enabled: bool = False) -> int:
        """Setup + budget panel calls + (budget - 1) decisions + summary, plus facilitator turns."""
        return 2 * budget + 1 + facilitator_turns(budget, facilitator_enabled)

    @staticmethod
    def expected_sequence(budget: int, facilitator_enabled: bool = False) -> list[str]:
        sequence = ["setup"]
        for i in range(1, budget + 1):
            sequence.append("panel")
            if should_intervene(i, facilitator_enabled):
                sequence.append("facilitator")
            if i < budget:
                sequence.append("moderator")
        sequence.append("summary")
        return sequence
