"""Exception taxonomy for conversation runs."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from colloquy.models import RunResult


class ColloquyError(Exception):
    """Base class for all orchestration errors."""


class ConfigValidationError(ColloquyError):
    """Session config rejected before any agent was called."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Configuration validation failed: " + "; ".join(self.errors))


class AgentInvocationError(ColloquyError):
    """A panelist, moderator, initiator or summarizer call failed; the run is aborted.

    ``result`` carries the failed RunResult with the partial conversation.
    """

    def __init__(self, role: str, message: str, result: RunResult | None = None) -> None:
        self.role = role
        self.result = result
        super().__init__(f"[{role}] {message}")

    @property
    def errors(self) -> list[str]:
        return self.result.errors if self.result is not None else [str(self)]


class ModeratorParsingError(ColloquyError):
    """Moderator output could not be read as a directive. Always recovered locally."""


class FacilitatorInvocationError(ColloquyError):
    """Facilitator call failed. The run continues without that intervention."""
