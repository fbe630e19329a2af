"""Shared pytest fixtures."""

import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from config.config_loader import AppConfig, ModelConfig, load_config
from colloquy.completion import CompletionService
from colloquy.context import build_context
from colloquy.models import CallDescriptor, Completion
from colloquy.orchestrator import ConversationOrchestrator
from colloquy.providers.base import AIProvider
from colloquy.speakers import Speaker, SpeakerRegistry


def moderator_json(next_speaker: str = "challenger", comment: str = "Let's hear another view.") -> str:
    return json.dumps({
        "moderator_comment": comment,
        "next_speaker": next_speaker,
        "speaking_prompt": f"{next_speaker}, what do you make of this?",
        "reasoning": "Balance the discussion.",
    })


class MockProvider(AIProvider):
    """Test double AIProvider.

    ``replies`` maps a call role to the content to return: a string, a list
    of strings consumed in order, or an exception to raise.
    """

    def __init__(self, provider_name: str = "mock", replies: dict[str, Any] | None = None) -> None:
        self._name = provider_name
        self.replies: dict[str, Any] = {"moderator": moderator_json()}
        self.replies.update(replies or {})
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because complete is defined in the class body below.
        self.complete = AsyncMock(side_effect=self._reply)  # type: ignore[assignment]

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    def roles(self) -> list[str]:
        """Roles of every call made so far, in order."""
        return [c.args[0].role for c in self.complete.call_args_list]

    def _reply(self, call: CallDescriptor) -> Completion:
        reply = self.replies.get(call.role, f"Response from {call.role}")
        if isinstance(reply, list):
            reply = reply.pop(0) if len(reply) > 1 else reply[0]
        if isinstance(reply, Exception):
            raise reply
        return Completion(
            content=reply,
            call_id=call.call_id,
            provider=self._name,
            model="mock-model",
            latency_sec=0.1,
            usage={"input_tokens": 10, "output_tokens": 5},
        )

    async def complete(self, call: CallDescriptor) -> Completion:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return self._reply(call)


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="test",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    config = load_config()
    config.defaults.output_dir = tmp_path / "output"
    return config


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def completion_service(app_config: AppConfig, mock_provider: MockProvider) -> CompletionService:
    """Every configured model routes to the same mock provider."""
    return CompletionService({name: mock_provider for name in app_config.models})


@pytest.fixture
def persist() -> MagicMock:
    return MagicMock(return_value=Path("/tmp/run"))


@pytest.fixture
def orchestrator(app_config: AppConfig, completion_service: CompletionService, persist) -> ConversationOrchestrator:
    return ConversationOrchestrator(build_context(app_config, completion_service, persist=persist))


@pytest.fixture
def panel_input() -> dict[str, Any]:
    return {
        "sourceText": "Test content",
        "discussionSubject": "Test subject",
        "panelInteractions": 2,
    }


@pytest.fixture
def discussion_registry() -> SpeakerRegistry:
    speakers = [
        Speaker("challenger", "The Challenger", MagicMock(), "Questions assumptions"),
        Speaker("analyst", "The Analyst", MagicMock(), "Weighs evidence"),
        Speaker("explorer", "The Explorer", MagicMock(), "Looks for new angles"),
    ]
    return SpeakerRegistry(speakers, default="analyst")


@pytest.fixture
def security_registry() -> SpeakerRegistry:
    speakers = [
        Speaker("offensive", "Red Team", MagicMock(), keywords=("red team", "attacker")),
        Speaker("defensive", "Blue Team", MagicMock(), keywords=("blue team", "defender")),
        Speaker("risk", "Risk Assessment", MagicMock(), keywords=("risk assessment",)),
    ]
    return SpeakerRegistry(speakers, default="defensive")
