"""Integration tests: real API calls, no mocks. Requires .env with the keys the discussion panel uses."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

load_dotenv()

_AVAILABLE_KEYS = [
    k for k in ["ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY", "OPENROUTER_API_KEY"]
    if os.environ.get(k, "").strip()
]
pytestmark = pytest.mark.integration

if len(_AVAILABLE_KEYS) < 4:
    pytestmark = pytest.mark.skip(reason=f"Need all 4 API keys, found {len(_AVAILABLE_KEYS)}")


async def test_full_panel_pipeline(tmp_path: Path):
    """Run a real two-interaction panel, verify the call count and artifacts."""
    from config.config_loader import load_config
    from colloquy.cli import _build_all_providers
    from colloquy.completion import CompletionService
    from colloquy.context import build_context
    from colloquy.orchestrator import ConversationOrchestrator
    from colloquy.output import RunWriter

    config = load_config()
    providers = _build_all_providers(config)
    orchestrator = ConversationOrchestrator(
        build_context(config, CompletionService(providers), persist=RunWriter(tmp_path / "output"))
    )

    result = await orchestrator.run_panel({
        "sourceText": "Small teams often debate whether to keep services in one repository or split them.",
        "discussionSubject": "Should a five-person team use a monorepo?",
        "panelInteractions": 2,
    })

    assert result.status == "completed"
    assert result.metadata["api_calls"] == 5
    assert result.summary
    run_dir = Path(result.output_dir)
    assert (run_dir / "conversation.md").exists()
    assert (run_dir / "data.json").exists()
