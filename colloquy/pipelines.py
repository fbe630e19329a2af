"""Static pipeline registry: name -> runner and what the pipeline can do.

``PIPELINES`` is the frozen table of built-in pipelines. A process that needs
more builds its own ``PipelineRegistry`` once and passes it where pipelines
are looked up; registering never touches module state.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from colloquy.errors import ConfigValidationError
from colloquy.models import RunResult
from colloquy.orchestrator import DIALOGUE, PANEL, ConversationOrchestrator
from colloquy.validation import requested_features


@dataclass(frozen=True)
class Capabilities:
    uses_moderator: bool
    supports_facilitator: bool
    supports_panel_types: bool = False


@dataclass(frozen=True)
class PipelineSpec:
    name: str
    slug: str
    description: str
    runner: str  # ConversationOrchestrator method name
    capabilities: Capabilities


PIPELINES: Mapping[str, PipelineSpec] = MappingProxyType({
    PANEL: PipelineSpec(
        name=PANEL,
        slug="moderatedPanel",
        description="A moderator picks which panelist speaks next, then a summarizer wraps up.",
        runner="run_panel",
        capabilities=Capabilities(uses_moderator=True, supports_facilitator=True, supports_panel_types=True),
    ),
    DIALOGUE: PipelineSpec(
        name=DIALOGUE,
        slug="facilitatedDialogue",
        description="Two agents alternate, with optional facilitator interventions every second iteration.",
        runner="run_dialogue",
        capabilities=Capabilities(uses_moderator=False, supports_facilitator=True),
    ),
})


class PipelineRegistry:
    """The pipelines one process can run, seeded with the built-in ones."""

    def __init__(self, specs: Mapping[str, PipelineSpec] = PIPELINES) -> None:
        self._specs: dict[str, PipelineSpec] = dict(specs)

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __iter__(self) -> Iterator[str]:
        return iter(self._specs)

    def register(self, spec: PipelineSpec) -> None:
        """Add a pipeline. Raises ValueError if the name or slug is taken."""
        for existing in self._specs.values():
            if spec.name == existing.name or spec.slug == existing.slug:
                raise ValueError(f"Pipeline '{spec.name}' ({spec.slug}) is already registered")
        if not callable(getattr(ConversationOrchestrator, spec.runner, None)):
            raise ValueError(f"Pipeline '{spec.name}' names unknown runner '{spec.runner}'")
        self._specs[spec.name] = spec

    def get(self, name: str) -> PipelineSpec:
        """Look a pipeline up by name or slug.

        Raises:
            KeyError: Listing the registered pipeline names.
        """
        if name in self._specs:
            return self._specs[name]
        for spec in self._specs.values():
            if spec.slug.lower() == name.lower():
                return spec
        raise KeyError(f"Unknown pipeline '{name}'. Known pipelines: {', '.join(sorted(self._specs))}")


def get_pipeline(name: str, registry: PipelineRegistry | None = None) -> PipelineSpec:
    return (registry if registry is not None else PipelineRegistry()).get(name)


def check_capabilities(spec: PipelineSpec, raw: Mapping[str, Any]) -> None:
    """Reject input asking for a feature the pipeline does not have.

    Raises:
        ConfigValidationError: Listing every unsupported option.
    """
    requested = requested_features(raw)
    errors: list[str] = []
    if "panel_type" in requested and not spec.capabilities.supports_panel_types:
        errors.append(f"Pipeline '{spec.name}' does not support panelType")
    if "facilitator" in requested and not spec.capabilities.supports_facilitator:
        errors.append(f"Pipeline '{spec.name}' does not support facilitatorEnabled")
    if errors:
        raise ConfigValidationError(errors)


async def run_pipeline(
    orchestrator: ConversationOrchestrator,
    name: str,
    raw: Mapping[str, Any],
    registry: PipelineRegistry | None = None,
) -> RunResult:
    spec = get_pipeline(name, registry)
    check_capabilities(spec, raw)
    runner = getattr(orchestrator, spec.runner)
    return await runner(raw)
