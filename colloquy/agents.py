"""Agent invokers: turn (message, context, history) into a CallDescriptor."""

import logging
import uuid

from config.config_loader import AgentConfig, ModelConfig
from colloquy.models import CallDescriptor

logger = logging.getLogger(__name__)


class AgentInvoker:
    """Builds call descriptors for one agent role.

    The invoker never talks to a provider itself; the CompletionService
    executes whatever it returns.
    """

    def __init__(self, role: str, agent: AgentConfig, models: dict[str, ModelConfig]) -> None:
        if agent.model not in models:
            raise ValueError(f"Agent '{role}' references unknown model '{agent.model}'")
        self.role = role
        self._agent = agent
        self._model = models[agent.model]

    @property
    def provider(self) -> str:
        return self._model.name

    def __call__(
        self,
        message: str,
        context: str = "",
        history: list[dict[str, str]] | None = None,
    ) -> CallDescriptor:
        message = (message or "").strip()
        if not message:
            raise ValueError(f"Agent '{self.role}' requires a non-empty message")

        call = CallDescriptor(
            call_id=f"{self.role}-{uuid.uuid4().hex[:12]}",
            role=self.role,
            provider=self._model.name,
            model=self._model.model,
            system_prompt=self._agent.system_prompt,
            user_prompt=message,
            context=context,
            history=list(history or []),
            temperature=self._agent.temperature,
            max_tokens=self._model.max_tokens,
            response_format="json" if self._agent.json_output else None,
        )
        logger.debug("Built call %s for %s via %s/%s", call.call_id, self.role, call.provider, call.model)
        return call
