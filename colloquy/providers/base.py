"""Abstract base for all AI model providers."""

from abc import ABC, abstractmethod

from colloquy.models import CallDescriptor, Completion


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


def system_text(call: CallDescriptor) -> str:
    """System prompt with the call's discussion context appended."""
    if call.context:
        return f"{call.system_prompt}\n\nDiscussion Context: {call.context}"
    return call.system_prompt


def chat_messages(call: CallDescriptor) -> list[dict[str, str]]:
    """History followed by the user prompt, in role/content form.

    Consecutive messages with the same role are merged and the list always
    opens with a user message, which the Anthropic API requires.
    """
    messages: list[dict[str, str]] = []
    for m in [*call.history, {"role": "user", "content": call.user_prompt}]:
        role = "assistant" if m.get("role") == "assistant" else "user"
        content = m.get("content", "")
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"] += "\n\n" + content
        else:
            messages.append({"role": role, "content": content})
    if messages[0]["role"] != "user":
        messages.insert(0, {"role": "user", "content": "Let's begin the conversation."})
    return messages


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'gemini', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def complete(self, call: CallDescriptor) -> Completion:
        """Execute one call descriptor.

        Args:
            call: Prompts, history and sampling parameters for this call.

        Returns:
            Completion with content, usage and the call's id.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...
