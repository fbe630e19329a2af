"""Speaker registry: the fixed, ordered set of panel tokens and their invokers."""

import logging
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from colloquy.models import CallDescriptor

logger = logging.getLogger(__name__)

Invoker = Callable[..., CallDescriptor]

_PANEL_ALIAS = re.compile(r"\bpanel_([0-9]{1,4})\b", re.IGNORECASE | re.ASCII)


@dataclass(frozen=True)
class Speaker:
    token: str
    name: str
    invoker: Invoker
    description: str = ""
    keywords: tuple[str, ...] = field(default_factory=tuple)


class SpeakerRegistry:
    """Ordered speaker tokens with the invoker bound to each.

    Tokens are lowercase. ``panel_N`` is accepted as an alias for the N-th
    speaker (1-based), which is how moderator prompts name panelists.
    """

    def __init__(self, speakers: list[Speaker], default: str) -> None:
        if not speakers:
            raise ValueError("SpeakerRegistry needs at least one speaker")
        tokens = [s.token for s in speakers]
        if len(set(tokens)) != len(tokens):
            raise ValueError(f"Duplicate speaker tokens: {tokens}")
        if default not in tokens:
            raise ValueError(f"Default speaker '{default}' is not one of {tokens}")

        self._speakers = {s.token: s for s in speakers}
        self._order = tuple(tokens)
        self.default = default

        # One named group per speaker, in registry order: at equal positions the
        # earlier speaker wins, including when two speakers share a keyword.
        groups = []
        for index, s in enumerate(speakers):
            words = "|".join(re.escape(word) for word in (s.token, *s.keywords))
            groups.append(f"(?P<s{index}>{words})")
        self._keyword_re = re.compile(rf"\b(?:{'|'.join(groups)})", re.IGNORECASE)

    @property
    def tokens(self) -> tuple[str, ...]:
        return self._order

    def __contains__(self, token: object) -> bool:
        return token in self._speakers

    def __iter__(self) -> Iterator[Speaker]:
        return (self._speakers[t] for t in self._order)

    def __len__(self) -> int:
        return len(self._order)

    def get(self, token: str) -> Speaker:
        return self._speakers[token]

    def alias(self, token: str) -> str:
        return f"panel_{self._order.index(token) + 1}"

    def resolve(self, value: object) -> str | None:
        """Map a moderator-supplied value to a token, or None if unrecognised."""
        if not isinstance(value, str):
            return None
        candidate = value.strip().lower()
        if candidate in self._speakers:
            return candidate
        match = _PANEL_ALIAS.fullmatch(candidate)
        if match:
            index = int(match.group(1)) - 1
            if 0 <= index < len(self._order):
                return self._order[index]
            return None
        for s in self._speakers.values():
            if candidate == s.name.lower():
                return s.token
        return None

    def validate(self, value: object) -> str:
        """Return the token for value, falling back to the default speaker."""
        token = self.resolve(value)
        if token is None:
            logger.warning("Unknown speaker %r, assigning default '%s'", value, self.default)
            return self.default
        return token

    def scan(self, text: str) -> str | None:
        """Find a speaker mentioned in free text.

        Precedence: the first valid ``panel_N`` alias, then the earliest
        token or keyword occurrence. Returns None when nothing matches.
        """
        if not text:
            return None
        for match in _PANEL_ALIAS.finditer(text):
            index = int(match.group(1)) - 1
            if 0 <= index < len(self._order):
                return self._order[index]
        match = self._keyword_re.search(text)
        if match:
            return self._order[int(match.lastgroup[1:])]
        return None

    def roster_text(self) -> str:
        return "\n".join(
            f"- {s.token} ({self.alias(s.token)}, {s.name}): {s.description}" for s in self
        )

    def empty_stats(self) -> dict[str, int]:
        return {t: 0 for t in self._order}
