"""Conversation model: turns, append-only transcript, options and session."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_TOOL = "tool"
ALLOWED_ROLES = (ROLE_SYSTEM, ROLE_USER, ROLE_ASSISTANT, ROLE_TOOL)

MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    content: str
    tool_calls: Optional[Tuple[Dict[str, Any], ...]] = None

    def __post_init__(self) -> None:
        if self.role not in ALLOWED_ROLES:
            raise ValueError("unsupported role: {0}".format(self.role))


class Transcript:
    """Ordered, append-only turn history replayed on every request."""

    def __init__(self) -> None:
        self._turns: List[ConversationTurn] = []

    def append(self, turn: ConversationTurn) -> None:
        self._turns.append(turn)

    @property
    def turns(self) -> Tuple[ConversationTurn, ...]:
        return tuple(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[ConversationTurn]:
        return iter(tuple(self._turns))


@dataclass(frozen=True)
class ChatOptions:
    temperature: float = 0.7
    max_tokens: int = 512
    stream: bool = False

    def __post_init__(self) -> None:
        if not MIN_TEMPERATURE <= float(self.temperature) <= MAX_TEMPERATURE:
            raise ValueError(
                "temperature must be within [{0}, {1}]: {2}".format(
                    MIN_TEMPERATURE,
                    MAX_TEMPERATURE,
                    self.temperature,
                )
            )
        if int(self.max_tokens) < 1:
            raise ValueError("max_tokens must be >= 1: {0}".format(self.max_tokens))


@dataclass
class ChatSession:
    kind: str
    model: str
    options: ChatOptions = field(default_factory=ChatOptions)
    system_prompt: str = ""
    transcript: Transcript = field(default_factory=Transcript)


@dataclass(frozen=True)
class ChatReply:
    turn: ConversationTurn
    usage: Dict[str, int] = field(default_factory=dict)
    finish_reason: str = ""
