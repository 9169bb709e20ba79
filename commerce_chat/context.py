from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from .prompts import SYSTEM_PROMPT, TOOL_FOLLOW_UP_PREFIX
from .repository import Message, SenderType


@dataclass(frozen=True)
class ContextEntry:
    role: str  # 'system' | 'user' | 'assistant' | 'tool'
    content: str


_ROLE_BY_SENDER = {
    SenderType.USER: "user",
    SenderType.AI: "assistant",
}


def build_context(history: Iterable[Message], new_message: str) -> List[ContextEntry]:
    """System prompt, prior messages in sequence order, then the new user message.

    ``history`` must not already contain ``new_message``.
    """
    entries = [ContextEntry("system", SYSTEM_PROMPT)]
    for msg in sorted(history, key=lambda m: m.sequence_number):
        entries.append(ContextEntry(_ROLE_BY_SENDER[msg.sender], msg.content))
    entries.append(ContextEntry("user", new_message))
    return entries


def with_tool_result(context: List[ContextEntry], tool_result: str) -> List[ContextEntry]:
    """Context for the follow-up generation call after a tool ran."""
    return context + [
        ContextEntry("tool", tool_result),
        ContextEntry("user", TOOL_FOLLOW_UP_PREFIX + tool_result),
    ]
