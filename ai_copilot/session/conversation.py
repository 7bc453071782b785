"""Bounded conversation history."""
from __future__ import annotations

from collections import deque
from typing import Deque, List

from ai_copilot.providers.llm.base import ROLES, Message

MAX_HISTORY = 10


class ConversationStore:
    """Ordered message history capped at ``capacity`` entries.

    The oldest entry is evicted once the cap is exceeded. At most one system
    message is kept: adding a new one drops every earlier system message.
    """

    def __init__(self, capacity: int = MAX_HISTORY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._messages: Deque[Message] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._messages.maxlen or MAX_HISTORY

    def append(self, role: str, content: str) -> None:
        if role not in ROLES:
            raise ValueError(f"Unknown message role: {role}")
        if role == "system":
            self.add_system_message(content)
            return
        self._messages.append(Message(role=role, content=content))

    def add_system_message(self, content: str) -> None:
        retained = [message for message in self._messages if message.role != "system"]
        self._messages.clear()
        self._messages.extend(retained)
        self._messages.append(Message(role="system", content=content))

    def reset(self) -> None:
        self._messages.clear()

    def snapshot(self) -> List[Message]:
        return list(self._messages)

    def system_message(self) -> Message | None:
        for message in self._messages:
            if message.role == "system":
                return message
        return None

    def __len__(self) -> int:
        return len(self._messages)


__all__ = ["ConversationStore", "MAX_HISTORY"]
