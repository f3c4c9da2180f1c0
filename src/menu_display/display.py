from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Any, List, Protocol

DISPLAY_PERIOD_SECONDS = 0.025


class PeriodicTask(Protocol):
    """Something the host calls over and over; each call ends in the task's own sleep."""

    def run(self) -> None:
        ...


class MessageProducer(Protocol):
    def __call__(self) -> str:
        ...


@dataclass(frozen=True)
class RegularMessage:
    owner: Any
    producer: MessageProducer
    period: float = DISPLAY_PERIOD_SECONDS
    priority: int = 1
    repeat: bool = True

    def render(self) -> str:
        return self.producer()


class MessageRegistry:
    """Collects the messages a display rotates through."""

    def __init__(self) -> None:
        self._messages: List[RegularMessage] = []
        self._lock = Lock()

    def add_regular_message(self, message: RegularMessage) -> None:
        with self._lock:
            self._messages.append(message)

    def remove_owner(self, owner: Any) -> int:
        with self._lock:
            before = len(self._messages)
            self._messages = [message for message in self._messages if message.owner is not owner]
            return before - len(self._messages)

    def messages(self) -> List[RegularMessage]:
        with self._lock:
            return sorted(self._messages, key=lambda message: message.priority)

    def current_messages(self) -> List[str]:
        """Render every registered producer, dropping empty lines."""
        rendered = (message.render() for message in self.messages())
        return [text for text in rendered if text]
