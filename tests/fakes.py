# tests/fakes.py

from __future__ import annotations

import time
from dataclasses import dataclass, field

from meeting_taskbot.core.ports import ChatMessage, OutboundMessenger
from meeting_taskbot.tasks.task_models import Scope


class FakeLLMClient:
    """
    Deterministic LLM client for unit tests.

    - Captures calls for assertions
    - Returns a predefined text, or raises / stalls when asked to
    """

    def __init__(self, next_text: str = '{"tasks": []}') -> None:
        self.next_text = next_text
        self.error: Exception | None = None
        self.delay_seconds = 0.0
        self.calls: list[tuple[list[ChatMessage], str]] = []

    def complete_chat(self, messages: list[ChatMessage], system_prompt: str) -> str:
        self.calls.append((messages, system_prompt))
        if self.delay_seconds:
            time.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return self.next_text


@dataclass(slots=True)
class SentMessage:
    text: str
    room_id: str | None
    to_user_id: str | None


@dataclass(slots=True)
class FakeMessenger(OutboundMessenger):
    """
    Fake OutboundMessenger used by scheduler tests.

    Texts containing `fail_on` raise instead of being recorded.
    """

    sent: list[SentMessage] = field(default_factory=list)
    fail_on: str | None = None

    async def send_text(
        self,
        *,
        text: str,
        room_id: str | None = None,
        to_user_id: str | None = None,
    ) -> None:
        if self.fail_on and self.fail_on in text:
            raise ConnectionError("transport down")
        self.sent.append(SentMessage(text=text, room_id=room_id, to_user_id=to_user_id))


class FakeProfiles:
    """ProfileLookup backed by a dict; raises for users listed in `broken`."""

    def __init__(self, names: dict[str, str] | None = None, broken: set[str] | None = None) -> None:
        self.names = names or {}
        self.broken = broken or set()

    def display_name(self, scope: Scope, user_id: str) -> str | None:
        if user_id in self.broken:
            raise LookupError(user_id)
        return self.names.get(user_id)
