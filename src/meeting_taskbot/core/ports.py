# src/meeting_taskbot/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps connectors/storage/LLM providers swappable and makes testing easier.
"""

from typing import TYPE_CHECKING, Awaitable, Protocol

if TYPE_CHECKING:
    from ..tasks.task_models import Scope

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class LLMClient(Protocol):
    """Blocking chat completion client (OpenAI-compatible). Returns the full text."""

    def complete_chat(self, messages: list[ChatMessage], system_prompt: str) -> str: ...


class OutboundMessenger(Protocol):
    """
    Connector-side port: how services (overdue reminders) send text outward.

    The connector decides how to interpret:
    - room_id (can be None)
    - to_user_id (can be None)
    """

    def send_text(
            self,
            *,
            text: str,
            room_id: str | None = None,
            to_user_id: str | None = None,
    ) -> Awaitable[None]: ...


class ProfileLookup(Protocol):
    """Resolve a user's display name inside a scope. May raise; callers absorb failures."""

    def display_name(self, scope: Scope, user_id: str) -> str | None: ...


class DepartmentDirectory(Protocol):
    """Scope -> department resolution used by the dept_manager cross-scope filter."""

    def scopes_for_department(self, department: str) -> list[Scope]: ...
