# src/meeting_taskbot/cli/commands.py

"""
Console-only slash commands (/help, /as, /in, ...).

They change who the console is speaking as and where, so a single terminal can
play every participant of a group meeting. Bot commands themselves (開始會議,
任務, ...) go through the CommandDispatcher like any other transport.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from ..core.replies import overdue_notice
from ..core.state import AppState
from ..tasks.task_models import Scope, ScopeType

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ConsoleIdentity:
    """Who the console currently speaks as, and in which conversation."""

    user_id: str
    display_name: str
    scope: Scope


CommandHandler = Callable[[AppState, ConsoleIdentity, list[str]], str]


class CommandRegistry:
    """Simple slash-command registry used by the console connector."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, identity: ConsoleIdentity, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return handler(state, identity, args)

    def build_help(self) -> str:
        lines = ["Console commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        lines.append("Anything else is sent to the bot (try: 幫助).")
        return "\n".join(lines)


registry = CommandRegistry()


def cmd_help(state: AppState, identity: ConsoleIdentity, args: list[str]) -> str:
    return registry.build_help()


def cmd_as(state: AppState, identity: ConsoleIdentity, args: list[str]) -> str:
    """
    /as <user_id> [display name]
    """
    if not args:
        return "Usage: /as <user_id> [display name]"
    identity.user_id = args[0]
    identity.display_name = " ".join(args[1:]) or args[0]
    return f"Now speaking as {identity.display_name} ({identity.user_id})."


def cmd_in(state: AppState, identity: ConsoleIdentity, args: list[str]) -> str:
    """
    /in <user|group|room> <id>
    """
    if len(args) < 2:
        return "Usage: /in <user|group|room> <id>"
    try:
        scope_type = ScopeType(args[0].lower())
    except ValueError:
        return "Scope type must be one of: user, group, room."
    identity.scope = Scope(scope_type, args[1])
    return f"Now talking in {identity.scope.key}."


def cmd_whoami(state: AppState, identity: ConsoleIdentity, args: list[str]) -> str:
    role = state.permissions.get_role(identity.user_id)
    recording = "ON" if state.recorder.is_recording(identity.scope) else "OFF"
    return (
        "Identity:\n"
        f"  User: {identity.display_name} ({identity.user_id})\n"
        f"  Role: {role.value}\n"
        f"  Scope: {identity.scope.key}\n"
        f"  Recording: {recording}"
    )


def cmd_overdue(state: AppState, identity: ConsoleIdentity, args: list[str]) -> str:
    """Preview the reminders the weekday-morning sweep would send right now."""
    tasks = state.task_store.list_overdue()
    if not tasks:
        return "No overdue tasks."
    return "\n\n".join(f"[{t.scope.key}]\n{overdue_notice(t)}" for t in tasks)


registry.register("help", cmd_help, help_text="Show console commands.", aliases=["h", "?"])
registry.register("as", cmd_as, help_text="Speak as another user: /as <user_id> [name].")
registry.register("in", cmd_in, help_text="Switch conversation: /in <user|group|room> <id>.")
registry.register("whoami", cmd_whoami, help_text="Show current user, role, scope and recording state.")
registry.register("overdue", cmd_overdue, help_text="Preview today's overdue reminders.")
