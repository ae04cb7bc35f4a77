# tests/test_commands.py

from __future__ import annotations

from datetime import date, timedelta

from meeting_taskbot.cli.commands import CommandRegistry, ConsoleIdentity, registry
from meeting_taskbot.permissions.permission_models import Role
from meeting_taskbot.tasks.task_models import Scope, ScopeType


def _identity() -> ConsoleIdentity:
    return ConsoleIdentity(user_id="console", display_name="Console", scope=Scope(ScopeType.USER, "console"))


def test_command_registry_routes_and_aliases(state) -> None:
    reg = CommandRegistry()
    seen: list[list[str]] = []

    def handler(state, identity, args):
        seen.append(args)
        return "ok"

    reg.register("ping", handler, "ping", aliases=["p"])

    assert reg.handle(state, _identity(), "/ping a b") == "ok"
    assert reg.handle(state, _identity(), "/P") == "ok"
    assert seen == [["a", "b"], []]
    assert "/ping - ping" in reg.build_help()


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, _identity(), "hello") is None
    assert "Unknown command" in (reg.handle(state, _identity(), "/nope") or "")
    assert "Empty command" in (reg.handle(state, _identity(), "/") or "")


def test_switch_user_and_scope(state) -> None:
    ident = _identity()

    assert "Usage" in registry.handle(state, ident, "/as")
    registry.handle(state, ident, "/as u7 Bob Lin")
    assert ident.user_id == "u7"
    assert ident.display_name == "Bob Lin"

    registry.handle(state, ident, "/as u8")
    assert ident.display_name == "u8"

    assert "must be one of" in registry.handle(state, ident, "/in channel x")
    registry.handle(state, ident, "/in GROUP g1")
    assert ident.scope == Scope(ScopeType.GROUP, "g1")


def test_whoami_reports_role_and_recording(state) -> None:
    ident = _identity()
    state.permissions.set_role(Role.SUPER_ADMIN, "console", Role.GROUP_ADMIN)
    state.recorder.start(ident.scope, Role.GROUP_ADMIN)

    out = registry.handle(state, ident, "/whoami")
    assert "Role: group_admin" in out
    assert "Scope: user_console" in out
    assert "Recording: ON" in out


def test_overdue_preview(state) -> None:
    assert registry.handle(state, _identity(), "/overdue") == "No overdue tasks."

    state.task_store.create(
        Scope(ScopeType.GROUP, "g1"),
        creator_id="u1",
        creator_name="Alice",
        content="寄出發票",
        due_date=date.today() - timedelta(days=2),
    )
    out = registry.handle(state, _identity(), "/overdue")
    assert "[group_g1]" in out
    assert "寄出發票" in out
