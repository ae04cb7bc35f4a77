# src/meeting_taskbot/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime

from ..cli.commands import ConsoleIdentity
from ..cli.commands import registry as command_registry
from ..core.dispatcher import CommandDispatcher, InboundMessage
from ..core.replies import SYSTEM_BUSY
from ..core.state import AppState
from ..tasks.task_models import Scope, ScopeType

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except Exception:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _initial_identity(state: AppState) -> ConsoleIdentity:
    settings = state.settings
    user_id = str(getattr(settings, "console_user_id", "console"))
    return ConsoleIdentity(
        user_id=user_id,
        display_name=str(getattr(settings, "console_user_name", user_id)),
        scope=Scope(ScopeType.USER, user_id),
    )


def run_console_loop(state: AppState) -> None:
    """
    Blocking REPL. Each line is either a console slash command or a chat
    message from the current identity in the current scope.
    """
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Type messages as the current user. Use /help for commands. Use /exit to quit.\n")

    app_name = str(getattr(state.settings, "app_name", "taskbot"))
    identity = _initial_identity(state)
    dispatcher = CommandDispatcher(state)

    with asyncio.Runner() as runner:
        while True:
            try:
                prompt = f"[{identity.scope.key}] {identity.display_name}: "
                user_input = input(prompt).strip()
                _rewrite_prev_line(f"[{_ts_local()}] {prompt}{user_input}")
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            try:
                cmd_response = command_registry.handle(state, identity, user_input)
            except Exception:
                logger.exception("Command handler crashed.")
                cmd_response = "Internal error while handling a command."

            if cmd_response is not None:
                _print_ts(cmd_response)
                continue

            message = InboundMessage(
                scope=identity.scope,
                user_id=identity.user_id,
                text=user_input,
                display_name=identity.display_name,
            )
            try:
                reply = runner.run(dispatcher.handle(message))
            except Exception:
                # handle() absorbs its own errors; this only guards the event loop itself.
                logger.exception("Console dispatch crashed.")
                reply = SYSTEM_BUSY

            if reply:
                print(f"[{_ts_local()}] <<< {app_name}:\n{reply}\n")

    logger.info("Console connector finished.")
