# src/meeting_taskbot/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts connectors:
- console REPL in the main thread (optional),
- Matrix connector in a background thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading
from typing import TYPE_CHECKING

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from ..connectors.matrix_connector import MatrixBackgroundRunner


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logging.getLogger("nio").setLevel(max(console_level, logging.INFO))
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)
    logger.info(
        "Stores ready: %d task(s) in %s",
        state.task_store.count_tasks(),
        settings.tasks_db_path,
    )

    matrix_runner: MatrixBackgroundRunner | None = None
    if settings.matrix_enabled:
        from ..connectors.matrix_connector import start_matrix_in_background

        matrix_runner = start_matrix_in_background(state)

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGTERM, _handle_signal)
        if not settings.console_enabled:
            # The console REPL handles Ctrl+C itself.
            signal.signal(signal.SIGINT, _handle_signal)
    except (ValueError, OSError, AttributeError):
        logger.debug("Signal handlers not installed.", exc_info=True)

    try:
        if settings.console_enabled:
            run_console_loop(state)
        else:
            logger.info("Console disabled. Running background connectors only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        if matrix_runner is not None:
            matrix_runner.stop()
            matrix_runner.join(timeout=10.0)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
