# src/meeting_taskbot/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (LLM/stores/recorder/extractor).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import LLMClient
from ..core.state import AppState
from ..llm.client import OpenAIChatClient
from ..llm.offline import OfflineLLMClient
from ..meeting.extraction import TaskExtractor
from ..meeting.session_recorder import SessionRecorder
from ..permissions.permission_store import PermissionStore
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.permissions_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    llm_client: LLMClient
    try:
        llm_client = OpenAIChatClient(settings)
    except Exception as e:
        # Fallback for demos / local runs without external services.
        logger.warning("LLM not configured (%s); meeting summaries will find no tasks.", e)
        llm_client = OfflineLLMClient()

    permissions = PermissionStore(settings.permissions_db_path)
    return AppState(
        settings=settings,
        llm=llm_client,
        task_store=TaskStore(settings.tasks_db_path, directory=permissions),
        permissions=permissions,
        recorder=SessionRecorder(),
        extractor=TaskExtractor(llm_client, timeout_seconds=settings.extraction_timeout_seconds),
    )
