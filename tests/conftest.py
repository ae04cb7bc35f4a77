# tests/conftest.py

from __future__ import annotations

from datetime import date
from pathlib import Path
from types import SimpleNamespace

import pytest

from meeting_taskbot.core.dispatcher import CommandDispatcher
from meeting_taskbot.core.state import AppState
from meeting_taskbot.meeting.extraction import TaskExtractor
from meeting_taskbot.meeting.session_recorder import SessionRecorder
from meeting_taskbot.permissions.permission_store import PermissionStore
from meeting_taskbot.tasks.task_store import TaskStore

from .fakes import FakeLLMClient

TODAY = date(2024, 5, 10)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskbot-test",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        permissions_db_path=tmp_path / "permissions.sqlite3",
        extraction_timeout_seconds=5.0,
        explicit_start_denial=False,
        console_user_id="console",
        console_user_name="Console",
    )


@pytest.fixture()
def llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture()
def state(settings: SimpleNamespace, llm: FakeLLMClient) -> AppState:
    """
    AppState wired with a fake LLM.

    NOTE: We keep real SQLite stores here (TaskStore/PermissionStore) because
    their correctness is part of what we want to test.
    """
    permissions = PermissionStore(settings.permissions_db_path)
    return AppState(
        settings=settings,
        llm=llm,
        task_store=TaskStore(settings.tasks_db_path, directory=permissions),
        permissions=permissions,
        recorder=SessionRecorder(),
        extractor=TaskExtractor(llm, timeout_seconds=settings.extraction_timeout_seconds),
    )


@pytest.fixture()
def dispatcher(state: AppState) -> CommandDispatcher:
    return CommandDispatcher(state, today=lambda: TODAY)
