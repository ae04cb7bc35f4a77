# src/meeting_taskbot/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..meeting.extraction import TaskExtractor
from ..meeting.session_recorder import SessionRecorder
from ..permissions.permission_store import PermissionStore
from ..tasks.task_store import TaskStore
from .ports import LLMClient, ProfileLookup


@dataclass
class AppState:
    """Everything one running bot shares across inbound events."""

    # Settings object (config.Settings or a test double with the same attributes).
    settings: Any

    llm: LLMClient
    task_store: TaskStore
    permissions: PermissionStore
    recorder: SessionRecorder
    extractor: TaskExtractor

    # Optional transport-provided display name lookup.
    profiles: ProfileLookup | None = None
