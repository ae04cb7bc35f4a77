# src/meeting_taskbot/core/errors.py

from __future__ import annotations


class TaskbotError(Exception):
    """Base class for expected, user-translatable failures."""


class PermissionDenied(TaskbotError):
    """The acting role is not allowed to perform the operation."""

    def __init__(self, action: str, role: str) -> None:
        super().__init__(f"role {role!r} may not {action}")
        self.action = action
        self.role = role


class TaskNotFound(TaskbotError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"task {task_id} not found")
        self.task_id = task_id


class TaskAlreadyCompleted(TaskbotError):
    def __init__(self, task_id: int, content: str = "") -> None:
        super().__init__(f"task {task_id} is already completed")
        self.task_id = task_id
        self.content = content


class LLMError(RuntimeError):
    """Inference call failed (transport, auth, rate limit or empty output)."""
