# src/meeting_taskbot/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum


class ScopeType(StrEnum):
    """Conversation context that partitions tasks and meeting sessions."""

    USER = "user"
    GROUP = "group"
    ROOM = "room"


@dataclass(frozen=True, slots=True)
class Scope:
    type: ScopeType
    id: str

    @property
    def key(self) -> str:
        return f"{self.type.value}_{self.id}"


class TaskStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


class TaskPriority(StrEnum):
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @classmethod
    def parse(cls, raw: str | None) -> TaskPriority:
        """Anything outside high/normal/low is treated as normal."""
        if not raw:
            return cls.NORMAL
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.NORMAL

    @property
    def rank(self) -> int:
        # Lower rank sorts first.
        return {"high": 0, "normal": 1, "low": 2}[self.value]


class TaskFilter(StrEnum):
    ALL = "all"
    PENDING = "pending"
    COMPLETED = "completed"
    OVERDUE = "overdue"


@dataclass(slots=True)
class Task:
    id: int
    scope_type: ScopeType
    scope_id: str

    creator_id: str
    creator_name: str | None
    assignee_id: str | None
    assignee_name: str | None

    content: str
    priority: TaskPriority
    status: TaskStatus
    due_date: date | None

    created_at: float
    updated_at: float
    completed_at: float | None = None

    @property
    def scope(self) -> Scope:
        return Scope(self.scope_type, self.scope_id)

    def is_overdue(self, today: date) -> bool:
        return self.status == TaskStatus.PENDING and self.due_date is not None and self.due_date < today


@dataclass(frozen=True, slots=True)
class TaskInteraction:
    id: int
    task_id: int
    user_id: str
    action_type: str
    message: str
    created_at: float


@dataclass(frozen=True, slots=True)
class TaskStats:
    total: int
    completed: int
    pending: int
    overdue: int
    high_priority_pending: int
    completion_rate_percent: int


def completion_rate(completed: int, total: int) -> int:
    """Percentage rounded half-up; 0 for an empty set."""
    if total <= 0:
        return 0
    return int(completed * 100 / total + 0.5)


def parse_due_date(raw: object) -> date | None:
    """Accept ISO calendar dates (YYYY-MM-DD, optionally with a time part)."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = str(raw).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None
