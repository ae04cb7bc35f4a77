# src/meeting_taskbot/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import threading
import time
from collections.abc import Sequence
from datetime import date
from pathlib import Path
from typing import Any

from ..core.errors import TaskAlreadyCompleted, TaskNotFound
from ..core.ports import DepartmentDirectory
from ..permissions.permission_models import Role
from .task_models import (
    Scope,
    ScopeType,
    Task,
    TaskFilter,
    TaskInteraction,
    TaskPriority,
    TaskStats,
    TaskStatus,
    completion_rate,
    parse_due_date,
)

logger = logging.getLogger(__name__)

# high -> normal -> low, then newest first; id breaks created_at ties.
_ORDER_BY = (
    " ORDER BY CASE priority WHEN 'high' THEN 0 WHEN 'normal' THEN 1 WHEN 'low' THEN 2 ELSE 1 END ASC,"
    " created_at DESC, id DESC"
)


def _filter_clause(task_filter: TaskFilter, today: date) -> tuple[str, list[Any]]:
    if task_filter == TaskFilter.PENDING:
        return "status = 'pending'", []
    if task_filter == TaskFilter.COMPLETED:
        return "status = 'completed'", []
    if task_filter == TaskFilter.OVERDUE:
        return "status = 'pending' AND due_date IS NOT NULL AND due_date < ?", [today.isoformat()]
    return "", []


class TaskStore:
    """
    SQLite task store partitioned by conversation scope.

    Thread-safety:
    - each method opens its own SQLite connection
    - writes go through one in-process lock, so the pending -> completed guard
      and its interaction record are applied atomically per task
    """

    def __init__(
        self,
        db_path: str | Path = "tasks.sqlite3",
        *,
        directory: DepartmentDirectory | None = None,
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._directory = directory
        self._write_lock = threading.Lock()
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    scope_type TEXT NOT NULL,
                    scope_id TEXT NOT NULL,
                    creator_id TEXT NOT NULL,
                    creator_name TEXT,
                    assignee_id TEXT,
                    assignee_name TEXT,
                    task_content TEXT NOT NULL,
                    priority TEXT NOT NULL DEFAULT 'normal',
                    status TEXT NOT NULL DEFAULT 'pending',
                    due_date TEXT,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    completed_at REAL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_interactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL REFERENCES tasks(id),
                    user_id TEXT NOT NULL,
                    action_type TEXT NOT NULL,
                    message TEXT NOT NULL DEFAULT '',
                    created_at REAL NOT NULL
                )
                """
            )

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_scope ON tasks(scope_type, scope_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status_due ON tasks(status, due_date)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_people ON tasks(creator_id, assignee_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_interactions_task ON task_interactions(task_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            scope_type=ScopeType(row["scope_type"]),
            scope_id=str(row["scope_id"]),
            creator_id=str(row["creator_id"]),
            creator_name=row["creator_name"],
            assignee_id=row["assignee_id"],
            assignee_name=row["assignee_name"],
            content=str(row["task_content"] or ""),
            priority=TaskPriority.parse(row["priority"]),
            status=TaskStatus.from_db(row["status"]),
            due_date=parse_due_date(row["due_date"]),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
        )

    def _select(self, where: str, params: Sequence[Any]) -> list[Task]:
        sql = "SELECT * FROM tasks"
        if where:
            sql += f" WHERE {where}"
        sql += _ORDER_BY
        conn = self._get_conn()
        try:
            rows = conn.execute(sql, list(params)).fetchall()
            return [self._row_to_task(r) for r in rows]
        finally:
            conn.close()

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def create(
        self,
        scope: Scope,
        *,
        creator_id: str,
        creator_name: str | None,
        content: str,
        assignee_id: str | None = None,
        assignee_name: str | None = None,
        priority: TaskPriority = TaskPriority.NORMAL,
        due_date: date | None = None,
    ) -> Task:
        content = (content or "").strip()
        if not content:
            raise ValueError("content is required")
        if not creator_id:
            raise ValueError("creator_id is required")

        now = time.time()
        with self._write_lock:
            conn = self._get_conn()
            try:
                cur = conn.execute(
                    """
                    INSERT INTO tasks(
                        scope_type, scope_id, creator_id, creator_name,
                        assignee_id, assignee_name, task_content,
                        priority, status, due_date, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'pending', ?, ?, ?)
                    """,
                    (
                        scope.type.value,
                        scope.id,
                        creator_id,
                        creator_name,
                        assignee_id,
                        assignee_name,
                        content,
                        TaskPriority.parse(priority).value,
                        due_date.isoformat() if due_date else None,
                        now,
                        now,
                    ),
                )
                conn.commit()
                rowid = cur.lastrowid
            finally:
                conn.close()

        if rowid is None:
            raise RuntimeError("SQLite did not return lastrowid for tasks insert")
        logger.debug("Task created id=%s scope=%s priority=%s", rowid, scope.key, priority)
        return Task(
            id=int(rowid),
            scope_type=scope.type,
            scope_id=scope.id,
            creator_id=creator_id,
            creator_name=creator_name,
            assignee_id=assignee_id,
            assignee_name=assignee_name,
            content=content,
            priority=TaskPriority.parse(priority),
            status=TaskStatus.PENDING,
            due_date=due_date,
            created_at=now,
            updated_at=now,
        )

    def get(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def list_tasks(
        self,
        scope: Scope,
        task_filter: TaskFilter = TaskFilter.ALL,
        *,
        today: date | None = None,
    ) -> list[Task]:
        """
        Tasks of one scope in display order.

        The order is what "完成 N" addresses by rank, so it must stay deterministic:
        priority (high, normal, low), then created_at newest first, then id newest first.
        """
        clause, params = _filter_clause(TaskFilter(task_filter), today or date.today())
        where = "scope_type = ? AND scope_id = ?"
        if clause:
            where += f" AND {clause}"
        return self._select(where, [scope.type.value, scope.id, *params])

    def list_overdue(self, *, today: date | None = None) -> list[Task]:
        """Overdue tasks across every scope (consumer: the scheduled reminder sweep)."""
        clause, params = _filter_clause(TaskFilter.OVERDUE, today or date.today())
        return self._select(clause, params)

    def complete(self, task_id: int, actor_id: str, actor_name: str | None) -> Task:
        """
        pending -> completed, plus a "complete" interaction, in one transaction.

        Raises TaskNotFound / TaskAlreadyCompleted; completed_at is never rewritten.
        """
        now = time.time()
        with self._write_lock:
            conn = self._get_conn()
            try:
                cur = conn.execute(
                    """
                    UPDATE tasks
                    SET status = 'completed', completed_at = ?, updated_at = ?
                    WHERE id = ? AND status = 'pending'
                    """,
                    (now, now, int(task_id)),
                )
                if cur.rowcount != 1:
                    conn.rollback()
                    row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
                    if row is None:
                        raise TaskNotFound(int(task_id))
                    raise TaskAlreadyCompleted(int(task_id), str(row["task_content"] or ""))

                conn.execute(
                    """
                    INSERT INTO task_interactions(task_id, user_id, action_type, message, created_at)
                    VALUES (?, ?, 'complete', ?, ?)
                    """,
                    (int(task_id), actor_id, f"{actor_name or actor_id} 完成了任務", now),
                )
                conn.commit()
                row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            except sqlite3.Error:
                conn.rollback()
                raise
            finally:
                conn.close()

        logger.info("Task %s completed by %s", task_id, actor_id)
        return self._row_to_task(row)

    def cross_scope_list(
        self,
        actor_id: str,
        actor_role: Role,
        actor_department: str | None,
    ) -> list[Task]:
        """
        Tasks visible to an actor across scopes. The filter is always applied in SQL.

        - super_admin: everything
        - dept_manager: scopes bound to the actor's department (empty when unresolved)
        - anyone else: tasks they created or are assigned to
        """
        if actor_role == Role.SUPER_ADMIN:
            return self._select("", [])

        if actor_role == Role.DEPT_MANAGER:
            if not actor_department or self._directory is None:
                return []
            try:
                scopes = list(self._directory.scopes_for_department(actor_department))
            except Exception:
                logger.exception("Department lookup failed department=%s", actor_department)
                return []
            if not scopes:
                return []
            pairs = " OR ".join("(scope_type = ? AND scope_id = ?)" for _ in scopes)
            params: list[Any] = []
            for s in scopes:
                params.extend((s.type.value, s.id))
            return self._select(f"({pairs})", params)

        return self._select("creator_id = ? OR assignee_id = ?", [actor_id, actor_id])

    def stats(self, scope: Scope, *, today: date | None = None) -> TaskStats:
        today = today or date.today()
        tasks = self.list_tasks(scope, TaskFilter.ALL, today=today)
        completed = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)
        pending = sum(1 for t in tasks if t.status == TaskStatus.PENDING)
        overdue = sum(1 for t in tasks if t.is_overdue(today))
        high = sum(1 for t in tasks if t.status == TaskStatus.PENDING and t.priority == TaskPriority.HIGH)
        return TaskStats(
            total=len(tasks),
            completed=completed,
            pending=pending,
            overdue=overdue,
            high_priority_pending=high,
            completion_rate_percent=completion_rate(completed, len(tasks)),
        )

    def list_interactions(self, task_id: int) -> list[TaskInteraction]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM task_interactions WHERE task_id = ? ORDER BY id ASC",
                (int(task_id),),
            ).fetchall()
        finally:
            conn.close()
        return [
            TaskInteraction(
                id=int(r["id"]),
                task_id=int(r["task_id"]),
                user_id=str(r["user_id"]),
                action_type=str(r["action_type"]),
                message=str(r["message"] or ""),
                created_at=float(r["created_at"]),
            )
            for r in rows
        ]
