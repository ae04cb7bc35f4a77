# tests/test_task_store.py

from __future__ import annotations

import threading
from datetime import date
from pathlib import Path

import pytest

from meeting_taskbot.core.errors import TaskAlreadyCompleted, TaskNotFound
from meeting_taskbot.permissions.permission_models import Role
from meeting_taskbot.permissions.permission_store import PermissionStore
from meeting_taskbot.tasks.task_models import Scope, ScopeType, TaskFilter, TaskPriority, TaskStatus
from meeting_taskbot.tasks.task_store import TaskStore

TODAY = date(2024, 5, 10)
GROUP = Scope(ScopeType.GROUP, "g1")
OTHER = Scope(ScopeType.GROUP, "g2")


def _add(store: TaskStore, content: str, *, scope: Scope = GROUP, **kw):
    kw.setdefault("creator_id", "u1")
    kw.setdefault("creator_name", "Alice")
    return store.create(scope, content=content, **kw)


def test_create_and_get_roundtrip(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    task = _add(store, "  write report  ", assignee_name="Bob", priority=TaskPriority.HIGH, due_date=date(2024, 5, 1))

    assert task.id > 0
    assert task.content == "write report"
    assert task.status == TaskStatus.PENDING

    loaded = store.get(task.id)
    assert loaded is not None
    assert loaded.scope == GROUP
    assert loaded.assignee_name == "Bob"
    assert loaded.priority == TaskPriority.HIGH
    assert loaded.due_date == date(2024, 5, 1)
    assert loaded.completed_at is None
    assert store.get(9999) is None


def test_create_rejects_empty_content(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    with pytest.raises(ValueError):
        _add(store, "   ")
    assert store.count_tasks() == 0


def test_list_order_priority_then_newest(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    _add(store, "low", priority=TaskPriority.LOW)
    _add(store, "normal-old")
    _add(store, "high", priority=TaskPriority.HIGH)
    _add(store, "normal-new")
    _add(store, "elsewhere", scope=OTHER, priority=TaskPriority.HIGH)

    contents = [t.content for t in store.list_tasks(GROUP)]
    assert contents == ["high", "normal-new", "normal-old", "low"]


def test_list_filters(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    late = _add(store, "late", due_date=date(2024, 5, 9))
    _add(store, "due today", due_date=TODAY)
    _add(store, "no date")
    done = _add(store, "done", due_date=date(2024, 1, 1))
    store.complete(done.id, "u1", "Alice")

    def names(f: TaskFilter) -> set[str]:
        return {t.content for t in store.list_tasks(GROUP, f, today=TODAY)}

    assert names(TaskFilter.PENDING) == {"late", "due today", "no date"}
    assert names(TaskFilter.COMPLETED) == {"done"}
    assert names(TaskFilter.OVERDUE) == {"late"}
    assert [t.id for t in store.list_overdue(today=TODAY)] == [late.id]


def test_complete_writes_interaction_and_guards_transition(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    task = _add(store, "ship it")

    done = store.complete(task.id, "u2", "Bob")
    assert done.status == TaskStatus.COMPLETED
    assert done.completed_at is not None

    interactions = store.list_interactions(task.id)
    assert len(interactions) == 1
    assert interactions[0].action_type == "complete"
    assert interactions[0].user_id == "u2"
    assert interactions[0].message == "Bob 完成了任務"

    with pytest.raises(TaskAlreadyCompleted) as exc:
        store.complete(task.id, "u3", "Carol")
    assert exc.value.content == "ship it"

    # completed_at is never rewritten and no second interaction appears
    assert store.get(task.id).completed_at == done.completed_at
    assert len(store.list_interactions(task.id)) == 1

    with pytest.raises(TaskNotFound):
        store.complete(12345, "u1", "Alice")


def test_concurrent_complete_has_single_winner(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    task = _add(store, "race")

    wins: list[str] = []
    losses: list[str] = []

    def worker(uid: str) -> None:
        try:
            store.complete(task.id, uid, uid)
            wins.append(uid)
        except TaskAlreadyCompleted:
            losses.append(uid)

    threads = [threading.Thread(target=worker, args=(f"u{i}",)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(wins) == 1
    assert len(losses) == 7
    assert len(store.list_interactions(task.id)) == 1


def test_stats_counts_and_rate(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    a = _add(store, "a", priority=TaskPriority.HIGH)
    _add(store, "b", priority=TaskPriority.HIGH, due_date=date(2024, 5, 1))
    _add(store, "c")
    store.complete(a.id, "u1", "Alice")

    stats = store.stats(GROUP, today=TODAY)
    assert stats.total == 3
    assert stats.completed == 1
    assert stats.pending == 2
    assert stats.overdue == 1
    assert stats.high_priority_pending == 1
    assert stats.completion_rate_percent == 33

    empty = store.stats(OTHER, today=TODAY)
    assert empty.total == 0
    assert empty.completion_rate_percent == 0


def test_cross_scope_list_by_role(tmp_path: Path) -> None:
    perms = PermissionStore(tmp_path / "permissions.sqlite3")
    store = TaskStore(tmp_path / "tasks.sqlite3", directory=perms)

    _add(store, "sales task", scope=GROUP, creator_id="boss")
    _add(store, "ops task", scope=OTHER, creator_id="boss", assignee_id="u7")
    _add(store, "private", scope=Scope(ScopeType.USER, "u7"), creator_id="u7")

    perms.bind_scope(Role.SUPER_ADMIN, GROUP, "sales")

    assert len(store.cross_scope_list("boss", Role.SUPER_ADMIN, None)) == 3

    dept = store.cross_scope_list("mgr", Role.DEPT_MANAGER, "sales")
    assert [t.content for t in dept] == ["sales task"]
    assert store.cross_scope_list("mgr", Role.DEPT_MANAGER, None) == []
    assert store.cross_scope_list("mgr", Role.DEPT_MANAGER, "unknown-dept") == []

    mine = {t.content for t in store.cross_scope_list("u7", Role.MEMBER, None)}
    assert mine == {"ops task", "private"}


def test_cross_scope_list_dept_manager_without_directory(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    _add(store, "x")
    assert store.cross_scope_list("mgr", Role.DEPT_MANAGER, "sales") == []


def test_cross_scope_list_directory_failure_is_empty(tmp_path: Path) -> None:
    class BrokenDirectory:
        def scopes_for_department(self, department: str):
            raise RuntimeError("directory offline")

    store = TaskStore(tmp_path / "tasks.sqlite3", directory=BrokenDirectory())
    _add(store, "x")
    assert store.cross_scope_list("mgr", Role.DEPT_MANAGER, "sales") == []
