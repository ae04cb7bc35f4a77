# tests/test_task_models.py

from __future__ import annotations

from datetime import date, datetime

import pytest

from meeting_taskbot.permissions.permission_models import Role
from meeting_taskbot.tasks.task_models import (
    Scope,
    ScopeType,
    TaskPriority,
    completion_rate,
    parse_due_date,
)


def test_scope_key() -> None:
    assert Scope(ScopeType.GROUP, "C123").key == "group_C123"
    assert Scope(ScopeType.USER, "U1") != Scope(ScopeType.GROUP, "U1")


@pytest.mark.parametrize(
    ("completed", "total", "expected"),
    [(0, 0, 0), (1, 3, 33), (2, 3, 67), (1, 2, 50), (1, 8, 13), (5, 5, 100)],
)
def test_completion_rate_rounds_half_up(completed: int, total: int, expected: int) -> None:
    assert completion_rate(completed, total) == expected


def test_priority_parse_falls_back_to_normal() -> None:
    assert TaskPriority.parse("HIGH") == TaskPriority.HIGH
    assert TaskPriority.parse(" low ") == TaskPriority.LOW
    assert TaskPriority.parse("urgent") == TaskPriority.NORMAL
    assert TaskPriority.parse(None) == TaskPriority.NORMAL


def test_parse_due_date() -> None:
    assert parse_due_date("2024-05-17") == date(2024, 5, 17)
    assert parse_due_date("2024-05-17T18:00:00") == date(2024, 5, 17)
    assert parse_due_date(datetime(2024, 5, 17, 9, 0)) == date(2024, 5, 17)
    assert parse_due_date("下週五") is None
    assert parse_due_date("") is None
    assert parse_due_date(None) is None


def test_role_parse_is_strict_and_from_db_is_lenient() -> None:
    assert Role.parse(" Dept_Manager ") == Role.DEPT_MANAGER
    with pytest.raises(ValueError):
        Role.parse("owner")
    assert Role.from_db("owner") == Role.MEMBER
    assert Role.from_db(None) == Role.MEMBER
