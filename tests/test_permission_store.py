# tests/test_permission_store.py

from __future__ import annotations

import sqlite3
import time
from pathlib import Path

import pytest

from meeting_taskbot.core.errors import PermissionDenied
from meeting_taskbot.permissions.permission_models import Role
from meeting_taskbot.permissions.permission_store import PermissionStore
from meeting_taskbot.tasks.task_models import Scope, ScopeType


def test_unknown_user_becomes_member(tmp_path: Path) -> None:
    store = PermissionStore(tmp_path / "p.sqlite3")

    assert store.get_role("nobody") == Role.MEMBER

    perm = store.get_permission("u1", "Alice")
    assert perm.role == Role.MEMBER
    assert perm.user_name == "Alice"
    assert perm.department is None
    assert perm.managed_groups == set()

    # second lookup reuses the row and keeps the first known name
    again = store.get_permission("u1", "Someone Else")
    assert again.user_name == "Alice"


def test_get_permission_fills_missing_name(tmp_path: Path) -> None:
    store = PermissionStore(tmp_path / "p.sqlite3")
    assert store.get_permission("u1").user_name is None
    assert store.get_permission("u1", "Alice").user_name == "Alice"


def test_set_role_requires_super_admin(tmp_path: Path) -> None:
    store = PermissionStore(tmp_path / "p.sqlite3")

    for acting in (Role.MEMBER, Role.GROUP_ADMIN, Role.DEPT_MANAGER):
        with pytest.raises(PermissionDenied):
            store.set_role(acting, "u1", Role.SUPER_ADMIN)
    assert store.get_role("u1") == Role.MEMBER

    store.set_role(Role.SUPER_ADMIN, "u1", Role.GROUP_ADMIN, user_name="Alice")
    assert store.get_role("u1") == Role.GROUP_ADMIN
    assert store.get_permission("u1").user_name == "Alice"

    # upsert keeps the stored name when none is given
    store.set_role(Role.SUPER_ADMIN, "u1", Role.DEPT_MANAGER)
    perm = store.get_permission("u1")
    assert perm.role == Role.DEPT_MANAGER
    assert perm.user_name == "Alice"


def test_department_and_managed_groups(tmp_path: Path) -> None:
    store = PermissionStore(tmp_path / "p.sqlite3")

    with pytest.raises(PermissionDenied):
        store.set_department(Role.MEMBER, "u1", "sales")

    store.set_department(Role.SUPER_ADMIN, "u1", "sales")
    store.set_managed_groups(Role.SUPER_ADMIN, "u1", {"g2", "g1"})

    perm = store.get_permission("u1")
    assert perm.department == "sales"
    assert perm.managed_groups == {"g1", "g2"}
    assert perm.role == Role.MEMBER


def test_bind_scope_and_lookup(tmp_path: Path) -> None:
    store = PermissionStore(tmp_path / "p.sqlite3")
    g1 = Scope(ScopeType.GROUP, "g1")
    r1 = Scope(ScopeType.ROOM, "r1")

    with pytest.raises(PermissionDenied):
        store.bind_scope(Role.DEPT_MANAGER, g1, "sales")

    store.bind_scope(Role.SUPER_ADMIN, g1, "sales")
    store.bind_scope(Role.SUPER_ADMIN, r1, "sales")
    assert store.scopes_for_department("sales") == [g1, r1]

    # rebinding moves the scope
    store.bind_scope(Role.SUPER_ADMIN, r1, "ops")
    assert store.scopes_for_department("sales") == [g1]
    assert store.scopes_for_department("ops") == [r1]
    assert store.scopes_for_department("") == []


def test_unknown_stored_role_reads_as_member(tmp_path: Path) -> None:
    db = tmp_path / "p.sqlite3"
    store = PermissionStore(db)

    conn = sqlite3.connect(str(db))
    try:
        conn.execute(
            "INSERT INTO user_permissions(user_id, role, created_at, updated_at) VALUES (?, ?, ?, ?)",
            ("legacy", "owner", time.time(), time.time()),
        )
        conn.commit()
    finally:
        conn.close()

    assert store.get_role("legacy") == Role.MEMBER
    assert store.get_permission("legacy").role == Role.MEMBER
