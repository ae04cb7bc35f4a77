# src/meeting_taskbot/permissions/permission_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import threading
import time
from pathlib import Path

from ..core.errors import PermissionDenied
from ..tasks.task_models import Scope, ScopeType
from .permission_models import Role, UserPermission

logger = logging.getLogger(__name__)


class PermissionStore:
    """
    SQLite store for user roles and the scope -> department directory.

    - get_role / get_permission are total: unknown users are members.
    - every write requires a super_admin acting role.
    - each method opens its own SQLite connection; writes are serialized
      by an in-process lock.
    """

    def __init__(self, db_path: str | Path = "permissions.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._write_lock = threading.Lock()
        self._ensure_schema()
        logger.info("PermissionStore ready db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS user_permissions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL UNIQUE,
                    user_name TEXT,
                    role TEXT NOT NULL DEFAULT 'member',
                    department TEXT,
                    managed_groups TEXT NOT NULL DEFAULT '[]',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS scope_departments (
                    scope_type TEXT NOT NULL,
                    scope_id TEXT NOT NULL,
                    department TEXT NOT NULL,
                    updated_at REAL NOT NULL,
                    PRIMARY KEY (scope_type, scope_id)
                )
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_scope_departments_dept ON scope_departments(department)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _groups_to_str(groups: set[str] | None) -> str:
        return json.dumps(sorted(groups or ()), ensure_ascii=False)

    @staticmethod
    def _str_to_groups(s: str | None) -> set[str]:
        if not s:
            return set()
        try:
            val = json.loads(s)
        except ValueError:
            return set()
        return {str(x) for x in val} if isinstance(val, list) else set()

    def _row_to_permission(self, row: sqlite3.Row) -> UserPermission:
        return UserPermission(
            user_id=str(row["user_id"]),
            role=Role.from_db(row["role"]),
            user_name=row["user_name"],
            department=row["department"],
            managed_groups=self._str_to_groups(row["managed_groups"]),
        )

    @staticmethod
    def _require_super_admin(acting_role: Role, action: str) -> None:
        if acting_role != Role.SUPER_ADMIN:
            logger.info("Denied %s for role=%s", action, acting_role.value)
            raise PermissionDenied(action, acting_role.value)

    # ---- reads ----

    def get_permission(self, user_id: str, user_name: str | None = None) -> UserPermission:
        """
        Return the stored permission row, creating the default member row on first lookup.
        """
        now = time.time()
        with self._write_lock:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    INSERT OR IGNORE INTO user_permissions(user_id, user_name, role, created_at, updated_at)
                    VALUES (?, ?, 'member', ?, ?)
                    """,
                    (user_id, user_name, now, now),
                )
                if user_name:
                    conn.execute(
                        "UPDATE user_permissions SET user_name = ? WHERE user_id = ? AND user_name IS NULL",
                        (user_name, user_id),
                    )
                conn.commit()
                row = conn.execute("SELECT * FROM user_permissions WHERE user_id = ?", (user_id,)).fetchone()
            finally:
                conn.close()
        if row is None:
            return UserPermission(user_id=user_id, user_name=user_name)
        return self._row_to_permission(row)

    def get_role(self, user_id: str) -> Role:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT role FROM user_permissions WHERE user_id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        return Role.from_db(row["role"]) if row else Role.MEMBER

    def scopes_for_department(self, department: str) -> list[Scope]:
        if not department:
            return []
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT scope_type, scope_id FROM scope_departments WHERE department = ? ORDER BY scope_type, scope_id",
                (department,),
            ).fetchall()
        finally:
            conn.close()
        out: list[Scope] = []
        for r in rows:
            try:
                out.append(Scope(ScopeType(r["scope_type"]), str(r["scope_id"])))
            except ValueError:
                logger.warning("Skipping scope with unknown type=%r", r["scope_type"])
        return out

    # ---- writes (super_admin only) ----

    def set_role(
        self,
        acting_role: Role,
        target_user_id: str,
        new_role: Role,
        user_name: str | None = None,
    ) -> None:
        self._require_super_admin(acting_role, "assign roles")
        now = time.time()
        with self._write_lock:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    INSERT INTO user_permissions(user_id, user_name, role, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(user_id) DO UPDATE SET
                        role = excluded.role,
                        user_name = COALESCE(excluded.user_name, user_permissions.user_name),
                        updated_at = excluded.updated_at
                    """,
                    (target_user_id, user_name, new_role.value, now, now),
                )
                conn.commit()
            finally:
                conn.close()
        logger.info("Role set user=%s role=%s", target_user_id, new_role.value)

    def set_department(self, acting_role: Role, target_user_id: str, department: str | None) -> None:
        self._require_super_admin(acting_role, "assign departments")
        now = time.time()
        with self._write_lock:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    INSERT INTO user_permissions(user_id, role, department, created_at, updated_at)
                    VALUES (?, 'member', ?, ?, ?)
                    ON CONFLICT(user_id) DO UPDATE SET
                        department = excluded.department,
                        updated_at = excluded.updated_at
                    """,
                    (target_user_id, department, now, now),
                )
                conn.commit()
            finally:
                conn.close()
        logger.info("Department set user=%s department=%s", target_user_id, department)

    def set_managed_groups(self, acting_role: Role, target_user_id: str, groups: set[str]) -> None:
        self._require_super_admin(acting_role, "assign managed groups")
        now = time.time()
        with self._write_lock:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    INSERT INTO user_permissions(user_id, role, managed_groups, created_at, updated_at)
                    VALUES (?, 'member', ?, ?, ?)
                    ON CONFLICT(user_id) DO UPDATE SET
                        managed_groups = excluded.managed_groups,
                        updated_at = excluded.updated_at
                    """,
                    (target_user_id, self._groups_to_str(groups), now, now),
                )
                conn.commit()
            finally:
                conn.close()

    def bind_scope(self, acting_role: Role, scope: Scope, department: str) -> None:
        """Declare which department a conversation scope belongs to."""
        self._require_super_admin(acting_role, "bind scopes to departments")
        with self._write_lock:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    INSERT INTO scope_departments(scope_type, scope_id, department, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(scope_type, scope_id) DO UPDATE SET
                        department = excluded.department,
                        updated_at = excluded.updated_at
                    """,
                    (scope.type.value, scope.id, department, time.time()),
                )
                conn.commit()
            finally:
                conn.close()
        logger.info("Scope %s bound to department=%s", scope.key, department)
