# src/meeting_taskbot/permissions/permission_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class Role(StrEnum):
    """
    Role hierarchy: super_admin > dept_manager > group_admin > member.

    Roles gate commands; task visibility is role-dependent only through
    TaskStore.cross_scope_list.
    """

    SUPER_ADMIN = "super_admin"
    DEPT_MANAGER = "dept_manager"
    GROUP_ADMIN = "group_admin"
    MEMBER = "member"

    @classmethod
    def from_db(cls, raw: str | None) -> Role:
        if not raw:
            return cls.MEMBER
        try:
            return cls(raw)
        except ValueError:
            return cls.MEMBER

    @classmethod
    def parse(cls, raw: str) -> Role:
        """Strict parse for administrative input; raises ValueError on unknown names."""
        return cls(str(raw).strip().lower())


# Roles allowed to open a recording window.
MEETING_HOST_ROLES = frozenset({Role.GROUP_ADMIN, Role.DEPT_MANAGER, Role.SUPER_ADMIN})

# Roles allowed to query across scopes.
MANAGER_ROLES = frozenset({Role.DEPT_MANAGER, Role.SUPER_ADMIN})


@dataclass(slots=True)
class UserPermission:
    user_id: str
    role: Role = Role.MEMBER
    user_name: str | None = None
    department: str | None = None
    managed_groups: set[str] = field(default_factory=set)
