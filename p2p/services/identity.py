"""
Identity / permission collaborator.

The workflow engine asks only two questions: who is calling
(``current_user()``) and may they do X (``has_permission()``). How the answer
is computed (JWT claims, role table) stays here.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from p2p.errors import PermissionDeniedError


class Permission(str, Enum):
    CREATE_PR = "CREATE_PR"
    APPROVE_PR = "APPROVE_PR"
    CREATE_PO = "CREATE_PO"
    APPROVE_PO = "APPROVE_PO"
    RECEIVE_GOODS = "RECEIVE_GOODS"
    MANAGE_VENDORS = "MANAGE_VENDORS"
    MANAGE_USERS = "MANAGE_USERS"
    VIEW_REPORTS = "VIEW_REPORTS"


ROLE_PERMISSIONS: dict[str, frozenset[Permission]] = {
    "ADMIN": frozenset(Permission),
    "REQUESTER": frozenset({Permission.CREATE_PR}),
    "APPROVER": frozenset({Permission.APPROVE_PR, Permission.APPROVE_PO}),
    "PROCUREMENT_OFFICER": frozenset({Permission.CREATE_PO, Permission.MANAGE_VENDORS}),
    "WAREHOUSE_OPERATOR": frozenset({Permission.RECEIVE_GOODS}),
    "FINANCE": frozenset({Permission.VIEW_REPORTS}),
}


@dataclass(frozen=True)
class CurrentUser:
    id: str
    name: str
    email: str
    role: Optional[str] = None
    permissions: frozenset[Permission] = field(default_factory=frozenset)


class Identity:
    def __init__(self, user: CurrentUser):
        self._user = user

    def current_user(self) -> CurrentUser:
        return self._user

    def has_permission(self, permission: Permission) -> bool:
        return permission in self._user.permissions

    def require(
        self,
        permission: Permission,
        *,
        action: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> CurrentUser:
        if not self.has_permission(permission):
            raise PermissionDeniedError(
                f"User '{self._user.id}' lacks {permission.value} required to {action}",
                entity_type=entity_type,
                entity_id=entity_id,
                attempted=action,
            )
        return self._user

    @classmethod
    def for_user(
        cls,
        user_id: str,
        name: str,
        email: str,
        *,
        role: Optional[str] = None,
        permissions: Optional[Iterable[str]] = None,
    ) -> "Identity":
        if permissions is not None:
            granted = frozenset(Permission(p) for p in permissions)
        else:
            granted = ROLE_PERMISSIONS.get((role or "").upper(), frozenset())
        return cls(CurrentUser(id=user_id, name=name, email=email, role=role, permissions=granted))

    @classmethod
    def from_claims(cls, claims: dict) -> "Identity":
        return cls.for_user(
            claims["sub"],
            claims.get("name") or claims.get("email", ""),
            claims.get("email", ""),
            role=claims.get("role"),
            permissions=claims.get("permissions"),
        )
