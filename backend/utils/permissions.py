# backend/utils/permissions.py
from typing import Dict, FrozenSet, Mapping, Protocol, Sequence

# Every resource and the actions that exist on it
STATEMENTS: Dict[str, Sequence[str]] = {
    "product": ("create", "read", "update", "delete"),
    "category": ("create", "read", "update", "delete"),
    "shop": ("create", "read", "update", "delete"),
    "order": ("create", "read", "update", "delete"),
    "supplier": ("create", "read", "update", "delete"),
    "dashboard": ("read", "revalidate"),
    "sales-performance": ("read",),
    "user": ("list", "set-role", "ban", "delete"),
    "log": ("read",),
}

ROLE_PERMISSIONS: Dict[str, Dict[str, Sequence[str]]] = {
    "admin": dict(STATEMENTS),
    "user": {
        "product": ("read",),
        "category": ("read",),
        "shop": ("read",),
    },
    "sales": {
        "product": ("read",),
        "category": ("read",),
        "shop": ("read",),
        "order": ("create", "read"),
        "sales-performance": ("read",),
    },
}

# Roles that may act on records created by somebody else (e.g. delete any order)
ELEVATED_ROLES = frozenset({"admin"})


class AccessControl(Protocol):
    def has_permission(self, role: str, resource: str, action: str) -> bool: ...


class RoleAccessControl:
    """Static role -> resource -> actions table."""

    def __init__(self, roles: Mapping[str, Mapping[str, Sequence[str]]] = ROLE_PERMISSIONS):
        self._grants: Dict[str, Dict[str, FrozenSet[str]]] = {
            role: {resource: frozenset(actions) for resource, actions in resources.items()}
            for role, resources in roles.items()
        }

    def has_permission(self, role: str, resource: str, action: str) -> bool:
        return action in self._grants.get(role, {}).get(resource, frozenset())


def check_permissions(ac: AccessControl, role: str, permission: Mapping[str, Sequence[str]]) -> bool:
    # All requested (resource, action) pairs must be granted
    return all(
        ac.has_permission(role, resource, action)
        for resource, actions in permission.items()
        for action in actions
    )


def is_elevated(role: str) -> bool:
    return role in ELEVATED_ROLES
