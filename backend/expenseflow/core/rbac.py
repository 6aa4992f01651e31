"""Role/resource/action permission table.

Each (role, resource, action) entry resolves to a scope: ``ALL`` rows,
``OWN`` rows only, or ``NONE``. Endpoints consult it once per request via
``deps.require_permission`` and hand the scope to ``ensure_owner`` when a
specific row is touched.
"""
import enum
import uuid
from dataclasses import dataclass

from expenseflow.core.errors import AuthorizationError


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    FINANCE = "FINANCE"
    STAFF = "STAFF"


class Scope(str, enum.Enum):
    NONE = "none"
    ALL = "all"
    OWN = "own"


ALL = Scope.ALL
OWN = Scope.OWN

PERMISSIONS: dict[Role, dict[tuple[str, str], Scope]] = {
    Role.ADMIN: {
        ("project", "create"): ALL,
        ("project", "read"): ALL,
        ("project", "update"): ALL,
        ("project", "delete"): ALL,
        ("category", "create"): ALL,
        ("category", "read"): ALL,
        ("category", "update"): ALL,
        ("reimbursement", "read"): ALL,
        ("reimbursement", "approve"): ALL,
        ("reimbursement", "reject"): ALL,
        ("direct_expense", "read"): ALL,
        ("direct_expense", "approve"): ALL,
        ("direct_expense", "reject"): ALL,
        ("expense", "read"): ALL,
        ("user", "create"): ALL,
        ("user", "read"): ALL,
        ("user", "update"): ALL,
        ("user", "delete"): ALL,
    },
    Role.FINANCE: {
        ("project", "read"): ALL,
        ("category", "create"): ALL,
        ("category", "read"): ALL,
        ("reimbursement", "read"): ALL,
        ("reimbursement", "review"): ALL,
        ("reimbursement", "reject"): ALL,
        ("reimbursement", "pay"): ALL,
        ("direct_expense", "create"): ALL,
        ("direct_expense", "read"): ALL,
        ("direct_expense", "pay"): ALL,
        ("expense", "read"): ALL,
    },
    Role.STAFF: {
        ("project", "read"): ALL,
        ("category", "read"): ALL,
        ("reimbursement", "create"): OWN,
        ("reimbursement", "read"): OWN,
    },
}


@dataclass
class Access:
    """Authenticated user plus the scope granted for the current action."""

    user: object
    scope: Scope

    @property
    def user_id(self) -> uuid.UUID:
        return self.user.id


def has_permission(role: str, resource: str, action: str) -> Scope:
    """Return the scope granted to ``role`` for ``action`` on ``resource``."""
    try:
        table = PERMISSIONS[Role(role)]
    except ValueError:
        return Scope.NONE
    return table.get((resource, action), Scope.NONE)


def authorize(role: str, resource: str, action: str) -> Scope:
    scope = has_permission(role, resource, action)
    if scope is Scope.NONE:
        raise AuthorizationError(
            f"Role '{role}' is not permitted to {action} {resource}."
        )
    return scope


def can_access(scope: Scope, owner_id, user_id) -> bool:
    if scope is Scope.ALL:
        return True
    if scope is Scope.OWN:
        return str(owner_id) == str(user_id)
    return False


def ensure_owner(scope: Scope, owner_id, user_id) -> None:
    if not can_access(scope, owner_id, user_id):
        raise AuthorizationError("You can only access your own records.")
