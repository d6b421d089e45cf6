from dataclasses import dataclass
from typing import Any, Tuple

from surveyhub.core.errors import AuthorizationContextError

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Principal:
    """The acting user, passed explicitly into every gate, synchronizer and service call."""
    user_id: int
    roles: Tuple[str, ...] = ()

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(user_id=user.id, roles=(user.role.role.value,))


def require_principal(principal: Any) -> Principal:
    """Reject a missing or malformed identity before any authorization decision is made."""
    if principal is None:
        raise AuthorizationContextError("no authenticated principal in request context")
    user_id = getattr(principal, "user_id", None)
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise AuthorizationContextError("principal user id missing or not an integer")
    roles = getattr(principal, "roles", None)
    if not isinstance(roles, (tuple, list)) or not all(isinstance(role, str) for role in roles):
        raise AuthorizationContextError("principal roles missing or malformed")
    return principal
