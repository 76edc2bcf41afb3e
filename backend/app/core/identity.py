"""
Actor identity for the shipment core.

The identity provider hands us ``{id, role, email}`` (or nothing, for guests).
Role strings have drifted over time ('admin', 'ADMINISTRATOR', 'customer', ...),
so they are normalised here and nowhere else.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from backend.app.models.enums import UserRole


_ROLE_ALIASES = {
    "ADMIN": UserRole.ADMINISTRATOR,
    "ADMINISTRATOR": UserRole.ADMINISTRATOR,
    "REGISTERED_USER": UserRole.REGISTERED_USER,
    "REGISTERED": UserRole.REGISTERED_USER,
    "CUSTOMER": UserRole.REGISTERED_USER,
    "USER": UserRole.REGISTERED_USER,
    "GUEST": UserRole.GUEST,
}


def map_role(raw_role: Optional[str]) -> Optional[UserRole]:
    """Translate an external role string to a UserRole, or None if unknown."""
    if not raw_role:
        return None
    return _ROLE_ALIASES.get(str(raw_role).strip().upper())


@dataclass(frozen=True)
class ActorContext:
    """Who is performing the current operation."""
    user_id: Optional[int]
    role: UserRole
    email: Optional[str] = None
    username: Optional[str] = None

    @classmethod
    def guest(cls) -> "ActorContext":
        return cls(user_id=None, role=UserRole.GUEST)

    @classmethod
    def from_token_payload(cls, payload: Dict[str, Any]) -> Optional["ActorContext"]:
        """
        Build an actor from a decoded token payload.

        Returns None when the payload lacks a numeric user id or carries an
        unknown role.
        """
        role = map_role(payload.get("role"))
        if role is None or role == UserRole.GUEST:
            return None
        try:
            user_id = int(payload.get("user_id"))
        except (TypeError, ValueError):
            return None
        if user_id < 1:
            return None
        return cls(
            user_id=user_id,
            role=role,
            email=payload.get("email"),
            username=payload.get("sub"),
        )

    @property
    def is_guest(self) -> bool:
        return self.role == UserRole.GUEST

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMINISTRATOR

    def owns(self, owner_id: Optional[int]) -> bool:
        return self.user_id is not None and owner_id is not None and self.user_id == owner_id
