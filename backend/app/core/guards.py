"""
Security guards for role-based and ownership-based access control.

Provides dependencies and helpers for protecting endpoints and services.
"""

from typing import List, Optional
from fastapi import Depends, HTTPException, status
from backend.app.core.identity import ActorContext
from backend.app.core.dependencies import get_authenticated_actor
from backend.app.models.enums import UserRole


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/admin/audit-logs")
        async def list_logs(actor: ActorContext = Depends(require_role([UserRole.ADMINISTRATOR]))):
            ...

    Raises:
        HTTPException 403 if actor role is not in allowed_roles
    """
    async def role_checker(actor: ActorContext = Depends(get_authenticated_actor)) -> ActorContext:
        if actor.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )
        return actor

    return role_checker


require_admin = require_role([UserRole.ADMINISTRATOR])


def verify_ownership(resource_owner_id: Optional[int], actor: ActorContext) -> bool:
    """
    Verify that the actor may access a resource owned by resource_owner_id.

    Administrators can access everything; everybody else only what they own.
    Guest-owned resources (owner None) are only reachable by administrators.
    """
    if actor.is_admin:
        return True
    return actor.owns(resource_owner_id)


class OwnershipGuard:
    """
    Ownership checks shared by the shipment services.

    Usage:
        ownership_guard = OwnershipGuard()
        if not ownership_guard.can_access(shipment.user_id, actor):
            raise ResourceNotFoundError("Shipment", shipment_id)
    """

    def can_access(self, resource_owner_id: Optional[int], actor: ActorContext) -> bool:
        return verify_ownership(resource_owner_id, actor)

    def filter_by_ownership(self, actor: ActorContext) -> Optional[int]:
        """
        Get the owner_id to filter database queries by.

        For admins: Returns None (no filtering needed)
        For everybody else: Returns their user_id
        """
        if actor.is_admin:
            return None
        return actor.user_id
