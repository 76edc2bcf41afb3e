"""
Authentication dependencies for FastAPI.

This module turns the bearer token issued by the identity provider into an
ActorContext. Requests without a token are treated as guests.
"""

from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from backend.app.core.identity import ActorContext
from backend.app.core.jwt import decode_access_token

# HTTP Bearer security scheme (optional so guests can reach public endpoints)
security = HTTPBearer(auto_error=False)


async def get_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> ActorContext:
    """
    FastAPI dependency resolving the current actor.

    No Authorization header means a guest. A header that is present but
    invalid is rejected rather than silently downgraded to guest.

    Raises:
        HTTPException: 401 if the token cannot be validated
    """
    if credentials is None:
        return ActorContext.guest()

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    actor = ActorContext.from_token_payload(payload)
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return actor


async def get_authenticated_actor(actor: ActorContext = Depends(get_actor)) -> ActorContext:
    """
    FastAPI dependency for routes that need a signed-in user.

    Raises:
        HTTPException: 401 for guests
    """
    if actor.is_guest:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor
