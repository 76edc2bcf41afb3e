"""
User Profile API Endpoints.

A registered user's stored profile supplies the sender details of every
shipment they create.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from backend.app.core.dependencies import get_authenticated_actor
from backend.app.core.exceptions import ConflictError, ResourceNotFoundError, ValidationFailedError
from backend.app.core.identity import ActorContext
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.schemas.user import ProfileResponse, ProfileUpdate

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me/profile", response_model=ProfileResponse)
async def get_my_profile(
    actor: ActorContext = Depends(get_authenticated_actor),
    db: AsyncSession = Depends(get_db)
):
    """Get the signed-in user's profile."""
    user = await db.get(User, actor.user_id)
    if not user:
        raise ResourceNotFoundError("Profile", actor.user_id)
    return ProfileResponse.model_validate(user)


@router.put("/me/profile", response_model=ProfileResponse)
async def put_my_profile(
    profile: ProfileUpdate,
    actor: ActorContext = Depends(get_authenticated_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Create or replace the signed-in user's profile.

    Email falls back to the one in the access token.
    """
    email = profile.email or actor.email
    if not email:
        raise ValidationFailedError([{"field": "email", "message": "Field required"}])

    user = await db.get(User, actor.user_id)
    if user is None:
        user = User(id=actor.user_id)
        db.add(user)

    user.email = email
    for field in ("full_name", "phone", "address", "city", "postal_code", "country"):
        setattr(user, field, getattr(profile, field))

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Email '{email}' is already used by another profile")

    await db.refresh(user)
    return ProfileResponse.model_validate(user)
