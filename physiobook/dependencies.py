"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from physiobook.core.events import EventBus, get_event_bus
from physiobook.core.security import decode_access_token
from physiobook.database import get_db
from physiobook.services.appointment_lifecycle import Actor, Role
from physiobook.services.profile_service import ProfileService

# Security
security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> UUID:
    """
    Extract and validate user ID from JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        User ID from token

    Raises:
        HTTPException: If token is missing, invalid or expired
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return UUID(user_id_str)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID format",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_actor(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Actor:
    """
    Resolve the caller's role from their profile.

    Callers without a profile row are treated as patients.

    Args:
        user_id: User ID from JWT token
        db: Database session

    Returns:
        Authenticated actor
    """
    profile = await ProfileService.get_profile_by_id(db, user_id)
    role = Role(profile["role"]) if profile else Role.PATIENT
    return Actor(id=user_id, role=role)


async def get_current_staff(
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> Actor:
    """
    Require a staff or admin caller.

    Raises:
        HTTPException: If the caller is a patient
    """
    if not actor.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Clinic staff access required",
        )
    return actor


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
CurrentStaff = Annotated[Actor, Depends(get_current_staff)]
Events = Annotated[EventBus, Depends(get_event_bus)]
