# app/api/dependencies/device_auth.py
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.family import FamilyMember
from app.schemas.family import MemberRole
from app.services.family_directory import get_member_by_device_token


async def get_current_member(
    device_token: Optional[str] = Header(
        default=None,
        alias="X-Device-Token",
        description="Device token issued when the family member was created.",
    ),
    db: AsyncSession = Depends(get_db),
) -> FamilyMember:
    """
    Resolve the calling family member from the X-Device-Token header.

    A missing or unknown token yields 401.
    """
    if not device_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing device token.",
        )
    try:
        return await get_member_by_device_token(db, device_token)
    except LookupError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid device token.",
        )


async def require_adult(
    member: FamilyMember = Depends(get_current_member),
) -> FamilyMember:
    """
    Only PARENT and ASSISTANT members may manage the family directory.
    """
    if member.role == MemberRole.CHILD.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Children cannot perform this action.",
        )
    return member
