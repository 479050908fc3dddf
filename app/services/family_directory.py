# app/services/family_directory.py
from __future__ import annotations

import logging
import secrets

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.family import Family, FamilyMember
from app.schemas.family import MemberRole

logger = logging.getLogger(__name__)


def generate_device_token() -> str:
    return secrets.token_urlsafe(32)


async def create_family(
    db: AsyncSession,
    family_name: str,
    member_name: str,
    email: str | None = None,
) -> tuple[Family, FamilyMember]:
    """
    Create a family together with its first member, who is always a PARENT.
    """
    family = Family(name=family_name.strip())
    db.add(family)
    await db.flush()

    member = FamilyMember(
        family_id=family.id,
        name=member_name.strip(),
        role=MemberRole.PARENT.value,
        email=email,
        device_token=generate_device_token(),
    )
    db.add(member)
    await db.commit()
    await db.refresh(family)
    await db.refresh(member)

    logger.info("Created family %s with parent member %s", family.id, member.id)
    return family, member


async def add_member(
    db: AsyncSession,
    family_id: int,
    name: str,
    role: MemberRole = MemberRole.CHILD,
    email: str | None = None,
) -> FamilyMember:
    family = await db.get(Family, family_id)
    if family is None:
        raise LookupError(f"Family with id={family_id} not found")

    member = FamilyMember(
        family_id=family_id,
        name=name.strip(),
        role=MemberRole(role).value,
        email=email,
        device_token=generate_device_token(),
    )
    db.add(member)
    await db.commit()
    await db.refresh(member)

    logger.info("Added %s member %s to family %s", member.role, member.id, family_id)
    return member


async def list_members(db: AsyncSession, family_id: int) -> list[FamilyMember]:
    result = await db.execute(
        select(FamilyMember)
        .where(FamilyMember.family_id == family_id)
        .order_by(FamilyMember.id.asc())
    )
    return list(result.scalars().all())


async def get_family(db: AsyncSession, family_id: int) -> Family:
    family = await db.get(Family, family_id)
    if family is None:
        raise LookupError(f"Family with id={family_id} not found")
    return family


async def get_member(db: AsyncSession, member_id: int) -> FamilyMember:
    member = await db.get(FamilyMember, member_id)
    if member is None:
        raise LookupError(f"Family member with id={member_id} not found")
    return member


async def get_member_by_device_token(db: AsyncSession, device_token: str) -> FamilyMember:
    """
    Resolve a device token to the member it belongs to.

    Raises LookupError for an empty or unknown token.
    """
    if not device_token:
        raise LookupError("Device token is empty")

    result = await db.execute(
        select(FamilyMember).where(FamilyMember.device_token == device_token)
    )
    member = result.scalar_one_or_none()
    if member is None:
        raise LookupError("No family member found for device token")
    return member
