# app/api/routes/families.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.device_auth import get_current_member, require_adult
from app.db.session import get_db
from app.models.family import FamilyMember
from app.schemas.family import (
    FamilyCreate,
    FamilyCreated,
    FamilyRead,
    MemberCreate,
    MemberRead,
    MemberWithToken,
)
from app.services import family_directory

router = APIRouter(prefix="/families", tags=["Families"])


@router.post(
    "",
    response_model=FamilyCreated,
    status_code=HTTPStatus.CREATED,
    summary="Register a new family",
    description=(
        "Create a family together with its first member, who becomes a `PARENT`.\n\n"
        "The response contains the member's `device_token`. Store it on the device "
        "and send it as `X-Device-Token` on every other request; it is not "
        "returned again."
    ),
    responses={
        201: {
            "description": "Family and first member created.",
            "content": {
                "application/json": {
                    "example": {
                        "family": {"id": 1, "name": "The Svenssons"},
                        "member": {
                            "id": 1,
                            "family_id": 1,
                            "name": "Anna",
                            "role": "PARENT",
                            "device_token": "q3U0...",
                        },
                    }
                }
            },
        },
    },
)
async def create_family(
    payload: FamilyCreate,
    db: AsyncSession = Depends(get_db),
) -> FamilyCreated:
    family, member = await family_directory.create_family(
        db,
        family_name=payload.family_name,
        member_name=payload.member_name,
        email=payload.email,
    )
    return FamilyCreated(
        family=FamilyRead.model_validate(family),
        member=MemberWithToken.model_validate(member),
    )


@router.get(
    "/me",
    response_model=FamilyRead,
    summary="Get the caller's family",
    responses={401: {"description": "Missing or invalid device token."}},
)
async def get_my_family(
    member: FamilyMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
) -> FamilyRead:
    try:
        family = await family_directory.get_family(db, member.family_id)
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))
    return FamilyRead.model_validate(family)


@router.get(
    "/members",
    response_model=list[MemberRead],
    summary="List members of the caller's family",
    responses={401: {"description": "Missing or invalid device token."}},
)
async def list_members(
    member: FamilyMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
) -> list[MemberRead]:
    members = await family_directory.list_members(db, member.family_id)
    return [MemberRead.model_validate(m) for m in members]


@router.post(
    "/members",
    response_model=MemberWithToken,
    status_code=HTTPStatus.CREATED,
    summary="Add a member to the caller's family",
    description=(
        "Adds a new member (default role `CHILD`) and issues a device token for "
        "the member's own device. Only `PARENT` and `ASSISTANT` members may add "
        "members."
    ),
    responses={
        201: {"description": "Member created; the device token is returned once."},
        401: {"description": "Missing or invalid device token."},
        403: {"description": "The caller is a child."},
    },
)
async def add_member(
    payload: MemberCreate,
    member: FamilyMember = Depends(require_adult),
    db: AsyncSession = Depends(get_db),
) -> MemberWithToken:
    try:
        created = await family_directory.add_member(
            db,
            family_id=member.family_id,
            name=payload.name,
            role=payload.role,
            email=payload.email,
        )
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))
    return MemberWithToken.model_validate(created)
