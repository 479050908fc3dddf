# app/api/routes/xp.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.device_auth import get_current_member
from app.api.dependencies.xp_ledger import get_xp_ledger
from app.db.session import get_db
from app.models.family import FamilyMember
from app.schemas.xp import XpHistoryRead, XpProgressRead
from app.services.xp_ledger import XpLedger

router = APIRouter(
    prefix="/xp",
    tags=["XP"],
    responses={401: {"description": "Missing or invalid device token."}},
)


@router.get(
    "/me",
    response_model=XpProgressRead,
    summary="XP progress of the caller for the current month",
    description=(
        "Children earn the XP points of each completed task. Every 100 XP is a "
        "level, up to level 10. Progress resets at the monthly rollover."
    ),
    responses={
        200: {
            "description": "Current month progress.",
            "content": {
                "application/json": {
                    "example": {
                        "member_id": 2,
                        "year": 2024,
                        "month": 1,
                        "current_xp": 140,
                        "current_level": 2,
                        "total_tasks_completed": 28,
                        "xp_in_current_level": 40,
                        "xp_for_next_level": 60,
                    }
                }
            },
        }
    },
)
async def my_progress(
    member: FamilyMember = Depends(get_current_member),
    ledger: XpLedger = Depends(get_xp_ledger),
    db: AsyncSession = Depends(get_db),
) -> XpProgressRead:
    return await ledger.current_progress(db, member.id)


@router.get(
    "/me/history",
    response_model=list[XpHistoryRead],
    summary="Closed months of the caller, newest first",
)
async def my_history(
    member: FamilyMember = Depends(get_current_member),
    ledger: XpLedger = Depends(get_xp_ledger),
    db: AsyncSession = Depends(get_db),
) -> list[XpHistoryRead]:
    return await ledger.history(db, member.id)
