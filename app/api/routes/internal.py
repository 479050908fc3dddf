# app/api/routes/internal.py
from datetime import date as date_type

from fastapi import APIRouter, Depends, Query
from http import HTTPStatus
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.internal_auth import verify_internal_api_key
from app.db.session import get_db
from app.schemas.xp import MonthlyRolloverSummary
from app.services.xp_ledger import run_monthly_rollover

router = APIRouter(
    prefix="/internal",
    tags=["Internal"],
    dependencies=[Depends(verify_internal_api_key)],
)


@router.post(
    "/run-monthly-rollover",
    response_model=MonthlyRolloverSummary,
    status_code=HTTPStatus.OK,
    summary="Close the previous XP month for all members",
    description=(
        "Snapshots every member's XP progress from before the month of `run_date` "
        "into the XP history and resets the progress for the current month.\n\n"
        "This endpoint is intended to be called from a cron job or scheduler on "
        "the first day of each month and is protected via the "
        "`X-Internal-Api-Key` header when configured.\n\n"
        "Running it again in the same month is a no-op."
    ),
    responses={
        200: {
            "description": "Rollover executed successfully. A summary is returned.",
            "content": {
                "application/json": {
                    "example": {
                        "run_date": "2024-02-01",
                        "closed_year": 2024,
                        "closed_month": 1,
                        "members_rolled_over": 3,
                    }
                }
            },
        },
        401: {
            "description": "Missing or invalid internal API key (if configured).",
        },
    },
)
async def trigger_monthly_rollover(
    run_date: date_type | None = Query(
        default=None,
        description=(
            "Business date of the run. "
            "If omitted, the server's current date will be used."
        ),
        examples=["2024-02-01"],
    ),
    db: AsyncSession = Depends(get_db),
) -> MonthlyRolloverSummary:
    """
    Run the monthly XP rollover.

    In production this endpoint should be invoked by a scheduler once per
    month (e.g. via cron + curl).
    """
    if run_date is None:
        run_date = date_type.today()

    return await run_monthly_rollover(db, today=run_date)
