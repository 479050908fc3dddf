# app/schemas/xp.py
from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class XpProgressRead(BaseModel):
    """
    XP standing of a member for the current month.
    """

    model_config = ConfigDict(from_attributes=True)

    member_id: int
    year: int
    month: int = Field(..., ge=1, le=12)
    current_xp: int
    current_level: int
    total_tasks_completed: int
    xp_in_current_level: int = Field(..., description="Progress inside the current level.")
    xp_for_next_level: int = Field(..., description="XP still missing; 0 at max level.")


class XpHistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    member_id: int
    year: int
    month: int
    final_xp: int
    final_level: int
    total_tasks_completed: int


class MonthlyRolloverSummary(BaseModel):
    """
    Summary payload returned by /internal/run-monthly-rollover.
    """

    run_date: date = Field(..., examples=["2024-02-01"])
    closed_year: int = Field(..., description="Year of the month that was closed.")
    closed_month: int = Field(..., description="Month that was closed (1-12).")
    members_rolled_over: int = Field(
        ...,
        description="Progress rows moved into history in this run.",
    )
