# app/schemas/task.py
from datetime import date, datetime

from pydantic import BaseModel, Field


class MemberTask(BaseModel):
    """
    A task occurrence as seen by one member on one date.
    """

    event_id: int = Field(..., examples=[12])
    title: str = Field(..., examples=["Empty the dishwasher"])
    description: str | None = None
    category_id: int | None = None

    occurrence_date: date = Field(..., examples=["2024-01-15"])
    start_datetime: datetime
    end_datetime: datetime | None = None

    is_required: bool = Field(..., description="Required tasks are listed first.")
    xp_points: int = Field(0, description="XP awarded when completed.")
    completed: bool = Field(
        ...,
        description="True if this member has marked the occurrence as done.",
    )


class MemberTaskList(BaseModel):
    """
    All tasks of one member for a single date (family overview).
    """

    member_id: int
    member_name: str
    role: str
    occurrence_date: date
    tasks: list[MemberTask]


class ToggleResult(BaseModel):
    """
    Outcome of toggling a task occurrence.
    """

    event_id: int
    member_id: int
    occurrence_date: date
    completed: bool = Field(..., description="Completion state after the toggle.")
    xp_points: int = Field(
        0,
        description="XP points signalled to the XP ledger (awarded or retracted).",
    )
