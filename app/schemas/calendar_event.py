# app/schemas/calendar_event.py

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.schemas.recurrence import RecurrenceRule


class OccurrenceScope(str, Enum):
    """
    Which part of a recurring series an edit or delete applies to.
    """

    THIS = "THIS"
    THIS_AND_FOLLOWING = "THIS_AND_FOLLOWING"
    ALL = "ALL"


# --------------------------------------------------------------------------
# Categories
# --------------------------------------------------------------------------

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, examples=["School"])
    color: str | None = Field(
        default=None,
        pattern=r"^#[0-9a-fA-F]{6}$",
        description="Hex colour; defaults to #b8e6b8.",
        examples=["#ffcc00"],
    )


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    color: str | None = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")


class CategoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    family_id: int
    name: str
    color: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


# --------------------------------------------------------------------------
# Events
# --------------------------------------------------------------------------

def _naive_local(value: datetime | None) -> datetime | None:
    # Events live in the family's local time; an offset would be dropped silently.
    if value is not None and value.tzinfo is not None:
        raise ValueError("must be a local date/time without a timezone offset.")
    return value


class CalendarEventCreate(BaseModel):
    """
    Payload for creating an event, and the full replacement payload for
    scoped edits of a recurring series.
    """

    title: str = Field(..., min_length=1, max_length=255, examples=["Swimming"])
    description: str | None = Field(default=None, max_length=500)
    location: str | None = Field(default=None, max_length=255)

    start_datetime: datetime = Field(
        ...,
        description="Local start date/time (no timezone).",
        examples=["2024-01-01T17:00"],
    )
    end_datetime: datetime | None = Field(
        default=None,
        description="Local end date/time; omit for a point in time.",
        examples=["2024-01-01T18:00"],
    )
    is_all_day: bool = False

    category_id: int | None = None
    participant_ids: list[int] = Field(
        default_factory=list,
        description="Members taking part. Empty means the whole family.",
    )

    recurrence: RecurrenceRule | None = Field(
        default=None,
        description="Recurrence rule; omit for a single occurrence.",
    )

    is_task: bool | None = Field(
        default=None,
        description="Whether this event shows up as a to-do in the daily task list.",
    )
    xp_points: int | None = Field(
        default=None,
        ge=0,
        description="XP awarded per completed occurrence (tasks only).",
    )
    is_required: bool | None = Field(
        default=None,
        description="Required tasks sort before optional ones.",
    )

    @field_validator("start_datetime", "end_datetime")
    @classmethod
    def _local_datetimes_only(cls, value: datetime | None) -> datetime | None:
        return _naive_local(value)

    @model_validator(mode="after")
    def _end_not_before_start(self) -> "CalendarEventCreate":
        if self.end_datetime is not None and self.end_datetime < self.start_datetime:
            raise ValueError("end_datetime must not be before start_datetime.")
        return self


class CalendarEventUpdate(BaseModel):
    """
    Partial update. Only fields present in the request body are applied;
    sending `"recurrence": null` turns a series into a single event.
    """

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=500)
    location: str | None = Field(default=None, max_length=255)
    start_datetime: datetime | None = None
    end_datetime: datetime | None = None
    is_all_day: bool | None = None
    category_id: int | None = None
    participant_ids: list[int] | None = None
    recurrence: RecurrenceRule | None = None
    is_task: bool | None = None
    xp_points: int | None = Field(default=None, ge=0)
    is_required: bool | None = None

    @field_validator("start_datetime", "end_datetime")
    @classmethod
    def _local_datetimes_only(cls, value: datetime | None) -> datetime | None:
        return _naive_local(value)


class CalendarEventRead(BaseModel):
    id: int
    family_id: int
    category_id: int | None = None
    created_by_id: int | None = None

    title: str
    description: str | None = None
    location: str | None = None

    start_datetime: datetime
    end_datetime: datetime | None = None
    is_all_day: bool

    recurrence: RecurrenceRule | None = None
    participant_ids: list[int] = Field(default_factory=list)

    is_task: bool
    xp_points: int | None = None
    is_required: bool

    created_at: datetime | None = None
    updated_at: datetime | None = None


class CalendarOccurrenceRead(CalendarEventRead):
    """
    One entry of a calendar range listing.

    `start_datetime` / `end_datetime` are the effective times of this
    occurrence; `recurrence` still describes the whole series.
    """

    occurrence_date: date = Field(..., description="Date of this occurrence.")
