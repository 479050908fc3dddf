# app/schemas/recurrence.py
from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RecurrenceType(str, Enum):
    """
    Cadence of a recurring calendar event.
    """

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class RecurrenceRule(BaseModel):
    """
    Recurrence rule embedded in a calendar event.

    At most one of `end_date` / `end_count` may be given. When both are
    omitted the series is unbounded; expansion is always limited by the
    query window.
    """

    model_config = ConfigDict(frozen=True)

    type: RecurrenceType = Field(
        ...,
        description="Recurrence cadence.",
        examples=["WEEKLY"],
    )
    interval: int = Field(
        default=1,
        ge=1,
        description="Repeat every N days/weeks/months/years.",
        examples=[1],
    )
    end_date: date | None = Field(
        default=None,
        description="Last date (inclusive) on which an occurrence may fall.",
        examples=["2024-06-30"],
    )
    end_count: int | None = Field(
        default=None,
        ge=1,
        description="Total number of occurrences, including the first one.",
        examples=[10],
    )

    @model_validator(mode="after")
    def _single_end_condition(self) -> "RecurrenceRule":
        if self.end_date is not None and self.end_count is not None:
            raise ValueError("Only one of end_date and end_count may be set.")
        return self


class Occurrence(BaseModel):
    """
    One concrete instance of a calendar event on a specific date.

    Derived by the recurrence expander; never persisted.
    """

    model_config = ConfigDict(frozen=True)

    event_id: int = Field(..., description="Identifier of the source event.")
    occurrence_date: date = Field(..., description="Date of this occurrence.")
    start_datetime: datetime = Field(
        ...,
        description="Occurrence date combined with the event's time of day.",
    )
    end_datetime: datetime | None = Field(
        None,
        description="Start plus the source event's duration, if it has an end.",
    )
