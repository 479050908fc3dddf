# app/models/calendar_event_exception.py
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    UniqueConstraint,
)

from app.db.base import Base


class CalendarEventException(Base):
    """
    Suppresses a single occurrence of a recurring event.

    When the occurrence was edited rather than cancelled, `modified_event_id`
    points to the standalone replacement event.
    """

    __tablename__ = "calendar_event_exceptions"

    id = Column(Integer, primary_key=True, index=True)

    event_id = Column(
        Integer,
        ForeignKey("calendar_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    occurrence_date = Column(Date, nullable=False, index=True)

    modified_event_id = Column(
        Integer,
        ForeignKey("calendar_events.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(tz=timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint(
            "event_id",
            "occurrence_date",
            name="uq_calendar_event_exceptions_event_date",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<CalendarEventException id={self.id} event_id={self.event_id} "
            f"date={self.occurrence_date} modified_event_id={self.modified_event_id}>"
        )
