# app/models/calendar_event.py
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    UniqueConstraint,
)

from app.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# Participants are read through explicit batch queries
# (see app.services.calendar_service.load_participant_ids), never through an
# ORM relationship, so no relationship() is declared for this table.
calendar_event_participants = Table(
    "calendar_event_participants",
    Base.metadata,
    Column(
        "event_id",
        Integer,
        ForeignKey("calendar_events.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "member_id",
        Integer,
        ForeignKey("family_members.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    ),
)


class CalendarEventCategory(Base):
    """
    Colour-coded label for calendar events ("School", "Sports", ...).
    Names are unique within a family.
    """

    __tablename__ = "calendar_event_categories"

    id = Column(Integer, primary_key=True, index=True)

    family_id = Column(
        Integer,
        ForeignKey("families.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String(255), nullable=False)
    color = Column(String(7), nullable=False, default="#b8e6b8")

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "family_id",
            "name",
            name="uq_calendar_event_categories_family_name",
        ),
    )

    def __repr__(self) -> str:
        return f"<CalendarEventCategory id={self.id} name={self.name!r}>"


class CalendarEvent(Base):
    """
    A calendar entry, optionally recurring, optionally a task.

    Start/end are naive local datetimes as entered by the family. The
    recurring_* columns are either all NULL (single occurrence) or describe
    a rule expanded by app.services.recurrence.
    """

    __tablename__ = "calendar_events"

    id = Column(Integer, primary_key=True, index=True)

    family_id = Column(
        Integer,
        ForeignKey("families.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category_id = Column(
        Integer,
        ForeignKey("calendar_event_categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_by_id = Column(
        Integer,
        ForeignKey("family_members.id", ondelete="SET NULL"),
        nullable=True,
    )

    title = Column(String(255), nullable=False)
    description = Column(String(500), nullable=True)
    location = Column(String(255), nullable=True)

    start_datetime = Column(DateTime, nullable=False, index=True)
    end_datetime = Column(DateTime, nullable=True)
    is_all_day = Column(Boolean, nullable=False, default=False)

    recurring_type = Column(String(20), nullable=True, index=True)
    recurring_interval = Column(Integer, nullable=True)
    recurring_end_date = Column(Date, nullable=True)
    recurring_end_count = Column(Integer, nullable=True)

    is_task = Column(Boolean, nullable=False, default=False, index=True)
    xp_points = Column(Integer, nullable=True)
    is_required = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    @property
    def is_recurring(self) -> bool:
        return self.recurring_type is not None

    def __repr__(self) -> str:
        return (
            f"<CalendarEvent id={self.id} family_id={self.family_id} "
            f"title={self.title!r} start={self.start_datetime} "
            f"recurring={self.recurring_type}>"
        )
