# app/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models in the Family Organizer service.
    """
    pass


# Import ORM models so that Base.metadata is aware of them
# This import should stay at the bottom to avoid circular dependencies.
from app.models.family import Family, FamilyMember  # noqa: E402,F401
from app.models.calendar_event import (  # noqa: E402,F401
    CalendarEvent,
    CalendarEventCategory,
    calendar_event_participants,
)
from app.models.calendar_event_exception import CalendarEventException  # noqa: E402,F401
from app.models.task_completion import TaskCompletion  # noqa: E402,F401
from app.models.xp import MemberXpHistory, MemberXpProgress  # noqa: E402,F401
