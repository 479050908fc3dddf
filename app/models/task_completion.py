# app/models/task_completion.py
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


class TaskCompletion(Base):
    """
    Marks one occurrence of a task event as done by one member.
    """

    __tablename__ = "task_completions"

    id = Column(Integer, primary_key=True, index=True)

    event_id = Column(
        Integer,
        ForeignKey("calendar_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    member_id = Column(
        Integer,
        ForeignKey("family_members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    occurrence_date = Column(Date, nullable=False, index=True)

    completed_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(tz=timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint(
            "event_id",
            "member_id",
            "occurrence_date",
            name="uq_task_completions_event_member_date",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<TaskCompletion id={self.id} event_id={self.event_id} "
            f"member_id={self.member_id} date={self.occurrence_date}>"
        )
