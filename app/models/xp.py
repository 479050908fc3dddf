# app/models/xp.py
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    UniqueConstraint,
)

from app.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class MemberXpProgress(Base):
    """
    Running XP total of a member for one calendar month.
    """

    __tablename__ = "member_xp_progress"

    id = Column(Integer, primary_key=True, index=True)

    member_id = Column(
        Integer,
        ForeignKey("family_members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)

    current_xp = Column(Integer, nullable=False, default=0)
    current_level = Column(Integer, nullable=False, default=1)
    total_tasks_completed = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "member_id",
            "year",
            "month",
            name="uq_member_xp_progress_member_month",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<MemberXpProgress member_id={self.member_id} "
            f"{self.year}-{self.month:02d} xp={self.current_xp} "
            f"level={self.current_level}>"
        )


class MemberXpHistory(Base):
    """
    Frozen end-of-month snapshot written by the monthly rollover.
    """

    __tablename__ = "member_xp_history"

    id = Column(Integer, primary_key=True, index=True)

    member_id = Column(
        Integer,
        ForeignKey("family_members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)

    final_xp = Column(Integer, nullable=False)
    final_level = Column(Integer, nullable=False)
    total_tasks_completed = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint(
            "member_id",
            "year",
            "month",
            name="uq_member_xp_history_member_month",
        ),
    )
