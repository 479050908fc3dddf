# app/models/family.py
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from app.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class Family(Base):
    """
    A household sharing one calendar, one task list and one XP board.
    """

    __tablename__ = "families"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    members = relationship(
        "FamilyMember",
        back_populates="family",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Family id={self.id} name={self.name!r}>"


class FamilyMember(Base):
    """
    A person in a family. Requests are attributed to a member through the
    device token stored on this row.
    """

    __tablename__ = "family_members"

    id = Column(Integer, primary_key=True, index=True)

    family_id = Column(
        Integer,
        ForeignKey("families.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False, default="CHILD")
    email = Column(String(255), nullable=True)
    device_token = Column(String(64), nullable=True, unique=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    family = relationship("Family", back_populates="members")

    def __repr__(self) -> str:
        return (
            f"<FamilyMember id={self.id} family_id={self.family_id} "
            f"name={self.name!r} role={self.role}>"
        )
