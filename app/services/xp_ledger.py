# app/services/xp_ledger.py
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date as date_type, datetime

from dateutil.relativedelta import relativedelta
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.models.family import FamilyMember
from app.models.xp import MemberXpHistory, MemberXpProgress
from app.schemas.family import MemberRole
from app.schemas.xp import MonthlyRolloverSummary, XpHistoryRead, XpProgressRead

logger = logging.getLogger(__name__)


def calculate_level(xp: int) -> int:
    """
    Level for an XP total: one level per XP_PER_LEVEL points, starting at 1,
    capped at MAX_LEVEL.
    """
    settings = get_settings()
    return min(max(xp, 0) // settings.XP_PER_LEVEL + 1, settings.MAX_LEVEL)


def _progress_read(
    member_id: int,
    year: int,
    month: int,
    xp: int,
    tasks_completed: int,
) -> XpProgressRead:
    settings = get_settings()
    level = calculate_level(xp)
    level_floor = (level - 1) * settings.XP_PER_LEVEL
    at_max = level >= settings.MAX_LEVEL
    return XpProgressRead(
        member_id=member_id,
        year=year,
        month=month,
        current_xp=xp,
        current_level=level,
        total_tasks_completed=tasks_completed,
        xp_in_current_level=xp - level_floor,
        xp_for_next_level=0 if at_max else level * settings.XP_PER_LEVEL - xp,
    )


def _local_day(stamp: datetime) -> date_type:
    # SQLite hands back the stored wall time without an offset.
    if stamp.tzinfo is not None:
        stamp = stamp.astimezone()
    return stamp.date()


class XpLedger:
    """
    Monthly XP bookkeeping for children, fed by task completion signals.

    The ledger never commits: it runs inside the caller's transaction so a
    toggle and its XP change succeed or fail together. `today` is injectable
    for tests.
    """

    def __init__(self, today: Callable[[], date_type] = date_type.today) -> None:
        self._today = today

    def now(self) -> datetime:
        """
        Local time of day on the ledger's calendar day. Completions are
        stamped with it, so they book into the month the ledger sees.
        """
        return datetime.combine(self._today(), datetime.now().astimezone().timetz())

    async def _load_member(self, db: AsyncSession, member_id: int) -> FamilyMember:
        member = await db.get(FamilyMember, member_id)
        if member is None:
            raise LookupError(f"Family member with id={member_id} not found")
        return member

    async def _progress_row(
        self,
        db: AsyncSession,
        member_id: int,
        *,
        create: bool,
    ) -> MemberXpProgress | None:
        today = self._today()
        result = await db.execute(
            select(MemberXpProgress).where(
                MemberXpProgress.member_id == member_id,
                MemberXpProgress.year == today.year,
                MemberXpProgress.month == today.month,
            )
        )
        progress = result.scalar_one_or_none()
        if progress is None and create:
            progress = MemberXpProgress(
                member_id=member_id,
                year=today.year,
                month=today.month,
                current_xp=0,
                current_level=1,
                total_tasks_completed=0,
            )
            db.add(progress)
        return progress

    async def on_completed(
        self,
        db: AsyncSession,
        member_id: int,
        event_id: int,
        xp_points: int,
    ) -> None:
        member = await self._load_member(db, member_id)
        if member.role != MemberRole.CHILD.value:
            return

        progress = await self._progress_row(db, member_id, create=True)
        progress.current_xp = (progress.current_xp or 0) + xp_points
        progress.current_level = calculate_level(progress.current_xp)
        progress.total_tasks_completed = (progress.total_tasks_completed or 0) + 1
        await db.flush()

        logger.debug(
            "Member %s earned %s xp for task %s (total=%s, level=%s)",
            member_id,
            xp_points,
            event_id,
            progress.current_xp,
            progress.current_level,
        )

    async def on_uncompleted(
        self,
        db: AsyncSession,
        member_id: int,
        event_id: int,
        xp_points: int,
        completed_at: datetime,
    ) -> None:
        member = await self._load_member(db, member_id)
        if member.role != MemberRole.CHILD.value:
            return

        booked = _local_day(completed_at)
        today = self._today()
        if (booked.year, booked.month) != (today.year, today.month):
            # Booked into a month that is already closed.
            return

        progress = await self._progress_row(db, member_id, create=False)
        if progress is None:
            return

        progress.current_xp = max(0, (progress.current_xp or 0) - xp_points)
        progress.current_level = calculate_level(progress.current_xp)
        progress.total_tasks_completed = max(0, (progress.total_tasks_completed or 0) - 1)
        await db.flush()

        logger.debug(
            "Member %s lost %s xp for task %s (total=%s)",
            member_id,
            xp_points,
            event_id,
            progress.current_xp,
        )

    async def current_progress(self, db: AsyncSession, member_id: int) -> XpProgressRead:
        """
        Progress for the current month; a member without a row yet is at
        level 1 with zero XP.
        """
        await self._load_member(db, member_id)
        today = self._today()
        progress = await self._progress_row(db, member_id, create=False)
        if progress is None:
            return _progress_read(member_id, today.year, today.month, 0, 0)
        return _progress_read(
            member_id,
            progress.year,
            progress.month,
            progress.current_xp,
            progress.total_tasks_completed,
        )

    async def history(self, db: AsyncSession, member_id: int) -> list[XpHistoryRead]:
        await self._load_member(db, member_id)
        result = await db.execute(
            select(MemberXpHistory)
            .where(MemberXpHistory.member_id == member_id)
            .order_by(MemberXpHistory.year.desc(), MemberXpHistory.month.desc())
        )
        return [XpHistoryRead.model_validate(row) for row in result.scalars().all()]


async def run_monthly_rollover(
    db: AsyncSession,
    today: date_type,
) -> MonthlyRolloverSummary:
    """
    Close every progress row older than the month of `today`.

    Behavior
    --------
    - Each stale row is snapshotted into MemberXpHistory for its own
      (year, month), unless a snapshot already exists.
    - The row is then reset and moved to the current month. If the member
      already has a current-month row (completions before the rollover ran),
      the stale row is deleted instead.
    - Running twice for the same month changes nothing the second time.
    """
    closed = today - relativedelta(months=1)

    stale_result = await db.execute(
        select(MemberXpProgress).where(
            or_(
                MemberXpProgress.year < today.year,
                (MemberXpProgress.year == today.year)
                & (MemberXpProgress.month < today.month),
            )
        )
    )
    stale_rows = list(stale_result.scalars().all())

    current_result = await db.execute(
        select(MemberXpProgress.member_id).where(
            MemberXpProgress.year == today.year,
            MemberXpProgress.month == today.month,
        )
    )
    has_current = set(current_result.scalars().all())

    rolled_over = 0
    for progress in stale_rows:
        existing = await db.execute(
            select(MemberXpHistory.id).where(
                MemberXpHistory.member_id == progress.member_id,
                MemberXpHistory.year == progress.year,
                MemberXpHistory.month == progress.month,
            )
        )
        if existing.scalar_one_or_none() is None:
            db.add(
                MemberXpHistory(
                    member_id=progress.member_id,
                    year=progress.year,
                    month=progress.month,
                    final_xp=progress.current_xp,
                    final_level=progress.current_level,
                    total_tasks_completed=progress.total_tasks_completed,
                )
            )
            rolled_over += 1

        if progress.member_id in has_current:
            await db.delete(progress)
            continue

        progress.year = today.year
        progress.month = today.month
        progress.current_xp = 0
        progress.current_level = 1
        progress.total_tasks_completed = 0
        has_current.add(progress.member_id)

    await db.flush()
    await db.commit()

    logger.info(
        "Monthly rollover on %s closed %s-%02d for %s members",
        today,
        closed.year,
        closed.month,
        rolled_over,
    )
    return MonthlyRolloverSummary(
        run_date=today,
        closed_year=closed.year,
        closed_month=closed.month,
        members_rolled_over=rolled_over,
    )
