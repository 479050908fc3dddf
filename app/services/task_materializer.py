# app/services/task_materializer.py
from __future__ import annotations

import logging
from collections.abc import Collection, Sequence
from datetime import date as date_type, datetime, time, timedelta
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.calendar_event import CalendarEvent
from app.models.family import FamilyMember
from app.schemas.task import MemberTask, MemberTaskList, ToggleResult
from app.services import completion_store, exception_store
from app.services.calendar_service import load_participant_ids
from app.services.family_directory import get_member, list_members
from app.services.recurrence import occurs_on

logger = logging.getLogger(__name__)


class CompletionListener(Protocol):
    """
    Receives completion signals inside the toggle's transaction.
    Implementations must not commit.

    `now` stamps new completions; `on_uncompleted` gets the stamp of the
    completion being undone.
    """

    def now(self) -> datetime: ...

    async def on_completed(
        self, db: AsyncSession, member_id: int, event_id: int, xp_points: int
    ) -> None: ...

    async def on_uncompleted(
        self,
        db: AsyncSession,
        member_id: int,
        event_id: int,
        xp_points: int,
        completed_at: datetime,
    ) -> None: ...


class CompletionConflict(Exception):
    """
    Raised when a concurrent toggle inserted the same completion first.
    The request can be retried.
    """


def _applies_to(participants: Collection[int], member_id: int) -> bool:
    # An event without participants applies to the whole family.
    return not participants or member_id in participants


def _next_midnight(day: date_type) -> datetime:
    return datetime.combine(day + timedelta(days=1), time.min)


async def _family_task_events(db: AsyncSession, family_id: int, day: date_type) -> list[CalendarEvent]:
    result = await db.execute(
        select(CalendarEvent).where(
            CalendarEvent.family_id == family_id,
            CalendarEvent.is_task.is_(True),
            CalendarEvent.start_datetime < _next_midnight(day),
        )
    )
    return list(result.scalars().all())


def _sort_key(task: MemberTask) -> tuple:
    return (not task.is_required, task.title, task.event_id)


async def _materialize(
    db: AsyncSession,
    family_id: int,
    members: Sequence[FamilyMember],
    day: date_type,
) -> dict[int, list[MemberTask]]:
    """
    Build task lists for `members` on `day`.

    One query each for events, participants, exceptions and completions,
    regardless of the number of events or members.
    """
    events = await _family_task_events(db, family_id, day)
    tasks: dict[int, list[MemberTask]] = {m.id: [] for m in members}
    if not events or not members:
        return tasks

    event_ids = [e.id for e in events]
    participants = await load_participant_ids(db, event_ids)
    excluded = await exception_store.excluded_dates_by_event(db, event_ids, day, day)
    completed = await completion_store.completed_keys(
        db, event_ids, day, day, member_ids=[m.id for m in members]
    )

    for event in events:
        occurrence = occurs_on(event, day, excluded.get(event.id, ()))
        if occurrence is None:
            continue
        event_participants = participants.get(event.id, set())
        for member in members:
            if not _applies_to(event_participants, member.id):
                continue
            tasks[member.id].append(
                MemberTask(
                    event_id=event.id,
                    title=event.title,
                    description=event.description,
                    category_id=event.category_id,
                    occurrence_date=occurrence.occurrence_date,
                    start_datetime=occurrence.start_datetime,
                    end_datetime=occurrence.end_datetime,
                    is_required=event.is_required,
                    xp_points=event.xp_points or 0,
                    completed=(event.id, member.id, day) in completed,
                )
            )

    for member_tasks in tasks.values():
        member_tasks.sort(key=_sort_key)
    return tasks


async def tasks_for_member(
    db: AsyncSession,
    member_id: int,
    day: date_type,
) -> list[MemberTask]:
    """
    Tasks of one member on `day`, required first, then by title.
    """
    member = await get_member(db, member_id)
    tasks = await _materialize(db, member.family_id, [member], day)
    return tasks[member.id]


async def tasks_for_family(
    db: AsyncSession,
    family_id: int,
    day: date_type,
) -> list[MemberTaskList]:
    members = await list_members(db, family_id)
    tasks = await _materialize(db, family_id, members, day)
    return [
        MemberTaskList(
            member_id=member.id,
            member_name=member.name,
            role=member.role,
            occurrence_date=day,
            tasks=tasks[member.id],
        )
        for member in members
    ]


async def toggle_completion(
    db: AsyncSession,
    event_id: int,
    member_id: int,
    day: date_type,
    listener: CompletionListener | None = None,
) -> ToggleResult:
    """
    Flip the completion state of (event, member, day) in one transaction.

    Steps
    -----
    1) Validate: the event is a task of the member's family, is assigned to
       the member, and occurs on `day` (exceptions included).
    2) Delete the completion by key. If a row was removed, signal
       "uncompleted" with its completion time; otherwise insert it and signal "completed".
    3) Commit. A unique-key violation from a concurrent insert rolls back
       and raises CompletionConflict.
    """
    member = await get_member(db, member_id)
    event = await db.get(CalendarEvent, event_id)
    if event is None or event.family_id != member.family_id:
        raise LookupError(f"Calendar event with id={event_id} not found")
    if not event.is_task:
        raise ValueError(f"Calendar event {event_id} is not a task.")

    participants = (await load_participant_ids(db, [event_id])).get(event_id, set())
    if not _applies_to(participants, member_id):
        raise ValueError(f"Task {event_id} is not assigned to member {member_id}.")

    excluded = await exception_store.excluded_dates_by_event(db, [event_id], day, day)
    if occurs_on(event, day, excluded.get(event_id, ())) is None:
        raise ValueError(f"Task {event_id} does not occur on {day.isoformat()}.")

    xp_points = event.xp_points or 0
    try:
        completed_at = await completion_store.delete_completion(db, event_id, member_id, day)
        removed = completed_at is not None
        if removed:
            if listener is not None:
                await listener.on_uncompleted(db, member_id, event_id, xp_points, completed_at)
        else:
            await completion_store.insert_completion(
                db,
                event_id,
                member_id,
                day,
                completed_at=listener.now() if listener is not None else None,
            )
            if listener is not None:
                await listener.on_completed(db, member_id, event_id, xp_points)
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        logger.info(
            "Concurrent toggle of task %s for member %s on %s", event_id, member_id, day
        )
        raise CompletionConflict(
            f"Task {event_id} for member {member_id} on {day.isoformat()} was "
            "toggled concurrently; retry the request."
        ) from exc

    logger.info(
        "Task %s for member %s on %s is now %s",
        event_id,
        member_id,
        day,
        "open" if removed else "completed",
    )
    return ToggleResult(
        event_id=event_id,
        member_id=member_id,
        occurrence_date=day,
        completed=not removed,
        xp_points=xp_points,
    )
