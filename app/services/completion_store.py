# app/services/completion_store.py
from __future__ import annotations

from collections.abc import Iterable
from datetime import date as date_type, datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.task_completion import TaskCompletion

CompletionKey = tuple[int, int, date_type]


async def get_completion(
    db: AsyncSession,
    event_id: int,
    member_id: int,
    occurrence_date: date_type,
) -> TaskCompletion | None:
    result = await db.execute(
        select(TaskCompletion).where(
            TaskCompletion.event_id == event_id,
            TaskCompletion.member_id == member_id,
            TaskCompletion.occurrence_date == occurrence_date,
        )
    )
    return result.scalar_one_or_none()


async def insert_completion(
    db: AsyncSession,
    event_id: int,
    member_id: int,
    occurrence_date: date_type,
    completed_at: datetime | None = None,
) -> TaskCompletion:
    """
    Insert and flush a completion row. `completed_at` defaults to now (UTC).

    A concurrent insert of the same key surfaces as IntegrityError from the
    unique constraint; the caller decides how to report it.
    """
    completion = TaskCompletion(
        event_id=event_id,
        member_id=member_id,
        occurrence_date=occurrence_date,
    )
    if completed_at is not None:
        completion.completed_at = completed_at
    db.add(completion)
    await db.flush()
    return completion


async def delete_completion(
    db: AsyncSession,
    event_id: int,
    member_id: int,
    occurrence_date: date_type,
) -> datetime | None:
    """
    Delete by key in a single statement. Returns the removed row's
    `completed_at`, or None if there was nothing to delete.
    """
    result = await db.execute(
        delete(TaskCompletion)
        .where(
            TaskCompletion.event_id == event_id,
            TaskCompletion.member_id == member_id,
            TaskCompletion.occurrence_date == occurrence_date,
        )
        .returning(TaskCompletion.completed_at)
    )
    return result.scalar_one_or_none()


async def completed_keys(
    db: AsyncSession,
    event_ids: Iterable[int],
    from_date: date_type,
    to_date: date_type,
    member_ids: Iterable[int] | None = None,
) -> set[CompletionKey]:
    """
    Batch-fetch (event_id, member_id, occurrence_date) keys in ONE query
    for a set of events and a date window, optionally for given members.
    """
    ids = list(set(event_ids))
    if not ids:
        return set()

    conditions = [
        TaskCompletion.event_id.in_(ids),
        TaskCompletion.occurrence_date >= from_date,
        TaskCompletion.occurrence_date <= to_date,
    ]
    if member_ids is not None:
        conditions.append(TaskCompletion.member_id.in_(list(set(member_ids))))

    result = await db.execute(
        select(
            TaskCompletion.event_id,
            TaskCompletion.member_id,
            TaskCompletion.occurrence_date,
        ).where(*conditions)
    )
    return {(event_id, member_id, day) for event_id, member_id, day in result.all()}


async def delete_for_event(db: AsyncSession, event_id: int) -> None:
    await db.execute(delete(TaskCompletion).where(TaskCompletion.event_id == event_id))


async def delete_from(db: AsyncSession, event_id: int, from_date: date_type) -> None:
    """
    Delete the event's completions dated on or after `from_date`.
    """
    await db.execute(
        delete(TaskCompletion).where(
            TaskCompletion.event_id == event_id,
            TaskCompletion.occurrence_date >= from_date,
        )
    )
