# app/services/exception_store.py
from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import date as date_type

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.calendar_event_exception import CalendarEventException


async def get_exception(
    db: AsyncSession,
    event_id: int,
    occurrence_date: date_type,
) -> CalendarEventException | None:
    result = await db.execute(
        select(CalendarEventException).where(
            CalendarEventException.event_id == event_id,
            CalendarEventException.occurrence_date == occurrence_date,
        )
    )
    return result.scalar_one_or_none()


async def add_exception(
    db: AsyncSession,
    event_id: int,
    occurrence_date: date_type,
    modified_event_id: int | None = None,
) -> CalendarEventException:
    """
    Insert an exception row. The caller owns the transaction.
    """
    exception = CalendarEventException(
        event_id=event_id,
        occurrence_date=occurrence_date,
        modified_event_id=modified_event_id,
    )
    db.add(exception)
    await db.flush()
    return exception


async def delete_exception(
    db: AsyncSession,
    event_id: int,
    occurrence_date: date_type,
) -> bool:
    result = await db.execute(
        delete(CalendarEventException).where(
            CalendarEventException.event_id == event_id,
            CalendarEventException.occurrence_date == occurrence_date,
        )
    )
    return (result.rowcount or 0) > 0


async def excluded_dates_by_event(
    db: AsyncSession,
    event_ids: Iterable[int],
    from_date: date_type | None = None,
    to_date: date_type | None = None,
) -> dict[int, set[date_type]]:
    """
    Batch-fetch exception dates for a set of events in ONE query.

    Optionally limited to [from_date, to_date]. Events without exceptions
    are absent from the returned mapping.
    """
    ids = list(set(event_ids))
    if not ids:
        return {}

    conditions = [CalendarEventException.event_id.in_(ids)]
    if from_date is not None:
        conditions.append(CalendarEventException.occurrence_date >= from_date)
    if to_date is not None:
        conditions.append(CalendarEventException.occurrence_date <= to_date)

    result = await db.execute(
        select(
            CalendarEventException.event_id,
            CalendarEventException.occurrence_date,
        ).where(*conditions)
    )

    excluded: dict[int, set[date_type]] = defaultdict(set)
    for event_id, occurrence_date in result.all():
        excluded[event_id].add(occurrence_date)
    return dict(excluded)


async def modified_event_ids_for(db: AsyncSession, event_id: int) -> list[int]:
    """
    Replacement events created by single-occurrence edits of `event_id`.
    """
    result = await db.execute(
        select(CalendarEventException.modified_event_id).where(
            CalendarEventException.event_id == event_id,
            CalendarEventException.modified_event_id.is_not(None),
        )
    )
    return list(result.scalars().all())


async def delete_for_event(db: AsyncSession, event_id: int) -> None:
    """
    Remove the exceptions owned by `event_id` and detach the ones that use it
    as a replacement (the original occurrence stays suppressed).
    """
    await db.execute(
        delete(CalendarEventException).where(CalendarEventException.event_id == event_id)
    )
    await db.execute(
        update(CalendarEventException)
        .where(CalendarEventException.modified_event_id == event_id)
        .values(modified_event_id=None)
    )


async def delete_from(db: AsyncSession, event_id: int, from_date: date_type) -> list[int]:
    """
    Delete the event's exceptions dated on or after `from_date`. Returns the
    replacement event ids they pointed to.
    """
    result = await db.execute(
        delete(CalendarEventException)
        .where(
            CalendarEventException.event_id == event_id,
            CalendarEventException.occurrence_date >= from_date,
        )
        .returning(CalendarEventException.modified_event_id)
    )
    return [replacement_id for replacement_id in result.scalars().all() if replacement_id is not None]
