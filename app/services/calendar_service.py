# app/services/calendar_service.py
from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import date as date_type, datetime, timedelta

from sqlalchemy import and_, delete, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.models.calendar_event import (
    CalendarEvent,
    CalendarEventCategory,
    calendar_event_participants,
)
from app.models.family import FamilyMember
from app.schemas.calendar_event import (
    CalendarEventCreate,
    CalendarEventRead,
    CalendarEventUpdate,
    CalendarOccurrenceRead,
    CategoryCreate,
    CategoryUpdate,
    OccurrenceScope,
)
from app.schemas.recurrence import RecurrenceRule, RecurrenceType
from app.services import completion_store, exception_store
from app.services.recurrence import expand, occurs_on, rule_of

logger = logging.getLogger(__name__)

# Widest listing window accepted per cadence, in days.
MAX_WINDOW_DAYS: dict[RecurrenceType, int] = {
    RecurrenceType.DAILY: 365,
    RecurrenceType.WEEKLY: 730,
    RecurrenceType.MONTHLY: 1095,
    RecurrenceType.YEARLY: 3650,
}

DEFAULT_CATEGORY_COLOR = "#b8e6b8"


# ---------------------------------------------------------------------------
# Participants (explicit batch access, no ORM graph traversal)
# ---------------------------------------------------------------------------

async def load_participant_ids(
    db: AsyncSession,
    event_ids: Iterable[int],
) -> dict[int, set[int]]:
    """
    Participant member ids per event, fetched in one query.
    Events without participants are absent from the mapping.
    """
    ids = list(set(event_ids))
    if not ids:
        return {}

    result = await db.execute(
        select(
            calendar_event_participants.c.event_id,
            calendar_event_participants.c.member_id,
        ).where(calendar_event_participants.c.event_id.in_(ids))
    )
    participants: dict[int, set[int]] = defaultdict(set)
    for event_id, member_id in result.all():
        participants[event_id].add(member_id)
    return dict(participants)


async def _replace_participants(
    db: AsyncSession,
    event_id: int,
    family_id: int,
    member_ids: Iterable[int],
) -> None:
    wanted = set(member_ids)
    if wanted:
        result = await db.execute(
            select(FamilyMember.id).where(
                FamilyMember.id.in_(list(wanted)),
                FamilyMember.family_id == family_id,
            )
        )
        found = set(result.scalars().all())
        missing = wanted - found
        if missing:
            raise ValueError(
                f"Participants {sorted(missing)} are not members of family {family_id}."
            )

    await db.execute(
        delete(calendar_event_participants).where(
            calendar_event_participants.c.event_id == event_id
        )
    )
    if wanted:
        await db.execute(
            insert(calendar_event_participants),
            [{"event_id": event_id, "member_id": member_id} for member_id in sorted(wanted)],
        )


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------

def to_read(event: CalendarEvent, participant_ids: Iterable[int] = ()) -> CalendarEventRead:
    return CalendarEventRead(
        id=event.id,
        family_id=event.family_id,
        category_id=event.category_id,
        created_by_id=event.created_by_id,
        title=event.title,
        description=event.description,
        location=event.location,
        start_datetime=event.start_datetime,
        end_datetime=event.end_datetime,
        is_all_day=event.is_all_day,
        recurrence=rule_of(event),
        participant_ids=sorted(participant_ids),
        is_task=event.is_task,
        xp_points=event.xp_points,
        is_required=event.is_required,
        created_at=event.created_at,
        updated_at=event.updated_at,
    )


def _apply_rule(event: CalendarEvent, rule: RecurrenceRule | None) -> None:
    if rule is None:
        event.recurring_type = None
        event.recurring_interval = None
        event.recurring_end_date = None
        event.recurring_end_count = None
        return
    event.recurring_type = rule.type.value
    event.recurring_interval = rule.interval
    event.recurring_end_date = rule.end_date
    event.recurring_end_count = rule.end_count


async def _check_category(db: AsyncSession, family_id: int, category_id: int | None) -> None:
    if category_id is None:
        return
    category = await db.get(CalendarEventCategory, category_id)
    if category is None or category.family_id != family_id:
        raise ValueError(f"Category {category_id} does not belong to family {family_id}.")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

async def get_event(
    db: AsyncSession,
    event_id: int,
    family_id: int | None = None,
) -> CalendarEvent:
    """
    Fetch an event, optionally scoped to a family. Events of other families
    are reported as not found.
    """
    event = await db.get(CalendarEvent, event_id)
    if event is None or (family_id is not None and event.family_id != family_id):
        raise LookupError(f"Calendar event with id={event_id} not found")
    return event


async def create_event(
    db: AsyncSession,
    family_id: int,
    created_by_id: int | None,
    payload: CalendarEventCreate,
    *,
    commit: bool = True,
) -> CalendarEvent:
    """
    Create an event. A task without xp points gets DEFAULT_TASK_XP; a
    non-task event may not carry xp points.
    """
    is_task = bool(payload.is_task)
    if not is_task and payload.xp_points:
        raise ValueError("xp_points can only be set when is_task is true.")

    await _check_category(db, family_id, payload.category_id)

    event = CalendarEvent(
        family_id=family_id,
        category_id=payload.category_id,
        created_by_id=created_by_id,
        title=payload.title.strip(),
        description=payload.description,
        location=payload.location,
        start_datetime=payload.start_datetime,
        end_datetime=payload.end_datetime,
        is_all_day=payload.is_all_day,
        is_task=is_task,
        xp_points=(
            payload.xp_points
            if payload.xp_points is not None or not is_task
            else get_settings().DEFAULT_TASK_XP
        ),
        is_required=True if payload.is_required is None else payload.is_required,
    )
    _apply_rule(event, payload.recurrence)
    db.add(event)
    await db.flush()

    await _replace_participants(db, event.id, family_id, payload.participant_ids)

    if commit:
        await db.commit()
        await db.refresh(event)

    logger.info(
        "Created calendar event %s in family %s (recurring=%s, task=%s)",
        event.id,
        family_id,
        event.recurring_type,
        event.is_task,
    )
    return event


async def update_event(
    db: AsyncSession,
    event_id: int,
    family_id: int,
    payload: CalendarEventUpdate,
    *,
    commit: bool = True,
) -> CalendarEvent:
    """
    Apply a partial update. Only fields explicitly present in `payload` change.
    """
    event = await get_event(db, event_id, family_id)
    fields = payload.model_fields_set

    for name in ("title", "description", "location", "start_datetime", "end_datetime"):
        if name in fields:
            value = getattr(payload, name)
            if name in ("title", "start_datetime") and value is None:
                raise ValueError(f"{name} cannot be cleared.")
            setattr(event, name, value.strip() if name == "title" else value)

    if "is_all_day" in fields and payload.is_all_day is not None:
        event.is_all_day = payload.is_all_day

    if event.end_datetime is not None and event.end_datetime < event.start_datetime:
        raise ValueError("end_datetime must not be before start_datetime.")

    if "category_id" in fields:
        await _check_category(db, family_id, payload.category_id)
        event.category_id = payload.category_id

    if "recurrence" in fields:
        _apply_rule(event, payload.recurrence)

    if "is_task" in fields and payload.is_task is not None:
        event.is_task = payload.is_task
        if not payload.is_task:
            event.xp_points = None
        elif payload.xp_points is None and event.xp_points is None:
            event.xp_points = get_settings().DEFAULT_TASK_XP

    if "xp_points" in fields and payload.xp_points is not None:
        if not event.is_task and payload.xp_points > 0:
            raise ValueError("xp_points can only be set when is_task is true.")
        event.xp_points = payload.xp_points

    if "is_required" in fields and payload.is_required is not None:
        event.is_required = payload.is_required

    if "participant_ids" in fields and payload.participant_ids is not None:
        await _replace_participants(db, event.id, family_id, payload.participant_ids)

    await db.flush()

    if commit:
        await db.commit()
        await db.refresh(event)
    return event


async def _delete_event_rows(db: AsyncSession, event_id: int) -> None:
    replacement_ids = await exception_store.modified_event_ids_for(db, event_id)

    await completion_store.delete_for_event(db, event_id)
    await exception_store.delete_for_event(db, event_id)
    await db.execute(
        delete(calendar_event_participants).where(
            calendar_event_participants.c.event_id == event_id
        )
    )
    for replacement_id in replacement_ids:
        await _delete_event_rows(db, replacement_id)

    await db.execute(delete(CalendarEvent).where(CalendarEvent.id == event_id))


async def delete_event(db: AsyncSession, event_id: int, family_id: int) -> None:
    """
    Delete an event together with its exceptions, completions, participants
    and any single-occurrence replacement events.
    """
    await get_event(db, event_id, family_id)
    await _delete_event_rows(db, event_id)
    await db.commit()
    logger.info("Deleted calendar event %s", event_id)


def check_window(recurring_type: RecurrenceType, start: datetime, end: datetime) -> None:
    """
    Reject listing windows wider than MAX_WINDOW_DAYS for the given cadence.
    """
    max_days = MAX_WINDOW_DAYS[recurring_type]
    days = (end - start).days
    if days > max_days:
        raise ValueError(
            f"Date range exceeds maximum allowed for {recurring_type.value} recurring "
            f"events. Maximum is {max_days} days, but requested range is {days} days."
        )


async def list_events(
    db: AsyncSession,
    family_id: int,
    start: datetime,
    end: datetime,
) -> list[CalendarOccurrenceRead]:
    """
    Calendar view of a family for [start, end].

    Steps
    -----
    1) Single events (including replacements of edited occurrences) whose
       start falls in the range.
    2) Recurring events that may produce occurrences in the range, expanded
       with their exception dates (one batch query for all of them).
    3) Participants for every listed event (one batch query).
    4) Sort by effective start, then event id.
    """
    if start.tzinfo is not None or end.tzinfo is not None:
        raise ValueError("start and end must be local date/times without a timezone offset.")
    if end < start:
        raise ValueError("end must be greater than or equal to start")

    single_result = await db.execute(
        select(CalendarEvent).where(
            CalendarEvent.family_id == family_id,
            CalendarEvent.recurring_type.is_(None),
            CalendarEvent.start_datetime >= start,
            CalendarEvent.start_datetime <= end,
        )
    )
    single_events = list(single_result.scalars().all())

    recurring_result = await db.execute(
        select(CalendarEvent).where(
            and_(
                CalendarEvent.family_id == family_id,
                CalendarEvent.recurring_type.is_not(None),
                CalendarEvent.start_datetime <= end,
                or_(
                    CalendarEvent.recurring_end_date.is_(None),
                    CalendarEvent.recurring_end_date >= start.date(),
                ),
            )
        )
    )
    recurring_events = list(recurring_result.scalars().all())

    for event in recurring_events:
        rule = rule_of(event)
        if rule is not None:
            check_window(rule.type, start, end)

    excluded = await exception_store.excluded_dates_by_event(
        db,
        [e.id for e in recurring_events],
        start.date(),
        end.date(),
    )
    participants = await load_participant_ids(
        db, [e.id for e in single_events] + [e.id for e in recurring_events]
    )

    entries: list[CalendarOccurrenceRead] = []
    for event in single_events + recurring_events:
        base = to_read(event, participants.get(event.id, ())).model_dump()
        for occurrence in expand(
            event, start.date(), end.date(), excluded.get(event.id, ())
        ):
            if not (start <= occurrence.start_datetime <= end):
                continue
            data = dict(base)
            data.update(
                occurrence_date=occurrence.occurrence_date,
                start_datetime=occurrence.start_datetime,
                end_datetime=occurrence.end_datetime,
            )
            entries.append(CalendarOccurrenceRead(**data))

    entries.sort(key=lambda e: (e.start_datetime, e.id))
    return entries


def _as_update(payload: CalendarEventCreate) -> CalendarEventUpdate:
    return CalendarEventUpdate(**payload.model_dump(exclude_none=False))


def _require_series_date(event: CalendarEvent, occurrence_date: date_type) -> None:
    if occurs_on(event, occurrence_date) is None:
        raise ValueError(
            f"{occurrence_date.isoformat()} is not an occurrence of event {event.id}."
        )


async def _truncate_series_before(
    db: AsyncSession,
    event: CalendarEvent,
    occurrence_date: date_type,
) -> bool:
    """
    End the series the day before `occurrence_date`. Returns False when that
    leaves no occurrences at all (the event was deleted instead).
    """
    if occurrence_date <= event.start_datetime.date():
        await _delete_event_rows(db, event.id)
        return False

    # An end date strictly tightens any end count that reached this date.
    event.recurring_end_date = occurrence_date - timedelta(days=1)
    event.recurring_end_count = None

    # Rows past the new end would resurface if the end were widened again.
    replacement_ids = await exception_store.delete_from(db, event.id, occurrence_date)
    for replacement_id in replacement_ids:
        await _delete_event_rows(db, replacement_id)
    await completion_store.delete_from(db, event.id, occurrence_date)
    return True


async def update_event_with_scope(
    db: AsyncSession,
    event_id: int,
    family_id: int,
    occurrence_date: date_type,
    scope: OccurrenceScope,
    payload: CalendarEventCreate,
) -> CalendarEvent:
    """
    Edit one occurrence, the rest of the series, or the whole series.

    - THIS: record an exception for `occurrence_date` and create a standalone
      replacement event from `payload`, linked via `modified_event_id`. A
      previous replacement for the same date is deleted.
    - THIS_AND_FOLLOWING: end the original series the day before and start a
      new series from `payload` (which must carry a recurrence rule).
    - ALL: update the series in place.

    Single (non-recurring) events are always updated in place.
    """
    event = await get_event(db, event_id, family_id)

    if not event.is_recurring:
        return await update_event(db, event_id, family_id, _as_update(payload))

    _require_series_date(event, occurrence_date)

    if payload.is_task is None:
        payload = payload.model_copy(update={"is_task": event.is_task})
    if payload.is_required is None:
        payload = payload.model_copy(update={"is_required": event.is_required})

    if scope is OccurrenceScope.ALL:
        return await update_event(db, event_id, family_id, _as_update(payload))

    if scope is OccurrenceScope.THIS_AND_FOLLOWING:
        if payload.recurrence is None:
            raise ValueError("recurrence is required for scope THIS_AND_FOLLOWING.")
        await _truncate_series_before(db, event, occurrence_date)
        new_series = await create_event(
            db, family_id, event.created_by_id, payload, commit=False
        )
        await db.commit()
        await db.refresh(new_series)
        logger.info(
            "Split series %s at %s into new series %s",
            event_id,
            occurrence_date,
            new_series.id,
        )
        return new_series

    # THIS
    replacement = await create_event(
        db,
        family_id,
        event.created_by_id,
        payload.model_copy(update={"recurrence": None}),
        commit=False,
    )
    exception = await exception_store.get_exception(db, event_id, occurrence_date)
    try:
        if exception is None:
            await exception_store.add_exception(
                db, event_id, occurrence_date, modified_event_id=replacement.id
            )
        else:
            previous_id = exception.modified_event_id
            exception.modified_event_id = replacement.id
            await db.flush()
            if previous_id is not None:
                await _delete_event_rows(db, previous_id)
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ValueError(
            f"Occurrence {occurrence_date.isoformat()} of event {event_id} was "
            "modified concurrently; retry the request."
        ) from exc

    await db.refresh(replacement)
    logger.info(
        "Replaced occurrence %s of event %s with event %s",
        occurrence_date,
        event_id,
        replacement.id,
    )
    return replacement


async def delete_event_with_scope(
    db: AsyncSession,
    event_id: int,
    family_id: int,
    occurrence_date: date_type,
    scope: OccurrenceScope,
) -> None:
    """
    Delete one occurrence, the rest of the series, or the whole series.

    Deleting a single occurrence twice is a no-op; deleting an edited
    occurrence also removes its replacement event.
    """
    event = await get_event(db, event_id, family_id)

    if not event.is_recurring or scope is OccurrenceScope.ALL:
        await delete_event(db, event_id, family_id)
        return

    _require_series_date(event, occurrence_date)

    if scope is OccurrenceScope.THIS_AND_FOLLOWING:
        await _truncate_series_before(db, event, occurrence_date)
        await db.commit()
        return

    exception = await exception_store.get_exception(db, event_id, occurrence_date)
    if exception is None:
        await exception_store.add_exception(db, event_id, occurrence_date)
    elif exception.modified_event_id is not None:
        replacement_id = exception.modified_event_id
        exception.modified_event_id = None
        await db.flush()
        await _delete_event_rows(db, replacement_id)
    await db.commit()
    logger.info("Cancelled occurrence %s of event %s", occurrence_date, event_id)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

async def list_categories(db: AsyncSession, family_id: int) -> list[CalendarEventCategory]:
    result = await db.execute(
        select(CalendarEventCategory)
        .where(CalendarEventCategory.family_id == family_id)
        .order_by(CalendarEventCategory.name.asc())
    )
    return list(result.scalars().all())


async def _ensure_unique_category_name(
    db: AsyncSession,
    family_id: int,
    name: str,
    exclude_id: int | None = None,
) -> None:
    stmt = select(CalendarEventCategory).where(
        CalendarEventCategory.family_id == family_id,
        CalendarEventCategory.name == name,
    )
    existing = (await db.execute(stmt)).scalar_one_or_none()
    if existing is not None and existing.id != exclude_id:
        raise ValueError(f"Category '{name}' already exists.")


async def create_category(
    db: AsyncSession,
    family_id: int,
    payload: CategoryCreate,
) -> CalendarEventCategory:
    name = payload.name.strip()
    if not name:
        raise ValueError("Category name is required.")
    await _ensure_unique_category_name(db, family_id, name)

    category = CalendarEventCategory(
        family_id=family_id,
        name=name,
        color=payload.color or DEFAULT_CATEGORY_COLOR,
    )
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return category


async def get_category(
    db: AsyncSession,
    category_id: int,
    family_id: int,
) -> CalendarEventCategory:
    category = await db.get(CalendarEventCategory, category_id)
    if category is None or category.family_id != family_id:
        raise LookupError(f"Category with id={category_id} not found")
    return category


async def update_category(
    db: AsyncSession,
    category_id: int,
    family_id: int,
    payload: CategoryUpdate,
) -> CalendarEventCategory:
    category = await get_category(db, category_id, family_id)

    if payload.name is not None:
        name = payload.name.strip()
        if not name:
            raise ValueError("Category name is required.")
        await _ensure_unique_category_name(db, family_id, name, exclude_id=category_id)
        category.name = name
    if payload.color is not None:
        category.color = payload.color

    await db.commit()
    await db.refresh(category)
    return category


async def delete_category(db: AsyncSession, category_id: int, family_id: int) -> None:
    await get_category(db, category_id, family_id)
    await db.execute(
        update(CalendarEvent)
        .where(CalendarEvent.category_id == category_id)
        .values(category_id=None)
    )
    await db.execute(
        delete(CalendarEventCategory).where(CalendarEventCategory.id == category_id)
    )
    await db.commit()
