# app/services/recurrence.py
from __future__ import annotations

import logging
import math
from collections.abc import Collection
from datetime import date as date_type, datetime, timedelta
from typing import Any

from dateutil.relativedelta import relativedelta
from pydantic import ValidationError

from app.schemas.recurrence import Occurrence, RecurrenceRule, RecurrenceType

logger = logging.getLogger(__name__)


class InvalidRecurrenceRule(ValueError):
    """
    Raised when recurrence fields do not form a valid rule.
    """


def validate_rule(
    recurring_type: str | None,
    interval: int | None,
    end_date: date_type | None,
    end_count: int | None,
) -> RecurrenceRule:
    """
    Build a RecurrenceRule from flat column values.

    A missing interval means 1. Raises InvalidRecurrenceRule for an
    unknown type, an interval below 1, an end count below 1, or when both
    end conditions are set.
    """
    try:
        return RecurrenceRule(
            type=recurring_type,
            interval=1 if interval is None else interval,
            end_date=end_date,
            end_count=end_count,
        )
    except ValidationError as exc:
        raise InvalidRecurrenceRule(
            f"Invalid recurrence rule (type={recurring_type!r}, interval={interval!r}, "
            f"end_date={end_date!r}, end_count={end_count!r}): "
            f"{exc.errors()[0]['msg']}"
        ) from exc


def rule_of(event: Any) -> RecurrenceRule | None:
    """
    Return the recurrence rule stored on an event, or None for a single event.

    A malformed stored rule fails closed: it is logged and the event is
    treated as non-recurring.
    """
    if getattr(event, "recurring_type", None) is None:
        return None
    try:
        return validate_rule(
            event.recurring_type,
            event.recurring_interval,
            event.recurring_end_date,
            event.recurring_end_count,
        )
    except InvalidRecurrenceRule as exc:
        logger.warning(
            "Event %s has a malformed recurrence rule, treating as single event: %s",
            getattr(event, "id", None),
            exc,
        )
        return None


def _months_per_step(rule: RecurrenceRule) -> int:
    if rule.type is RecurrenceType.MONTHLY:
        return rule.interval
    return 12 * rule.interval


def nth_candidate(start: date_type, rule: RecurrenceRule, k: int) -> date_type:
    """
    Date of the k-th candidate (k=0 is the first occurrence).

    Always computed from the original start so month-end clamping never
    drifts: Jan 31 + 1 month is Feb 29/28, + 2 months is Mar 31.
    """
    if rule.type is RecurrenceType.DAILY:
        return start + timedelta(days=k * rule.interval)
    if rule.type is RecurrenceType.WEEKLY:
        return start + timedelta(weeks=k * rule.interval)
    return start + relativedelta(months=k * _months_per_step(rule))


def _first_index_on_or_after(start: date_type, rule: RecurrenceRule, day: date_type) -> int:
    if day <= start:
        return 0

    if rule.type in (RecurrenceType.DAILY, RecurrenceType.WEEKLY):
        step_days = rule.interval * (7 if rule.type is RecurrenceType.WEEKLY else 1)
        return math.ceil((day - start).days / step_days)

    # Month-based: jump close, then walk forward (at most a couple of steps).
    month_diff = (day.year - start.year) * 12 + (day.month - start.month)
    k = max(0, month_diff // _months_per_step(rule))
    while nth_candidate(start, rule, k) < day:
        k += 1
    return k


def _make_occurrence(event: Any, day: date_type) -> Occurrence:
    original_start: datetime = event.start_datetime
    start = datetime.combine(day, original_start.time())
    end = None
    if event.end_datetime is not None:
        end = start + (event.end_datetime - original_start)
    return Occurrence(
        event_id=event.id,
        occurrence_date=day,
        start_datetime=start,
        end_datetime=end,
    )


def expand(
    event: Any,
    window_start: date_type,
    window_end: date_type,
    excluded_dates: Collection[date_type] = (),
) -> list[Occurrence]:
    """
    Expand an event into its occurrences inside [window_start, window_end].

    `event` is anything exposing the CalendarEvent columns (id,
    start_datetime, end_datetime and the recurring_* fields).
    `excluded_dates` holds the exception dates of a recurring event; they
    are ignored for single events, and dates the rule never generates have
    no effect.

    Rules
    -----
    - Single event: one occurrence iff its start date is in the window.
    - Recurring: candidates are start + k * interval units, k = 0, 1, ...
      Expansion stops at the first candidate past the window end, past the
      rule's end date, or once k reaches the rule's end count (the first
      occurrence counts). Candidates before the window are skipped
      arithmetically, so cost is proportional to the window, not to the age
      of the series.

    The result is ordered by date and depends only on the arguments.
    """
    if window_end < window_start:
        return []

    first_day: date_type = event.start_datetime.date()
    rule = rule_of(event)

    if rule is None:
        if window_start <= first_day <= window_end:
            return [_make_occurrence(event, first_day)]
        return []

    excluded = excluded_dates if isinstance(excluded_dates, (set, frozenset)) else set(excluded_dates)
    occurrences: list[Occurrence] = []

    k = _first_index_on_or_after(first_day, rule, window_start)
    while True:
        if rule.end_count is not None and k >= rule.end_count:
            break

        candidate = nth_candidate(first_day, rule, k)
        if candidate > window_end:
            break
        if rule.end_date is not None and candidate > rule.end_date:
            break

        if candidate not in excluded:
            occurrences.append(_make_occurrence(event, candidate))
        k += 1

    return occurrences


def occurs_on(
    event: Any,
    day: date_type,
    excluded_dates: Collection[date_type] = (),
) -> Occurrence | None:
    """
    Return the occurrence of `event` on `day`, or None if there is none.
    """
    occurrences = expand(event, day, day, excluded_dates)
    return occurrences[0] if occurrences else None
