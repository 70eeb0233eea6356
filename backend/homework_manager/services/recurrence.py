"""Recurrence rule engine.

Pure functions over a recurrence rule snapshot. A rule is any object carrying
the ``RecurringAssignment`` attributes (``recurrence_type``,
``recurrence_interval``, ``recurrence_day``, ``end_type`` ...). Nothing in
this module touches the database.

Month arithmetic goes through ``dateutil.relativedelta`` so that adding one
month to January 31st lands on the last day of February instead of spilling
into March.
"""
import re
from calendar import monthrange
from datetime import datetime, timedelta
from typing import Optional, Tuple

from dateutil.relativedelta import relativedelta

from homework_manager.models.recurring_assignment import (
    RecurrenceType, EndType, WEEKDAY_NAMES
)

_DUE_TIME_RE = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)$')

_UNIT_LABELS = {
    RecurrenceType.DAILY: ('Daily', 'days'),
    RecurrenceType.WEEKLY: ('Weekly', 'weeks'),
    RecurrenceType.MONTHLY: ('Monthly', 'months'),
}


def next_due_date(rule, last_due_date: datetime) -> datetime:
    """Compute the occurrence following ``last_due_date``.

    ``RecurrenceType.NONE`` returns ``last_due_date`` unchanged; callers must
    treat that as "do not generate". The weekday selector of weekly rules is
    informational only and never shifts the date.
    """
    interval = rule.recurrence_interval

    if rule.recurrence_type == RecurrenceType.DAILY:
        return last_due_date + timedelta(days=interval)

    if rule.recurrence_type == RecurrenceType.WEEKLY:
        return last_due_date + timedelta(weeks=interval)

    if rule.recurrence_type == RecurrenceType.MONTHLY:
        next_date = last_due_date + relativedelta(months=interval)
        if rule.recurrence_day is not None:
            last_day = monthrange(next_date.year, next_date.month)[1]
            next_date = next_date.replace(
                day=min(rule.recurrence_day, last_day),
                second=0,
                microsecond=0
            )
        return next_date

    return last_due_date


def should_generate_next(rule, now: datetime = None) -> bool:
    """Whether the rule's end condition still allows another occurrence."""
    if not rule.is_active or rule.recurrence_type == RecurrenceType.NONE:
        return False

    if rule.end_type == EndType.COUNT:
        if rule.end_count is not None and rule.generated_count >= rule.end_count:
            return False
    elif rule.end_type == EndType.DATE:
        now = now or datetime.now()
        if rule.end_date is not None and now > rule.end_date:
            return False

    return True


def parse_due_time(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """Parse ``HH:MM`` into ``(hour, minute)``; None when blank or malformed."""
    if not value or not isinstance(value, str):
        return None
    match = _DUE_TIME_RE.match(value.strip())
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def apply_due_time(rule, due_date: datetime) -> datetime:
    """Overwrite the time of day of ``due_date`` with the rule's due time."""
    parsed = parse_due_time(rule.due_time)
    if parsed is None:
        return due_date
    hour, minute = parsed
    return due_date.replace(hour=hour, minute=minute, second=0, microsecond=0)


def reminder_at_for(rule, due_date: datetime) -> Optional[datetime]:
    if rule.reminder_enabled and rule.reminder_offset is not None:
        return due_date - timedelta(minutes=rule.reminder_offset)
    return None


def format_recurring_summary(rule) -> str:
    """Human readable description, e.g. ``Every 2 weeks (Monday) / 10 times``."""
    if rule.recurrence_type is None or rule.recurrence_type == RecurrenceType.NONE:
        return ''

    label, unit = _UNIT_LABELS[rule.recurrence_type]
    interval = rule.recurrence_interval or 1
    parts = [f'Every {interval} {unit}' if interval > 1 else label]

    if rule.recurrence_type == RecurrenceType.WEEKLY and rule.recurrence_weekday is not None:
        if 0 <= rule.recurrence_weekday <= 6:
            parts.append(f'({WEEKDAY_NAMES[rule.recurrence_weekday]})')

    if rule.recurrence_type == RecurrenceType.MONTHLY and rule.recurrence_day is not None:
        parts.append(f'(day {rule.recurrence_day})')

    if rule.end_type == EndType.COUNT and rule.end_count is not None:
        parts.append(f'/ {rule.end_count} times')
    elif rule.end_type == EndType.DATE and rule.end_date is not None:
        parts.append(f'/ until {rule.end_date.strftime("%Y-%m-%d")}')

    return ' '.join(parts)
