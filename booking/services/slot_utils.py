"""
slot_utils.py
-------------
Helpers to turn a calendar date into a timezone-aware day window and to
generate candidate appointment start times inside a working window.
"""

from datetime import date, datetime, time, timedelta

from django.utils import timezone

DEFAULT_SLOT_INTERVAL_MINUTES = 30


def get_slot_interval() -> int:
    """
    Return the slot stride in minutes.
    Defaults to 30 if none is configured (or the stored value is unusable).
    """
    try:
        from configmgr.models import SystemSetting

        raw = SystemSetting.get_value("SLOT_INTERVAL_MINUTES")
        if raw is None:
            return DEFAULT_SLOT_INTERVAL_MINUTES
        interval = int(str(raw).strip())
        return interval if interval > 0 else DEFAULT_SLOT_INTERVAL_MINUTES
    except (TypeError, ValueError):
        return DEFAULT_SLOT_INTERVAL_MINUTES


def _make_aware(dt_naive: datetime):
    """
    Convert a naive datetime to an aware one using Django's current timezone.
    """
    if timezone.is_aware(dt_naive):
        return dt_naive
    return timezone.make_aware(dt_naive, timezone.get_current_timezone())


def local_date(instant: datetime) -> date:
    """Calendar date of an instant in the configured timezone."""
    if timezone.is_naive(instant):
        return instant.date()
    return timezone.localtime(instant).date()


def day_bounds(day):
    """
    Timezone-aware window [start, end) for a local calendar day.
    Accepts a date, a datetime (its local date is used) or 'YYYY-MM-DD'.
    """
    if isinstance(day, str):
        day = date.fromisoformat(day.strip())
    elif isinstance(day, datetime):
        day = local_date(day)
    day_start = _make_aware(datetime.combine(day, time.min))
    day_end = _make_aware(datetime.combine(day + timedelta(days=1), time.min))
    return day_start, day_end


def at_time(day: date, clock: time) -> datetime:
    """Aware datetime for a local wall-clock time on a given day."""
    return _make_aware(datetime.combine(day, time(clock.hour, clock.minute)))


def generate_slots_for_day(
    day: date,
    open_time: time,
    close_time: time,
    service_duration_minutes: int,
    interval_minutes: int | None = None,
):
    """
    Candidate slot starts between open and close, stepping by the slot stride.

    A start is kept only if start + duration <= close, so with 09:00-17:00 and
    a 60 minute service the last start is 16:00.
    """
    if interval_minutes is None:
        interval_minutes = get_slot_interval()

    duration = timedelta(minutes=service_duration_minutes)
    step = timedelta(minutes=interval_minutes)

    day_open = at_time(day, open_time)
    day_close = at_time(day, close_time)

    slots = []
    current = day_open
    while current + duration <= day_close:
        slots.append(current)
        current += step
    return slots
