"""
schedules.py
------------
Resolves who works when.

- applicable_configuration(): the branch schedule in force on a date
  (latest start_date <= date; inactive configurations still count).
- shift_for(): a staff member's (start, end) on a date, preferring a
  date-specific shift over the weekly plan.
"""

import logging

from branches.models import WEEKDAY_NAMES, parse_hhmm
from ..models import DateSpecificShift, ScheduleConfiguration

logger = logging.getLogger(__name__)


def weekday_name(day) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def applicable_configuration(branch, target_date):
    return (
        ScheduleConfiguration.objects
        .filter(branch=branch, start_date__lte=target_date)
        .order_by("-start_date", "-created_at", "-id")
        .first()
    )


def shift_for(staff, branch, target_date):
    """
    Return (start_time, end_time) for the staff member on target_date, or None
    when neither a date-specific shift nor a weekly shift covers that day.
    """
    override = DateSpecificShift.objects.filter(staff=staff, date=target_date).first()
    if override is not None:
        return override.start_time, override.end_time

    config = applicable_configuration(branch, target_date)
    if config is None:
        return None

    day_shift = config.shift_for(staff.pk, weekday_name(target_date))
    if not day_shift or not day_shift.get("start") or not day_shift.get("end"):
        return None

    try:
        return parse_hhmm(day_shift["start"]), parse_hhmm(day_shift["end"])
    except (TypeError, ValueError):
        logger.warning(
            "Ignoring malformed shift %r for staff %s in schedule %s", day_shift, staff.pk, config.pk
        )
        return None


def weekly_shifts_for(staff, branch, target_date) -> dict:
    """The staff member's weekday -> shift map from the configuration in force on target_date."""
    config = applicable_configuration(branch, target_date)
    if config is None:
        return {}
    return dict((config.shifts or {}).get(str(staff.pk)) or {})
