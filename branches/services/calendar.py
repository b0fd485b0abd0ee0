"""
calendar.py
-----------
Branch calendar management: reminders, holidays, closures and special hours.

Entries are active as soon as they are saved. Holiday and closure entries
close the branch for bookings (see AvailabilityEngine.working_window);
special_hours entries replace the day's window.
"""

import logging
from datetime import date

from django.db import transaction

from notifications.activity import log_activity
from ..models import BranchCalendarEntry

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("date", "title", "description", "entry_type", "special_open", "special_close")


def _user_or_none(user):
    return user if getattr(user, "is_authenticated", False) else None


@transaction.atomic
def create_entry(branch, performed_by=None, **fields) -> BranchCalendarEntry:
    entry = BranchCalendarEntry(
        branch=branch,
        created_by=_user_or_none(performed_by),
        status=BranchCalendarEntry.STATUS_ACTIVE,
        **{k: v for k, v in fields.items() if k in EDITABLE_FIELDS},
    )
    entry.full_clean()
    entry.save()
    log_activity(
        "branch_calendar_created",
        performed_by=performed_by,
        branch=branch,
        target_type="branch_calendar",
        target_id=entry.pk,
        details={"date": entry.date, "title": entry.title, "type": entry.entry_type},
    )
    logger.info("Calendar entry %s (%s) added for branch %s on %s", entry.pk, entry.entry_type, branch.pk, entry.date)
    return entry


@transaction.atomic
def update_entry(entry, performed_by=None, **fields) -> BranchCalendarEntry:
    for name, value in fields.items():
        if name in EDITABLE_FIELDS:
            setattr(entry, name, value)
    if entry.entry_type != BranchCalendarEntry.TYPE_SPECIAL_HOURS:
        entry.special_open = None
        entry.special_close = None
    entry.full_clean()
    entry.save()
    log_activity(
        "branch_calendar_updated",
        performed_by=performed_by,
        branch=entry.branch,
        target_type="branch_calendar",
        target_id=entry.pk,
        details={"date": entry.date, "title": entry.title, "type": entry.entry_type},
    )
    return entry


@transaction.atomic
def delete_entry(entry, performed_by=None) -> None:
    branch = entry.branch
    entry_id = entry.pk
    details = {"date": entry.date, "title": entry.title, "type": entry.entry_type}
    entry.delete()
    log_activity(
        "branch_calendar_deleted",
        performed_by=performed_by,
        branch=branch,
        target_type="branch_calendar",
        target_id=entry_id,
        details=details,
    )


def entries_for_date(branch, target_date):
    return list(BranchCalendarEntry.objects.filter(branch=branch, date=target_date))


def month_calendar(branch, year: int, month: int, holiday_cache=None) -> dict:
    """
    Branch entries and (optionally) public holidays for one month.

    Public holidays are display-only; when they cannot be loaded the month
    is returned without them and holidays_error says why.
    """
    first = date(year, month, 1)
    last = date(year + (month == 12), month % 12 + 1, 1)
    entries = list(
        BranchCalendarEntry.objects
        .filter(branch=branch, date__gte=first, date__lt=last)
        .order_by("date", "id")
    )

    holidays = []
    holidays_error = None
    if holiday_cache is not None:
        from .public_holidays import PublicHolidayError

        try:
            holidays = holiday_cache.holidays_between(first, date.fromordinal(last.toordinal() - 1))
        except PublicHolidayError as e:
            holidays_error = str(e)

    return {
        "branch": branch.pk,
        "year": year,
        "month": month,
        "entries": entries,
        "public_holidays": holidays,
        "holidays_error": holidays_error,
    }
