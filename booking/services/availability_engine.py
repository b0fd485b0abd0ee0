"""
availability_engine.py
----------------------
Answers two questions:
1) Is this stylist free for [start, start + duration)?
2) Which slots of a given day can be booked at a branch (optionally with a stylist)?

Rules:
- Only pending / confirmed / in_service appointments occupy a stylist.
- Overlap is half-open: start < other_end AND end > other_start.
- "Same day" means the local calendar day (TIME_ZONE), midnight to midnight,
  so a 23:50 check never looks at the next morning.
- Stylist involvement always goes through Appointment.stylist_assignments(),
  which covers both the legacy single-stylist field and per-service stylists.

Working window precedence for generate_time_slots():
1) stylist's date-specific shift, then the stylist's weekly shift from the
   schedule configuration in force that day
2) branch operating hours for the weekday
then the branch calendar: holiday/closure empties the day, special_hours
replaces the window.
"""

import logging
from datetime import timedelta

from django.utils import timezone

from branches.models import Branch, BranchCalendarEntry, WEEKDAY_NAMES, parse_hhmm
from ..models import Appointment, DEFAULT_DURATION_MINUTES
from .slot_utils import day_bounds, generate_slots_for_day, local_date

logger = logging.getLogger(__name__)


def _stylist_id(stylist):
    if stylist is None:
        return None
    return getattr(stylist, "pk", stylist)


class AvailabilityEngine:
    def _active_appointments_for_day(self, day, exclude_appointment_id=None):
        """
        Every non-terminal appointment starting on the local calendar day,
        with its service rows prefetched so assignment checks stay in memory.
        """
        day_start, day_end = day_bounds(day)
        qs = (
            Appointment.objects
            .filter(
                start_time__gte=day_start,
                start_time__lt=day_end,
                status__in=Appointment.ACTIVE_STATUSES,
            )
            .prefetch_related("service_assignments")
        )
        if exclude_appointment_id is not None:
            qs = qs.exclude(pk=exclude_appointment_id)
        return list(qs)

    def _stylist_busy_intervals(self, stylist_id, appointments):
        return [
            (appt.start_time, appt.end_time)
            for appt in appointments
            if appt.involves_stylist(stylist_id)
        ]

    def is_stylist_free(self, stylist, start_time, duration_minutes=DEFAULT_DURATION_MINUTES,
                        exclude_appointment_id=None) -> bool:
        """
        True when the stylist has no overlapping active appointment that day.

        Args:
            stylist: Staff instance or id. None is always free (unassigned
                appointments are not conflict-checked).
            start_time: aware datetime
            duration_minutes: defaults to 60 when missing or zero
            exclude_appointment_id: the appointment being edited, so it does
                not conflict with its own old time
        """
        stylist_id = _stylist_id(stylist)
        if stylist_id is None:
            return True

        new_start = start_time
        new_end = start_time + timedelta(minutes=duration_minutes or DEFAULT_DURATION_MINUTES)

        appointments = self._active_appointments_for_day(new_start, exclude_appointment_id)
        for busy_start, busy_end in self._stylist_busy_intervals(stylist_id, appointments):
            if new_start < busy_end and new_end > busy_start:
                logger.debug(
                    "Stylist %s busy %s-%s, requested %s-%s",
                    stylist_id, busy_start, busy_end, new_start, new_end,
                )
                return False
        return True

    def working_window(self, branch: Branch, target_date, stylist=None):
        """
        Resolve the bookable window for a day.

        Returns (open_time, close_time, message). When the day cannot take
        bookings open_time and close_time are None and message says why.
        """
        from staff.services.schedules import shift_for

        weekday = WEEKDAY_NAMES[target_date.weekday()]
        window = None

        if stylist is not None:
            window = shift_for(stylist, branch, target_date)

        if window is None:
            if not branch.operating_hours:
                return None, None, "No operating hours configured for this branch"
            day_hours = branch.hours_for(weekday)
            if not day_hours or not Branch.is_open_record(day_hours):
                return None, None, f"Branch is closed on {weekday.capitalize()}s"
            try:
                window = (parse_hhmm(day_hours["open"]), parse_hhmm(day_hours["close"]))
            except (KeyError, TypeError, ValueError):
                logger.warning("Branch %s has unusable hours for %s: %r", branch.pk, weekday, day_hours)
                return None, None, f"Branch is closed on {weekday.capitalize()}s"

        entries = list(
            BranchCalendarEntry.objects.filter(
                branch=branch,
                date=target_date,
                status=BranchCalendarEntry.STATUS_ACTIVE,
            )
        )
        for entry in entries:
            if entry.closes_branch:
                label = "Holiday" if entry.entry_type == BranchCalendarEntry.TYPE_HOLIDAY else "Temporary Closure"
                suffix = f" ({entry.title})" if entry.title else ""
                return None, None, f"{label}{suffix} - No appointments available"

        for entry in entries:
            if entry.entry_type == BranchCalendarEntry.TYPE_SPECIAL_HOURS and entry.special_open and entry.special_close:
                window = (entry.special_open, entry.special_close)

        open_time, close_time = window
        if open_time >= close_time:
            return None, None, "No working hours on this day"
        return open_time, close_time, None

    def generate_time_slots(self, branch: Branch, target_date, service_duration_minutes=DEFAULT_DURATION_MINUTES,
                            stylist=None, now=None) -> dict:
        """
        Build the day's slot list.

        Returns:
            {"slots": [{"time": "HH:MM", "start_time": iso, "available": bool}, ...],
             "message": str | None}

        Unavailable slots stay in the list so callers can show them disabled.
        """
        duration = service_duration_minutes or DEFAULT_DURATION_MINUTES
        open_time, close_time, message = self.working_window(branch, target_date, stylist)
        if open_time is None:
            return {"slots": [], "message": message}

        candidates = generate_slots_for_day(target_date, open_time, close_time, duration)

        now = now or timezone.now()
        is_today = local_date(now) == target_date

        busy = []
        stylist_id = _stylist_id(stylist)
        if stylist_id is not None:
            busy = self._stylist_busy_intervals(stylist_id, self._active_appointments_for_day(target_date))

        slots = []
        for start in candidates:
            end = start + timedelta(minutes=duration)
            available = True
            if is_today and start <= now:
                available = False
            elif any(start < busy_end and end > busy_start for busy_start, busy_end in busy):
                available = False
            slots.append({
                "time": timezone.localtime(start).strftime("%H:%M"),
                "start_time": start.isoformat(),
                "available": available,
            })

        if not slots:
            message = "No time slots fit the selected service on this day"
        return {"slots": slots, "message": message}
