# branches/models.py
#
# Purpose:
# - Branch: a physical salon location and the tenancy boundary for staff,
#   schedules and appointments.
# - BranchCalendarEntry: reminders, holidays, closures and special-hours days.
#
# Design highlights:
# - operating_hours is a JSON map keyed by lowercase weekday name:
#     {"monday": {"open": "09:00", "close": "17:00", "isOpen": true}, ...}
#   Older rows may carry {"closed": true} instead of isOpen; hours_for() reads both.
# - Calendar entries are active as soon as they are saved (no approval step)
#   and only disappear through explicit deletion.
#
from datetime import time

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


WEEKDAY_NAMES = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]


def parse_hhmm(value) -> time:
    """Parse 'HH:MM' (or pass through a time object)."""
    if isinstance(value, time):
        return value
    h, m = str(value).strip().split(":")[:2]
    return time(int(h), int(m))


# -------------------------
# Branch
# -------------------------
class Branch(models.Model):
    name = models.CharField(max_length=200, unique=True)
    address = models.CharField(max_length=300, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    is_active = models.BooleanField(default=True)
    operating_hours = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    def hours_for(self, weekday_name: str):
        """
        Return the raw operating-hours record for a weekday, or None when the
        branch has nothing configured for that day.
        """
        return (self.operating_hours or {}).get(weekday_name.lower())

    @staticmethod
    def is_open_record(day_hours) -> bool:
        if "isOpen" in day_hours:
            return bool(day_hours["isOpen"])
        return not day_hours.get("closed", False)


# -------------------------
# Branch calendar entry
# -------------------------
class BranchCalendarEntry(models.Model):
    """
    A dated note on a branch's calendar.

    Types:
    - reminder: informational only
    - holiday / closure: suppress all appointment slots for the day
    - special_hours: replace the day's working window with special_open..special_close
    """
    TYPE_REMINDER = "reminder"
    TYPE_HOLIDAY = "holiday"
    TYPE_CLOSURE = "closure"
    TYPE_SPECIAL_HOURS = "special_hours"

    TYPE_CHOICES = [
        (TYPE_REMINDER, "Reminder"),
        (TYPE_HOLIDAY, "Holiday"),
        (TYPE_CLOSURE, "Temporary Closure"),
        (TYPE_SPECIAL_HOURS, "Special Hours"),
    ]
    CLOSING_TYPES = (TYPE_HOLIDAY, TYPE_CLOSURE)

    STATUS_ACTIVE = "active"

    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name="calendar_entries")
    date = models.DateField(db_index=True)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    entry_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_REMINDER)
    special_open = models.TimeField(null=True, blank=True)
    special_close = models.TimeField(null=True, blank=True)
    status = models.CharField(max_length=20, default=STATUS_ACTIVE)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["date", "id"]

    def __str__(self):
        return f"{self.branch.name} {self.date}: {self.title} ({self.entry_type})"

    @property
    def closes_branch(self) -> bool:
        return self.entry_type in self.CLOSING_TYPES

    def clean(self):
        if self.entry_type == self.TYPE_SPECIAL_HOURS:
            if self.special_open is None or self.special_close is None:
                raise ValidationError("Special hours need both an opening and a closing time.")
            if self.special_open >= self.special_close:
                raise ValidationError("Special hours must open before they close.")
