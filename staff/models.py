# staff/models.py
#
# Purpose:
# - ScheduleConfiguration: a branch's weekly shift plan, effective from start_date.
# - DateSpecificShift: a one-day shift for one staff member (overrides the weekly plan).
# - LendingRequest: a request to borrow a stylist from another branch.
#
# Notes:
# - Staff itself lives in booking.Staff; these models point at it.
# - LendingRequest stores only real workflow states. Whether a lending is
#   "in effect" on a day is computed by staff.services.lending_workflow.
#
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class ScheduleConfiguration(models.Model):
    """
    Weekly recurring shifts for a branch.

    shifts layout (keys are staff ids as strings):
        {"12": {"monday": {"start": "09:00", "end": "17:00"}, ...}, ...}

    The configuration that applies to a date is the one with the latest
    start_date on or before it; is_active does not take part in that choice.
    """
    branch = models.ForeignKey(
        "branches.Branch",
        on_delete=models.CASCADE,
        related_name="schedule_configurations",
    )
    name = models.CharField(max_length=200, blank=True)
    start_date = models.DateField(db_index=True)
    is_active = models.BooleanField(default=True)
    shifts = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["branch_id", "-start_date"]

    def __str__(self):
        return f"{self.branch.name} schedule from {self.start_date}"

    def shift_for(self, staff_id, weekday_name: str):
        employee_shifts = (self.shifts or {}).get(str(staff_id)) or {}
        return employee_shifts.get(weekday_name.lower())


class DateSpecificShift(models.Model):
    """
    A shift for one staff member on one exact date.
    """
    staff = models.ForeignKey(
        "booking.Staff",
        on_delete=models.CASCADE,
        related_name="date_shifts",
    )
    branch = models.ForeignKey(
        "branches.Branch",
        on_delete=models.CASCADE,
        related_name="date_shifts",
    )
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()

    class Meta:
        ordering = ["staff_id", "date"]
        constraints = [
            models.UniqueConstraint(fields=["staff", "date"], name="uniq_date_shift_per_staff_day"),
        ]

    def __str__(self):
        return f"{self.staff.name}: {self.date} {self.start_time}-{self.end_time}"

    def clean(self):
        if self.start_time and self.end_time and self.start_time >= self.end_time:
            raise ValidationError("Shift must start before it ends.")


class LendingRequest(models.Model):
    """
    A request for a stylist to work at to_branch (requester) on loan from
    from_branch (provider) between start_date and end_date, inclusive.

    stylist is null when the requester leaves the choice to the provider;
    it is filled in at approval time in that case.
    """
    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"
    STATUS_CANCELLED = "cancelled"
    # Older rows may carry "active". It is read as approved, never written.
    STATUS_LEGACY_ACTIVE = "active"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
        (STATUS_CANCELLED, "Cancelled"),
    ]
    IN_EFFECT_STATUSES = (STATUS_APPROVED, STATUS_LEGACY_ACTIVE)

    stylist = models.ForeignKey(
        "booking.Staff",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="lending_requests",
    )
    from_branch = models.ForeignKey(
        "branches.Branch",
        on_delete=models.CASCADE,
        related_name="lendings_out",
    )
    to_branch = models.ForeignKey(
        "branches.Branch",
        on_delete=models.CASCADE,
        related_name="lendings_in",
    )
    start_date = models.DateField()
    end_date = models.DateField()
    reason = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)

    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    requested_at = models.DateTimeField(auto_now_add=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-requested_at", "-id"]

    def __str__(self):
        who = self.stylist.name if self.stylist_id else "any stylist"
        return f"{who}: {self.from_branch} -> {self.to_branch} ({self.start_date}..{self.end_date}, {self.status})"
