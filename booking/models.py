# booking/models.py
#
# Purpose:
# - Core domain models for appointment booking across branches.
#
# Design highlights:
# - ClientProfile: registered client; clean() prevents duplicates by
#   (name/email case-insensitive + phone exact). Walk-in guests are not
#   profiled, an Appointment just carries guest_name.
# - Service: validates price and duration; "active" controls bookability.
# - Staff: anyone working at a branch. Only role=stylist can be assigned to
#   appointments or lent to another branch.
# - Appointment:
#   • one or many AppointmentService rows (service + optional stylist + pricing)
#   • a legacy single 'stylist' field still exists on older rows
#   • stylist_assignments() is the ONE place that reads both shapes; conflict
#     checks must go through it
#   • status: pending -> confirmed -> in_service -> completed,
#     cancelled / no_show reachable from any non-terminal status
# - AppointmentHistory: append-only log of what happened to an appointment.
#
from collections import namedtuple
from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models


DEFAULT_DURATION_MINUTES = 60


# -------------------------
# Client (person who books)
# -------------------------
class ClientProfile(models.Model):
    """
    A registered client.
    - 'user' link is optional (front desk can register clients without accounts).
    - Duplicates are blocked with a case-insensitive match on name and email,
      and exact match on phone in model.clean().
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="client_profile",
        null=True,
        blank=True,
    )
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20)

    def __str__(self):
        return self.name

    def clean(self):
        name = (self.name or "").strip()
        email = (self.email or "").strip()
        phone = (self.phone or "").strip()

        # If any key fields are missing, let the form/serializer handle "required".
        if not name or not email or not phone:
            return

        qs = ClientProfile.objects.filter(
            name__iexact=name,
            email__iexact=email,
            phone=phone,
        )
        if self.pk:
            qs = qs.exclude(pk=self.pk)

        if qs.exists():
            raise ValidationError(
                "A client with the same name, email, and phone already exists."
            )


# -------------------------
# Service catalog item
# -------------------------
class Service(models.Model):
    """
    A service offered by the salon.

    Rules:
    - price must be > 0
    - duration_minutes must be > 0
    - active controls bookability
    """
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    duration_minutes = models.PositiveIntegerField(
        default=DEFAULT_DURATION_MINUTES,
        validators=[MinValueValidator(1)],
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(0.01)],
    )
    active = models.BooleanField(default=True)

    def __str__(self):
        return self.name


# -------------------------
# Staff member
# -------------------------
class Staff(models.Model):
    ROLE_STYLIST = "stylist"
    ROLE_RECEPTIONIST = "receptionist"
    ROLE_BRANCH_MANAGER = "branch_manager"

    ROLE_CHOICES = [
        (ROLE_STYLIST, "Stylist"),
        (ROLE_RECEPTIONIST, "Receptionist"),
        (ROLE_BRANCH_MANAGER, "Branch Manager"),
    ]

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="staff_profile",
        null=True,
        blank=True,
    )
    branch = models.ForeignKey(
        "branches.Branch",
        on_delete=models.PROTECT,
        related_name="staff",
    )
    name = models.CharField(max_length=200)
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=30, choices=ROLE_CHOICES, default=ROLE_STYLIST)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    @property
    def is_stylist(self) -> bool:
        return self.role == self.ROLE_STYLIST


StylistAssignment = namedtuple("StylistAssignment", ["service_id", "stylist_id"])


# -------------------------
# Appointment
# -------------------------
class Appointment(models.Model):
    STATUS_PENDING = "pending"
    STATUS_CONFIRMED = "confirmed"
    STATUS_IN_SERVICE = "in_service"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"
    STATUS_NO_SHOW = "no_show"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_IN_SERVICE, "In Service"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
        (STATUS_NO_SHOW, "No Show"),
    ]

    # Statuses that still occupy the stylist's calendar.
    ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_IN_SERVICE)
    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW)
    RESCHEDULABLE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)

    TRANSITIONS = {
        STATUS_PENDING: {STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_NO_SHOW},
        STATUS_CONFIRMED: {STATUS_IN_SERVICE, STATUS_CANCELLED, STATUS_NO_SHOW},
        STATUS_IN_SERVICE: {STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW},
        STATUS_COMPLETED: set(),
        STATUS_CANCELLED: set(),
        STATUS_NO_SHOW: set(),
    }

    PAYMENT_UNPAID = "unpaid"
    PAYMENT_PAID = "paid"
    PAYMENT_CHOICES = [
        (PAYMENT_UNPAID, "Unpaid"),
        (PAYMENT_PAID, "Paid"),
    ]

    branch = models.ForeignKey("branches.Branch", on_delete=models.PROTECT, related_name="appointments")
    client = models.ForeignKey(
        ClientProfile,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="appointments",
    )
    guest_name = models.CharField(max_length=200, blank=True)
    # Legacy single-stylist field; new bookings put stylists on AppointmentService.
    stylist = models.ForeignKey(
        Staff,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="legacy_appointments",
    )
    start_time = models.DateTimeField(db_index=True)
    duration_minutes = models.PositiveIntegerField(default=DEFAULT_DURATION_MINUTES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    payment_status = models.CharField(max_length=10, choices=PAYMENT_CHOICES, default=PAYMENT_UNPAID)
    notes = models.TextField(blank=True)
    cancellation_reason = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
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
        ordering = ["-start_time"]
        indexes = [
            models.Index(fields=["branch", "start_time"], name="appt_branch_start_idx"),
            models.Index(fields=["status", "start_time"], name="appt_status_start_idx"),
        ]

    def __str__(self):
        return f"{self.client_display_name} @ {self.branch} on {self.start_time}"

    @property
    def client_display_name(self) -> str:
        if self.client_id:
            return self.client.name
        return self.guest_name or "Guest"

    @property
    def effective_duration(self) -> int:
        return self.duration_minutes or DEFAULT_DURATION_MINUTES

    @property
    def end_time(self):
        return self.start_time + timedelta(minutes=self.effective_duration)

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES

    @property
    def is_paid(self) -> bool:
        return self.payment_status == self.PAYMENT_PAID

    @property
    def can_reschedule(self) -> bool:
        return self.status in self.RESCHEDULABLE_STATUSES and not self.is_paid

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in self.TRANSITIONS.get(self.status, set())

    def stylist_assignments(self) -> list:
        """
        Every (service_id, stylist_id) pairing on this appointment.

        Per-service rows win; an assignment without its own stylist falls back
        to the legacy single-stylist field. An appointment with no service rows
        yet still reports its legacy stylist.
        """
        rows = list(self.service_assignments.all()) if self.pk else []
        if not rows:
            if self.stylist_id is None:
                return []
            return [StylistAssignment(None, self.stylist_id)]
        return [
            StylistAssignment(row.service_id, row.stylist_id or self.stylist_id)
            for row in rows
        ]

    @property
    def assigned_stylist_ids(self) -> set:
        ids = {a.stylist_id for a in self.stylist_assignments() if a.stylist_id is not None}
        if self.stylist_id is not None:
            ids.add(self.stylist_id)
        return ids

    def involves_stylist(self, stylist_id) -> bool:
        return stylist_id is not None and stylist_id in self.assigned_stylist_ids

    def overlaps(self, start, end) -> bool:
        return start < self.end_time and end > self.start_time


class AppointmentService(models.Model):
    """
    One service on an appointment, optionally with its own stylist.
    """
    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name="service_assignments")
    service = models.ForeignKey(Service, on_delete=models.PROTECT, related_name="assignments")
    stylist = models.ForeignKey(
        Staff,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="service_assignments",
    )
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    adjustment = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    adjustment_reason = models.CharField(max_length=200, blank=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        who = self.stylist.name if self.stylist_id else "any stylist"
        return f"{self.service.name} with {who}"

    @property
    def total_price(self):
        return self.price + self.adjustment


class AppointmentHistory(models.Model):
    """
    Append-only record of an appointment's state transitions.
    """
    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name="history")
    action = models.CharField(max_length=60)
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    timestamp = models.DateTimeField(auto_now_add=True)
    reason = models.TextField(blank=True)
    details = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["timestamp", "id"]
        verbose_name_plural = "appointment history"

    def __str__(self):
        return f"#{self.appointment_id} {self.action} at {self.timestamp}"
