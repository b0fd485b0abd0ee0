"""
booking_manager.py
------------------
Coordinates appointment creation, updates and status changes.

- Double-booking prevention: every distinct stylist on the appointment
  (legacy field + per-service rows) is checked with
  AvailabilityEngine.is_stylist_free before anything is written.
- Duplicate guard (create only): a registered client cannot hold two
  overlapping active appointments for the same service + stylist pairing.
- Check and write share one transaction. The involved Staff rows are locked
  first (SELECT ... FOR UPDATE, in id order) so two requests for the same
  stylist are serialized instead of both passing the check.
- Every change appends AppointmentHistory and an ActivityLog row.
- Notifications go out through booking.signals after commit.
"""

import logging
from datetime import timedelta

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from notifications.activity import log_activity
from .. import signals
from ..exceptions import (
    AppointmentStateError,
    DuplicateBookingError,
    RescheduleNotAllowedError,
    SlotUnavailableError,
)
from ..models import (
    Appointment,
    AppointmentHistory,
    AppointmentService,
    DEFAULT_DURATION_MINUTES,
    Service,
    Staff,
)
from .availability_engine import AvailabilityEngine

logger = logging.getLogger(__name__)


def _user_or_none(user):
    return user if getattr(user, "is_authenticated", False) else None


def _normalize_services(services):
    """
    Accept Service instances or dicts and return a list of dicts with keys
    service, stylist, price, adjustment, adjustment_reason.
    """
    rows = []
    for item in services or []:
        if isinstance(item, Service):
            item = {"service": item}
        service = item.get("service")
        if service is None:
            raise ValidationError("Each service line needs a service.")
        if not service.active:
            raise ValidationError(f"{service.name} is not currently offered.")
        stylist = item.get("stylist")
        if stylist is not None and not stylist.is_stylist:
            raise ValidationError(f"{stylist.name} is not a stylist.")
        price = item.get("price")
        rows.append({
            "service": service,
            "stylist": stylist,
            "price": service.price if price is None else price,
            "adjustment": item.get("adjustment") or 0,
            "adjustment_reason": item.get("adjustment_reason") or "",
        })
    return rows


class BookingManager:
    def __init__(self, availability=None):
        self.availability = availability or AvailabilityEngine()

    # -------------------------
    # helpers
    # -------------------------
    def _lock_stylists(self, stylist_ids):
        if not stylist_ids:
            return
        list(Staff.objects.select_for_update().filter(pk__in=stylist_ids).order_by("pk"))

    def _ensure_stylists_free(self, stylist_ids, start_time, duration_minutes, exclude_appointment_id=None):
        for stylist_id in sorted(stylist_ids):
            if not self.availability.is_stylist_free(
                stylist_id, start_time, duration_minutes, exclude_appointment_id=exclude_appointment_id
            ):
                name = Staff.objects.filter(pk=stylist_id).values_list("name", flat=True).first()
                raise SlotUnavailableError(
                    f"{name or 'The selected stylist'} is not available at the selected time."
                )

    def _ensure_not_duplicate(self, client, rows, legacy_stylist, start_time, duration_minutes):
        wanted = set()
        for row in rows:
            who = row["stylist"] or legacy_stylist
            wanted.add((row["service"].pk, who.pk if who is not None else None))
        end_time = start_time + timedelta(minutes=duration_minutes)
        existing = (
            Appointment.objects
            .filter(client=client, status__in=Appointment.ACTIVE_STATUSES)
            .filter(start_time__lt=end_time, start_time__gte=start_time - timedelta(days=1))
            .prefetch_related("service_assignments")
        )
        for appt in existing:
            if not appt.overlaps(start_time, end_time):
                continue
            if wanted & set(appt.stylist_assignments()):
                raise DuplicateBookingError(
                    "You already have an appointment for this service, time, and stylist."
                )

    def _record(self, appointment, action, performed_by, reason="", details=None):
        return AppointmentHistory.objects.create(
            appointment=appointment,
            action=action,
            performed_by=_user_or_none(performed_by),
            reason=reason or "",
            details=details or {},
        )

    # -------------------------
    # create
    # -------------------------
    @transaction.atomic
    def create_appointment(
        self,
        branch,
        services,
        start_time,
        performed_by=None,
        client=None,
        guest_name="",
        stylist=None,
        duration_minutes=None,
        status=Appointment.STATUS_PENDING,
        notes="",
    ):
        """
        Create an appointment after the duplicate and availability checks.

        Args:
            branch: Branch instance
            services: list of Service instances or dicts
                {"service", "stylist", "price", "adjustment", "adjustment_reason"}
            start_time: aware datetime
            client / guest_name: a registered ClientProfile, or a walk-in name
            stylist: legacy single stylist; fills per-service rows that name none
            duration_minutes: defaults to the summed service durations (60 if unknown)
            status: "pending" or "confirmed"

        Raises:
            ValidationError: missing branch, services, start time or client
            DuplicateBookingError / SlotUnavailableError: nothing is written
        """
        if branch is None:
            raise ValidationError("Branch is required.")
        if start_time is None:
            raise ValidationError("Appointment date and time are required.")
        if client is None and not (guest_name or "").strip():
            raise ValidationError("A registered client or a guest name is required.")
        if status not in (Appointment.STATUS_PENDING, Appointment.STATUS_CONFIRMED):
            raise ValidationError("New appointments must be pending or confirmed.")
        rows = _normalize_services(services)
        if not rows:
            raise ValidationError("At least one service is required.")
        if stylist is not None and not stylist.is_stylist:
            raise ValidationError(f"{stylist.name} is not a stylist.")

        if timezone.is_naive(start_time):
            start_time = timezone.make_aware(start_time)
        start_time = start_time.replace(second=0, microsecond=0)
        if not duration_minutes:
            duration_minutes = sum(row["service"].duration_minutes for row in rows) or DEFAULT_DURATION_MINUTES

        stylist_ids = {row["stylist"].pk for row in rows if row["stylist"] is not None}
        if stylist is not None:
            stylist_ids.add(stylist.pk)

        self._lock_stylists(stylist_ids)
        if client is not None:
            self._ensure_not_duplicate(client, rows, stylist, start_time, duration_minutes)
        self._ensure_stylists_free(stylist_ids, start_time, duration_minutes)

        appointment = Appointment.objects.create(
            branch=branch,
            client=client,
            guest_name="" if client is not None else guest_name.strip(),
            stylist=stylist,
            start_time=start_time,
            duration_minutes=duration_minutes,
            status=status,
            notes=notes or "",
            created_by=_user_or_none(performed_by),
        )
        AppointmentService.objects.bulk_create([
            AppointmentService(appointment=appointment, **row) for row in rows
        ])

        self._record(
            appointment, "created", performed_by,
            reason="Appointment created" if client is not None else "Appointment created for walk-in guest",
        )
        if status == Appointment.STATUS_CONFIRMED:
            self._record(appointment, "status_changed_to_confirmed", performed_by)

        log_activity(
            "appointment_created",
            performed_by=performed_by,
            branch=branch,
            target_type="appointment",
            target_id=appointment.pk,
            details={
                "client": appointment.client_display_name,
                "start_time": start_time,
                "services": [row["service"].pk for row in rows],
                "stylists": sorted(stylist_ids),
            },
        )
        logger.info("Appointment %s created at branch %s for %s", appointment.pk, branch.pk, start_time)

        transaction.on_commit(lambda: signals.appointment_created.send(
            sender=Appointment, appointment=appointment, performed_by=performed_by,
        ))
        return appointment

    # -------------------------
    # update / reschedule
    # -------------------------
    @transaction.atomic
    def update_appointment(
        self,
        appointment,
        performed_by=None,
        start_time=None,
        duration_minutes=None,
        assignments=None,
        notes=None,
        reschedule_reason="",
    ):
        """
        Edit time, duration, per-service stylists or notes.

        assignments: optional {AppointmentService id: Staff or None} mapping
        that reassigns stylists on existing service rows.

        Raises:
            RescheduleNotAllowedError: time change on an in-service, finished
                or paid appointment
            SlotUnavailableError: a stylist is busy at the (new) time
        """
        appointment = Appointment.objects.select_for_update().get(pk=appointment.pk)
        old_start = appointment.start_time
        old_duration = appointment.effective_duration

        if start_time is not None and timezone.is_naive(start_time):
            start_time = timezone.make_aware(start_time)
        if start_time is not None:
            start_time = start_time.replace(second=0, microsecond=0)
        is_reschedule = start_time is not None and start_time != old_start

        if is_reschedule and not appointment.can_reschedule:
            if appointment.is_paid:
                raise RescheduleNotAllowedError(
                    "Rescheduling is not allowed for appointments that have already been paid."
                )
            raise RescheduleNotAllowedError(
                "Rescheduling is not allowed once the service is in progress or completed."
            )
        if (duration_minutes or assignments) and not appointment.is_active:
            raise AppointmentStateError("Finished or cancelled appointments cannot be edited.")

        rows = {row.pk: row for row in appointment.service_assignments.select_related("stylist", "service")}
        transfers = []
        for row_id, new_stylist in (assignments or {}).items():
            row = rows.get(int(row_id))
            if row is None:
                raise ValidationError(f"Service line {row_id} does not belong to this appointment.")
            if new_stylist is not None and not new_stylist.is_stylist:
                raise ValidationError(f"{new_stylist.name} is not a stylist.")
            if row.stylist_id != (new_stylist.pk if new_stylist else None):
                transfers.append((row, row.stylist, new_stylist))

        new_start = start_time or old_start
        new_duration = duration_minutes or old_duration
        timing_changed = new_start != old_start or new_duration != old_duration

        for row, _old, new_stylist in transfers:
            row.stylist = new_stylist
        if timing_changed or transfers:
            # Same fallback as Appointment.stylist_assignments(), on the edited rows.
            stylist_ids = {row.stylist_id or appointment.stylist_id for row in rows.values()}
            if appointment.stylist_id is not None:
                stylist_ids.add(appointment.stylist_id)
            stylist_ids.discard(None)
            self._lock_stylists(stylist_ids)
            self._ensure_stylists_free(
                stylist_ids, new_start, new_duration, exclude_appointment_id=appointment.pk
            )

        for row, _old, _new in transfers:
            row.save(update_fields=["stylist"])

        appointment.start_time = new_start
        appointment.duration_minutes = new_duration
        if notes is not None:
            appointment.notes = notes
        appointment.save()

        if is_reschedule:
            self._record(
                appointment, "rescheduled", performed_by, reason=reschedule_reason,
                details={"old_start": old_start.isoformat(), "new_start": new_start.isoformat()},
            )
        else:
            self._record(appointment, "updated", performed_by)
        for row, old_stylist, new_stylist in transfers:
            self._record(
                appointment, "stylist_transferred", performed_by,
                details={
                    "service_id": row.service_id,
                    "from_stylist": old_stylist.pk if old_stylist else None,
                    "to_stylist": new_stylist.pk if new_stylist else None,
                },
            )

        log_activity(
            "appointment_rescheduled" if is_reschedule else "appointment_updated",
            performed_by=performed_by,
            branch=appointment.branch,
            target_type="appointment",
            target_id=appointment.pk,
            details={"old_start": old_start, "new_start": new_start, "reason": reschedule_reason},
        )

        if is_reschedule:
            transaction.on_commit(lambda: signals.appointment_rescheduled.send(
                sender=Appointment, appointment=appointment, old_start=old_start, new_start=new_start,
                reason=reschedule_reason, performed_by=performed_by,
            ))
        for row, old_stylist, new_stylist in transfers:
            transaction.on_commit(
                lambda row=row, old_stylist=old_stylist, new_stylist=new_stylist:
                signals.appointment_transferred.send(
                    sender=Appointment, appointment=appointment, service=row.service,
                    old_stylist=old_stylist, new_stylist=new_stylist, performed_by=performed_by,
                )
            )
        return appointment

    # -------------------------
    # status machine
    # -------------------------
    @transaction.atomic
    def change_status(self, appointment, new_status, performed_by=None, reason=""):
        """
        Move the appointment along pending -> confirmed -> in_service -> completed
        (cancelled / no_show from any non-terminal status).

        Raises:
            AppointmentStateError: the move is not allowed from the current status
        """
        appointment = Appointment.objects.select_for_update().get(pk=appointment.pk)
        old_status = appointment.status
        if new_status not in dict(Appointment.STATUS_CHOICES):
            raise ValidationError(f"Unknown status '{new_status}'.")
        if not appointment.can_transition_to(new_status):
            raise AppointmentStateError(
                f"Cannot change an appointment from {old_status} to {new_status}."
            )

        appointment.status = new_status
        update_fields = ["status", "updated_at"]
        if new_status == Appointment.STATUS_CANCELLED:
            appointment.cancellation_reason = reason or ""
            appointment.cancelled_at = timezone.now()
            update_fields += ["cancellation_reason", "cancelled_at"]
        appointment.save(update_fields=update_fields)

        self._record(
            appointment, f"status_changed_to_{new_status}", performed_by, reason=reason,
            details={"from": old_status},
        )
        log_activity(
            f"appointment_{new_status}",
            performed_by=performed_by,
            branch=appointment.branch,
            target_type="appointment",
            target_id=appointment.pk,
            details={"from": old_status, "to": new_status, "reason": reason},
        )

        transaction.on_commit(lambda: signals.appointment_status_changed.send(
            sender=Appointment, appointment=appointment, old_status=old_status, new_status=new_status,
            reason=reason, performed_by=performed_by,
        ))
        return appointment

    def cancel_appointment(self, appointment, performed_by=None, reason=""):
        return self.change_status(appointment, Appointment.STATUS_CANCELLED, performed_by, reason=reason)

    @transaction.atomic
    def delete_appointment(self, appointment, performed_by=None):
        """Physically remove an appointment (admin only; ignores the status machine)."""
        snapshot = {
            "client": appointment.client_display_name,
            "start_time": appointment.start_time,
            "status": appointment.status,
        }
        branch = appointment.branch
        appointment_id = appointment.pk
        appointment.delete()
        log_activity(
            "appointment_deleted",
            performed_by=performed_by,
            branch=branch,
            target_type="appointment",
            target_id=appointment_id,
            details=snapshot,
        )
        logger.info("Appointment %s deleted", appointment_id)
