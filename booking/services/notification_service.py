"""
NotificationService
-------------------
Sends appointment and lending messages and records each one as a
notifications.Notification row.

- Development uses Django's console email backend (messages print in the
  runserver terminal); production switches EMAIL_BACKEND to SMTP.
- Delivery problems are logged and recorded as sent=False. They never
  propagate: the booking or lending that triggered the message has
  already been committed.
"""

import logging
import smtplib

from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from notifications.models import Notification

logger = logging.getLogger(__name__)

STATUS_SUBJECTS = {
    "confirmed": "Appointment Confirmed",
    "cancelled": "Appointment Cancelled",
    "in_service": "Your Service Has Started",
    "completed": "Thank You for Visiting",
    "no_show": "We Missed You",
}


def _when(instant) -> str:
    return timezone.localtime(instant).strftime("%A, %B %d, %Y at %I:%M %p")


class NotificationService:
    """
    One method per message type; each returns the Notification rows it wrote.
    """

    def _deliver(self, kind, subject, body, to_email, client=None, staff=None):
        sent = False
        if to_email:
            try:
                send_mail(
                    subject=subject,
                    message=body,
                    from_email=settings.DEFAULT_FROM_EMAIL,
                    recipient_list=[to_email],
                    fail_silently=False,
                )
                sent = True
            except (smtplib.SMTPException, OSError):
                logger.exception("Email %r to %s failed", subject, to_email)
        else:
            logger.info("No email address for %s notification %r; recorded only", kind, subject)

        return Notification.objects.create(
            kind=kind,
            recipient_email=to_email or "",
            client=client,
            staff=staff,
            subject=subject,
            message=body,
            sent=sent,
        )

    def _stylists(self, appointment):
        from ..models import Staff

        return list(Staff.objects.filter(pk__in=appointment.assigned_stylist_ids))

    def _service_names(self, appointment) -> str:
        names = [row.service.name for row in appointment.service_assignments.select_related("service")]
        return ", ".join(names) or "Salon appointment"

    def _client_target(self, appointment):
        if appointment.client_id:
            return appointment.client, appointment.client.email
        return None, ""

    # -------------------------
    # Appointment messages
    # -------------------------
    def send_appointment_created(self, appointment) -> list:
        salon = settings.SALON_NAME
        when = _when(appointment.start_time)
        services = self._service_names(appointment)
        written = []

        client, email = self._client_target(appointment)
        if client is not None:
            verb = "confirmed" if appointment.status == "confirmed" else "received"
            body = (
                f"Hi {client.name},\n\n"
                f"Your appointment request has been {verb}.\n\n"
                f"Appointment #: {appointment.pk}\n"
                f"Branch: {appointment.branch.name}\n"
                f"Services: {services}\n"
                f"Date & Time: {when}\n\n"
                f"We look forward to seeing you!\n"
                f"{salon}"
            )
            written.append(self._deliver("appointment_created", "Appointment Booked", body, email, client=client))

        for stylist in self._stylists(appointment):
            body = (
                f"Hi {stylist.name},\n\n"
                f"A new appointment was booked with you.\n"
                f"Client: {appointment.client_display_name}\n"
                f"Services: {services}\n"
                f"Date & Time: {when}\n"
            )
            written.append(self._deliver("appointment_assigned", "New Appointment", body, stylist.email, staff=stylist))
        return written

    def send_status_changed(self, appointment, new_status, reason="") -> list:
        subject = STATUS_SUBJECTS.get(new_status)
        if subject is None:
            return []
        when = _when(appointment.start_time)
        written = []

        client, email = self._client_target(appointment)
        if client is not None:
            lines = [
                f"Hi {client.name},",
                "",
                f"Your appointment #{appointment.pk} on {when} at {appointment.branch.name} "
                f"is now {appointment.get_status_display().lower()}.",
            ]
            if reason:
                lines.append(f"Reason: {reason}")
            lines += ["", settings.SALON_NAME]
            written.append(self._deliver(f"appointment_{new_status}", subject, "\n".join(lines), email, client=client))

        if new_status == "cancelled":
            for stylist in self._stylists(appointment):
                body = (
                    f"Hi {stylist.name},\n\n"
                    f"The appointment with {appointment.client_display_name} on {when} was cancelled.\n"
                )
                written.append(self._deliver(
                    "appointment_cancelled", f"Appointment #{appointment.pk} Cancelled",
                    body, stylist.email, staff=stylist,
                ))
        return written

    def send_rescheduled(self, appointment, old_start, reason="") -> list:
        written = []
        client, email = self._client_target(appointment)
        body_tail = f"Reason: {reason}\n" if reason else ""
        if client is not None:
            body = (
                f"Hi {client.name},\n\n"
                f"Your appointment #{appointment.pk} was moved from {_when(old_start)} "
                f"to {_when(appointment.start_time)}.\n{body_tail}\n{settings.SALON_NAME}"
            )
            written.append(self._deliver("appointment_rescheduled", "Appointment Rescheduled", body, email, client=client))

        for stylist in self._stylists(appointment):
            body = (
                f"Hi {stylist.name},\n\n"
                f"The appointment with {appointment.client_display_name} moved from "
                f"{_when(old_start)} to {_when(appointment.start_time)}.\n{body_tail}"
            )
            written.append(self._deliver(
                "appointment_rescheduled", "Appointment Rescheduled", body, stylist.email, staff=stylist,
            ))
        return written

    def send_transferred(self, appointment, service, old_stylist, new_stylist) -> list:
        when = _when(appointment.start_time)
        service_name = service.name if service is not None else "your service"
        written = []

        client, email = self._client_target(appointment)
        if client is not None:
            new_name = new_stylist.name if new_stylist else "another stylist"
            body = (
                f"Hi {client.name},\n\n"
                f"{service_name} on {when} will now be handled by {new_name}.\n\n"
                f"{settings.SALON_NAME}"
            )
            written.append(self._deliver("appointment_transferred", "Stylist Changed", body, email, client=client))

        if new_stylist is not None:
            body = (
                f"Hi {new_stylist.name},\n\n"
                f"You were assigned {service_name} for {appointment.client_display_name} on {when}.\n"
            )
            written.append(self._deliver(
                "appointment_transferred", "Appointment Assigned to You", body, new_stylist.email, staff=new_stylist,
            ))
        if old_stylist is not None:
            body = (
                f"Hi {old_stylist.name},\n\n"
                f"{service_name} for {appointment.client_display_name} on {when} "
                f"was reassigned to another stylist.\n"
            )
            written.append(self._deliver(
                "appointment_transferred", "Appointment Reassigned", body, old_stylist.email, staff=old_stylist,
            ))
        return written

    def send_reminder(self, appointment, hours_before: int):
        client, email = self._client_target(appointment)
        if client is None:
            return None
        body = (
            f"Hi {client.name},\n\n"
            f"This is a reminder of your appointment in about {hours_before} hours.\n"
            f"Appointment #: {appointment.pk}\n"
            f"Branch: {appointment.branch.name}\n"
            f"Services: {self._service_names(appointment)}\n"
            f"Date & Time: {_when(appointment.start_time)}\n\n"
            f"{settings.SALON_NAME}"
        )
        return self._deliver(f"reminder_{hours_before}h", "Appointment Reminder", body, email, client=client)

    # -------------------------
    # Lending messages
    # -------------------------
    def send_lending_decision(self, lending, decision: str) -> list:
        period = f"{lending.start_date:%b %d, %Y} to {lending.end_date:%b %d, %Y}"
        stylist_name = lending.stylist.name if lending.stylist_id else "a stylist"
        written = []

        requester = lending.requested_by
        if requester is not None and requester.email:
            lines = [
                f"Your request to borrow {stylist_name} from {lending.from_branch.name} "
                f"for {period} was {decision}."
            ]
            if decision == "rejected" and lending.rejection_reason:
                lines.append(f"Reason: {lending.rejection_reason}")
            written.append(self._deliver(
                f"lending_{decision}", f"Stylist Lending {decision.capitalize()}", "\n".join(lines), requester.email,
            ))

        if decision == "approved" and lending.stylist_id:
            stylist = lending.stylist
            body = (
                f"Hi {stylist.name},\n\n"
                f"You will be working at {lending.to_branch.name} from {period}.\n"
            )
            written.append(self._deliver("lending_assignment", "Branch Assignment", body, stylist.email, staff=stylist))
        return written
