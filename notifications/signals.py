# notifications/signals.py
#
# Purpose:
# - Turn committed appointment and lending events into emails + Notification rows.
#
# Notes:
# - The booking and lending services send these signals from
#   transaction.on_commit, so a rolled-back operation never notifies anyone.
# - Uses DEFAULT_FROM_EMAIL; console backend in dev, SMTP in prod.
# - Nothing here may break the request: failures are logged instead.
#
import logging

from django.db import DatabaseError
from django.dispatch import receiver

from booking.services.notification_service import NotificationService
from booking.signals import (
    appointment_created,
    appointment_rescheduled,
    appointment_status_changed,
    appointment_transferred,
)
from staff.signals import lending_decided

logger = logging.getLogger(__name__)

notifier = NotificationService()


@receiver(appointment_created)
def notify_appointment_created(sender, appointment, **kwargs):
    try:
        notifier.send_appointment_created(appointment)
    except DatabaseError:
        logger.exception("Could not record creation notice for appointment %s", appointment.pk)


@receiver(appointment_status_changed)
def notify_status_changed(sender, appointment, new_status, reason="", **kwargs):
    try:
        notifier.send_status_changed(appointment, new_status, reason=reason)
    except DatabaseError:
        logger.exception("Could not record %s notice for appointment %s", new_status, appointment.pk)


@receiver(appointment_rescheduled)
def notify_rescheduled(sender, appointment, old_start, reason="", **kwargs):
    try:
        notifier.send_rescheduled(appointment, old_start, reason=reason)
    except DatabaseError:
        logger.exception("Could not record reschedule notice for appointment %s", appointment.pk)


@receiver(appointment_transferred)
def notify_transferred(sender, appointment, service=None, old_stylist=None, new_stylist=None, **kwargs):
    try:
        notifier.send_transferred(appointment, service, old_stylist, new_stylist)
    except DatabaseError:
        logger.exception("Could not record transfer notice for appointment %s", appointment.pk)


@receiver(lending_decided)
def notify_lending_decided(sender, lending, decision, **kwargs):
    try:
        notifier.send_lending_decision(lending, decision)
    except DatabaseError:
        logger.exception("Could not record lending %s notice for request %s", decision, lending.pk)

