"""
send_reminders.py
-----------------
Django management command to send 48h/24h appointment reminders.

Usage:
    python manage.py send_reminders --when 48
    python manage.py send_reminders --when 24 --window 5 --branch 2

Behavior:
- Finds appointments starting about N hours from now (± --window minutes,
  default 1; schedule the command at the same interval).
- Only pending / confirmed appointments of registered clients are reminded.
- Each reminder is mailed and recorded as a Notification.
"""

import logging
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from booking.models import Appointment
from booking.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Send appointment reminders at N hours (48 or 24) before start_time."

    def add_arguments(self, parser):
        parser.add_argument(
            "--when",
            type=int,
            choices=[48, 24],
            required=True,
            help="Reminder window in hours (choose 48 or 24).",
        )
        parser.add_argument("--window", type=int, default=1, help="Minutes either side of the target time.")
        parser.add_argument("--branch", type=int, help="Only remind clients of this branch.")

    def handle(self, *args, **options):
        hours = options["when"]
        slack = timedelta(minutes=max(options["window"], 0))
        target = timezone.now() + timedelta(hours=hours)

        qs = (
            Appointment.objects
            .filter(
                start_time__gte=target - slack,
                start_time__lte=target + slack,
                status__in=(Appointment.STATUS_PENDING, Appointment.STATUS_CONFIRMED),
                client__isnull=False,
            )
            .select_related("client", "branch")
            .order_by("start_time")
        )
        if options.get("branch"):
            qs = qs.filter(branch_id=options["branch"])

        notifier = NotificationService()
        sent = 0
        failed = 0
        for appointment in qs:
            notification = notifier.send_reminder(appointment, hours_before=hours)
            if notification is not None and notification.sent:
                sent += 1
            else:
                failed += 1

        if failed:
            logger.warning("%s reminder(s) for the %sh window could not be mailed", failed, hours)
        self.stdout.write(self.style.SUCCESS(f"Sent {sent} reminder(s) for {hours}h window."))
