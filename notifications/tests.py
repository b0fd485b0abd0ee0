from datetime import date
from unittest.mock import patch

from django.contrib.auth.models import AnonymousUser, User
from django.core import mail
from django.db import DatabaseError
from django.test import TestCase

from booking import signals as booking_signals
from booking.models import Appointment
from booking.services.notification_service import NotificationService
from booking.tests.helpers import MONDAY, at, book, make_branch, make_client, make_service, make_stylist
from notifications.activity import log_activity
from notifications.models import ActivityLog, Notification
from staff.models import LendingRequest


class ActivityLogTests(TestCase):
    def setUp(self):
        self.branch = make_branch()

    def test_log_activity_records_user_and_json_details(self):
        user = User.objects.create_user(username="boss", email="boss@example.com", password="pass123")
        row = log_activity(
            "branch_calendar_created", performed_by=user, branch=self.branch,
            target_type="branch_calendar", target_id=7, details={"date": MONDAY},
        )
        self.assertEqual(row.performed_by, user)
        self.assertEqual(row.target_id, "7")
        self.assertEqual(row.details, {"date": "2030-01-07"})

    def test_anonymous_actor_is_stored_as_null(self):
        row = log_activity("appointment_created", performed_by=AnonymousUser(), branch=self.branch)
        self.assertIsNone(row.performed_by)

    def test_unserializable_details_are_logged_not_raised(self):
        with self.assertLogs("notifications.activity", level="ERROR"):
            row = log_activity("appointment_created", details={"bad": object()})
        self.assertIsNone(row)
        self.assertFalse(ActivityLog.objects.exists())


class NotificationServiceTests(TestCase):
    def setUp(self):
        self.service = NotificationService()
        self.branch = make_branch()
        self.stylist = make_stylist(self.branch)
        self.client_profile = make_client()
        self.haircut = make_service()

    def test_reminder_to_registered_client(self):
        appt = book(self.branch, at(MONDAY, "10:00"), stylist=self.stylist, service=self.haircut,
                    client=self.client_profile)
        notification = self.service.send_reminder(appt, hours_before=24)

        self.assertEqual(notification.kind, "reminder_24h")
        self.assertTrue(notification.sent)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["maria@example.com"])
        self.assertIn("Services: Haircut", mail.outbox[0].body)

    def test_no_reminder_for_walk_in(self):
        appt = book(self.branch, at(MONDAY, "10:00"), stylist=self.stylist, service=self.haircut)
        self.assertIsNone(self.service.send_reminder(appt, hours_before=48))
        self.assertEqual(len(mail.outbox), 0)

    def test_client_without_email_is_recorded_only(self):
        self.client_profile.email = ""
        self.client_profile.save()
        appt = book(self.branch, at(MONDAY, "10:00"), client=self.client_profile)
        notification = self.service.send_reminder(appt, hours_before=24)
        self.assertFalse(notification.sent)
        self.assertEqual(notification.recipient_email, "")
        self.assertEqual(len(mail.outbox), 0)

    def test_status_without_message_sends_nothing(self):
        appt = book(self.branch, at(MONDAY, "10:00"), client=self.client_profile)
        self.assertEqual(self.service.send_status_changed(appt, Appointment.STATUS_PENDING), [])

    def test_lending_without_requester_email_only_tells_stylist(self):
        other = make_branch("Uptown")
        lending = LendingRequest.objects.create(
            stylist=self.stylist, from_branch=self.branch, to_branch=other,
            start_date=date(2030, 3, 1), end_date=date(2030, 3, 2), status=LendingRequest.STATUS_APPROVED,
        )
        written = self.service.send_lending_decision(lending, "approved")
        self.assertEqual([n.kind for n in written], ["lending_assignment"])
        self.assertIn("Uptown", mail.outbox[0].body)


class SignalReceiverTests(TestCase):
    def test_receiver_failure_is_logged_not_raised(self):
        branch = make_branch()
        appt = book(branch, at(MONDAY, "10:00"))
        with patch("notifications.signals.notifier.send_appointment_created", side_effect=DatabaseError("gone")):
            with self.assertLogs("notifications.signals", level="ERROR"):
                booking_signals.appointment_created.send(sender=Appointment, appointment=appt, performed_by=None)
        self.assertFalse(Notification.objects.exists())

    def test_status_signal_reaches_client(self):
        branch = make_branch()
        appt = book(branch, at(MONDAY, "10:00"), client=make_client(), status=Appointment.STATUS_CONFIRMED)
        booking_signals.appointment_status_changed.send(
            sender=Appointment, appointment=appt, old_status="pending", new_status="confirmed",
            reason="", performed_by=None,
        )
        self.assertEqual(mail.outbox[0].subject, "Appointment Confirmed")
        self.assertIn("is now confirmed", mail.outbox[0].body)
