# booking/tests/test_booking_manager.py

import smtplib
from datetime import timedelta
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.exceptions import ValidationError
from django.test import TestCase

from booking.exceptions import (
    AppointmentStateError,
    DuplicateBookingError,
    RescheduleNotAllowedError,
    SlotUnavailableError,
)
from booking.models import Appointment, AppointmentHistory, AppointmentService
from booking.services.booking_manager import BookingManager
from notifications.models import ActivityLog, Notification

from .helpers import MONDAY, at, book, make_branch, make_client, make_service, make_stylist

User = get_user_model()


class BookingManagerTestCase(TestCase):
    def setUp(self):
        self.manager = BookingManager()
        self.branch = make_branch()
        self.stylist = make_stylist(self.branch, name="Ana")
        self.other_stylist = make_stylist(self.branch, name="Bea")
        self.haircut = make_service("Haircut", duration=60)
        self.color = make_service("Color", duration=90, price="1200.00")
        self.client_profile = make_client()
        self.user = User.objects.create_user("frontdesk", "desk@example.com", "pass", is_staff=True)

    def create(self, **kwargs):
        kwargs.setdefault("branch", self.branch)
        kwargs.setdefault("services", [{"service": self.haircut, "stylist": self.stylist}])
        kwargs.setdefault("start_time", at(MONDAY, "10:00"))
        kwargs.setdefault("client", self.client_profile)
        kwargs.setdefault("performed_by", self.user)
        return self.manager.create_appointment(**kwargs)


class CreateAppointmentTests(BookingManagerTestCase):
    def test_creates_appointment_with_service_rows_and_history(self):
        appt = self.create(
            services=[
                {"service": self.haircut, "stylist": self.stylist},
                {"service": self.color, "stylist": self.other_stylist},
            ],
        )
        self.assertEqual(appt.status, Appointment.STATUS_PENDING)
        self.assertEqual(appt.duration_minutes, 150)
        self.assertEqual(appt.created_by, self.user)

        rows = list(appt.service_assignments.order_by("id"))
        self.assertEqual([r.service for r in rows], [self.haircut, self.color])
        self.assertEqual(rows[0].price, self.haircut.price)
        self.assertEqual(rows[1].stylist, self.other_stylist)

        actions = list(appt.history.values_list("action", flat=True))
        self.assertEqual(actions, ["created"])
        self.assertTrue(ActivityLog.objects.filter(action="appointment_created", target_id=str(appt.pk)).exists())

    def test_confirmed_creation_records_second_history_row(self):
        appt = self.create(status=Appointment.STATUS_CONFIRMED)
        actions = list(appt.history.values_list("action", flat=True))
        self.assertEqual(actions, ["created", "status_changed_to_confirmed"])

    def test_explicit_duration_wins(self):
        appt = self.create(duration_minutes=45)
        self.assertEqual(appt.duration_minutes, 45)

    def test_seconds_are_truncated(self):
        appt = self.create(start_time=at(MONDAY, "10:00") + timedelta(seconds=42))
        self.assertEqual(appt.start_time, at(MONDAY, "10:00"))

    def test_walk_in_guest(self):
        appt = self.create(client=None, guest_name="  Juan  ")
        self.assertEqual(appt.guest_name, "Juan")
        self.assertEqual(appt.client_display_name, "Juan")

    def test_requires_client_or_guest(self):
        with self.assertRaises(ValidationError):
            self.create(client=None, guest_name="")

    def test_requires_at_least_one_service(self):
        with self.assertRaises(ValidationError):
            self.create(services=[])

    def test_rejects_inactive_service(self):
        self.haircut.active = False
        self.haircut.save()
        with self.assertRaises(ValidationError):
            self.create()

    def test_rejects_non_stylist_assignment(self):
        receptionist = make_stylist(self.branch, name="Cora", role="receptionist")
        with self.assertRaises(ValidationError):
            self.create(services=[{"service": self.haircut, "stylist": receptionist}])

    def test_busy_stylist_is_refused_and_nothing_is_written(self):
        book(self.branch, at(MONDAY, "10:00"), stylist=self.stylist, service=self.haircut)
        before = Appointment.objects.count()
        rows_before = AppointmentService.objects.count()

        with self.assertRaises(SlotUnavailableError) as ctx:
            self.create(start_time=at(MONDAY, "10:30"), client=None, guest_name="Walk-in")

        self.assertIn("Ana is not available", str(ctx.exception))
        self.assertEqual(Appointment.objects.count(), before)
        self.assertEqual(AppointmentService.objects.count(), rows_before)

    def test_legacy_stylist_argument_is_checked(self):
        book(self.branch, at(MONDAY, "10:00"), legacy_stylist=self.other_stylist)
        with self.assertRaises(SlotUnavailableError):
            self.create(services=[self.haircut], stylist=self.other_stylist)

    def test_back_to_back_bookings_are_allowed(self):
        self.create()
        second = self.create(start_time=at(MONDAY, "11:00"), client=None, guest_name="Next")
        self.assertEqual(second.start_time, at(MONDAY, "11:00"))

    def test_duplicate_for_same_client_service_and_stylist(self):
        self.create()
        with self.assertRaises(DuplicateBookingError):
            self.create(start_time=at(MONDAY, "10:30"))

    def test_duplicate_without_stylist(self):
        self.create(services=[self.haircut])
        with self.assertRaises(DuplicateBookingError):
            self.create(services=[self.haircut], start_time=at(MONDAY, "10:15"))

    def test_same_client_different_service_is_not_a_duplicate(self):
        self.create(services=[self.haircut])
        appt = self.create(services=[self.color], start_time=at(MONDAY, "10:30"))
        self.assertIsNotNone(appt.pk)

    def test_cancelled_appointment_is_not_a_duplicate(self):
        first = self.create()
        self.manager.cancel_appointment(first, performed_by=self.user)
        again = self.create()
        self.assertNotEqual(again.pk, first.pk)


class UpdateAppointmentTests(BookingManagerTestCase):
    def test_reschedule_overlapping_own_old_time(self):
        appt = self.create()
        self.manager.update_appointment(appt, performed_by=self.user, start_time=at(MONDAY, "10:30"),
                                        reschedule_reason="Running late")
        appt.refresh_from_db()
        self.assertEqual(appt.start_time, at(MONDAY, "10:30"))
        entry = appt.history.get(action="rescheduled")
        self.assertEqual(entry.reason, "Running late")
        self.assertEqual(entry.details["old_start"], at(MONDAY, "10:00").isoformat())

    def test_reschedule_into_conflict_leaves_appointment_untouched(self):
        appt = self.create()
        book(self.branch, at(MONDAY, "14:00"), stylist=self.stylist, service=self.color)
        with self.assertRaises(SlotUnavailableError):
            self.manager.update_appointment(appt, start_time=at(MONDAY, "14:30"))
        appt.refresh_from_db()
        self.assertEqual(appt.start_time, at(MONDAY, "10:00"))
        self.assertFalse(appt.history.filter(action="rescheduled").exists())

    def test_in_service_appointment_cannot_be_rescheduled(self):
        appt = self.create(status=Appointment.STATUS_CONFIRMED)
        self.manager.change_status(appt, Appointment.STATUS_IN_SERVICE)
        with self.assertRaises(RescheduleNotAllowedError) as ctx:
            self.manager.update_appointment(appt, start_time=at(MONDAY, "15:00"))
        self.assertIn("in progress or completed", str(ctx.exception))

    def test_paid_appointment_cannot_be_rescheduled(self):
        appt = self.create()
        Appointment.objects.filter(pk=appt.pk).update(payment_status=Appointment.PAYMENT_PAID)
        with self.assertRaises(RescheduleNotAllowedError) as ctx:
            self.manager.update_appointment(appt, start_time=at(MONDAY, "15:00"))
        self.assertIn("already been paid", str(ctx.exception))

    def test_notes_only_update_skips_availability(self):
        appt = self.create()
        book(self.branch, at(MONDAY, "10:00"), stylist=self.stylist, service=self.color)
        self.manager.update_appointment(appt, notes="Bring reference photo")
        appt.refresh_from_db()
        self.assertEqual(appt.notes, "Bring reference photo")
        self.assertTrue(appt.history.filter(action="updated").exists())

    def test_longer_duration_is_checked(self):
        appt = self.create()
        book(self.branch, at(MONDAY, "11:00"), stylist=self.stylist, service=self.color)
        with self.assertRaises(SlotUnavailableError):
            self.manager.update_appointment(appt, duration_minutes=90)

    def test_transfer_to_free_stylist(self):
        appt = self.create()
        row = appt.service_assignments.get()
        self.manager.update_appointment(appt, performed_by=self.user, assignments={row.pk: self.other_stylist})
        row.refresh_from_db()
        self.assertEqual(row.stylist, self.other_stylist)
        entry = appt.history.get(action="stylist_transferred")
        self.assertEqual(entry.details["from_stylist"], self.stylist.pk)
        self.assertEqual(entry.details["to_stylist"], self.other_stylist.pk)

    def test_transfer_to_busy_stylist_is_refused(self):
        appt = self.create()
        book(self.branch, at(MONDAY, "10:30"), stylist=self.other_stylist, service=self.color)
        row = appt.service_assignments.get()
        with self.assertRaises(SlotUnavailableError):
            self.manager.update_appointment(appt, assignments={row.pk: self.other_stylist})
        row.refresh_from_db()
        self.assertEqual(row.stylist, self.stylist)

    def test_transfer_of_foreign_row(self):
        appt = self.create()
        other = book(self.branch, at(MONDAY, "15:00"), stylist=self.other_stylist, service=self.color)
        foreign_row = other.service_assignments.get()
        with self.assertRaises(ValidationError):
            self.manager.update_appointment(appt, assignments={foreign_row.pk: self.stylist})

    def test_cancelled_appointment_cannot_be_reassigned(self):
        appt = self.create()
        self.manager.cancel_appointment(appt)
        row = appt.service_assignments.get()
        with self.assertRaises(AppointmentStateError):
            self.manager.update_appointment(appt, assignments={row.pk: self.other_stylist})


class ChangeStatusTests(BookingManagerTestCase):
    def test_full_lifecycle(self):
        appt = self.create()
        for status in (Appointment.STATUS_CONFIRMED, Appointment.STATUS_IN_SERVICE, Appointment.STATUS_COMPLETED):
            appt = self.manager.change_status(appt, status, performed_by=self.user)
            self.assertEqual(appt.status, status)
        actions = list(appt.history.values_list("action", flat=True))
        self.assertEqual(actions, [
            "created",
            "status_changed_to_confirmed",
            "status_changed_to_in_service",
            "status_changed_to_completed",
        ])

    def test_skipping_steps_is_refused(self):
        appt = self.create()
        with self.assertRaises(AppointmentStateError):
            self.manager.change_status(appt, Appointment.STATUS_COMPLETED)
        appt.refresh_from_db()
        self.assertEqual(appt.status, Appointment.STATUS_PENDING)

    def test_terminal_statuses_are_final(self):
        appt = self.create()
        self.manager.change_status(appt, Appointment.STATUS_NO_SHOW)
        with self.assertRaises(AppointmentStateError):
            self.manager.change_status(appt, Appointment.STATUS_CONFIRMED)

    def test_unknown_status(self):
        appt = self.create()
        with self.assertRaises(ValidationError):
            self.manager.change_status(appt, "teleported")

    def test_cancel_records_reason_and_frees_the_stylist(self):
        appt = self.create()
        self.manager.cancel_appointment(appt, performed_by=self.user, reason="Client sick")
        appt.refresh_from_db()
        self.assertEqual(appt.status, Appointment.STATUS_CANCELLED)
        self.assertEqual(appt.cancellation_reason, "Client sick")
        self.assertIsNotNone(appt.cancelled_at)
        self.assertTrue(ActivityLog.objects.filter(action="appointment_cancelled").exists())

        replacement = self.create(client=None, guest_name="Walk-in")
        self.assertEqual(replacement.start_time, appt.start_time)

    def test_delete_is_logged(self):
        appt = self.create()
        appt_id = appt.pk
        self.manager.delete_appointment(appt, performed_by=self.user)
        self.assertFalse(Appointment.objects.filter(pk=appt_id).exists())
        self.assertFalse(AppointmentHistory.objects.filter(appointment_id=appt_id).exists())
        log = ActivityLog.objects.get(action="appointment_deleted")
        self.assertEqual(log.target_id, str(appt_id))
        self.assertEqual(log.performed_by, self.user)


class NotificationDispatchTests(BookingManagerTestCase):
    def test_creation_notifies_client_and_stylist_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            appt = self.create()
        self.assertEqual(len(callbacks), 1)

        recipients = sorted(m.to[0] for m in mail.outbox)
        self.assertEqual(recipients, ["ana@example.com", "maria@example.com"])
        self.assertEqual(
            set(Notification.objects.values_list("kind", flat=True)),
            {"appointment_created", "appointment_assigned"},
        )
        self.assertTrue(all(Notification.objects.values_list("sent", flat=True)))
        self.assertIn(f"Appointment #: {appt.pk}", mail.outbox[0].body + mail.outbox[1].body)

    def test_refused_booking_sends_nothing(self):
        book(self.branch, at(MONDAY, "10:00"), stylist=self.stylist, service=self.haircut)
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(SlotUnavailableError):
                self.create()
        self.assertEqual(callbacks, [])
        self.assertEqual(len(mail.outbox), 0)
        self.assertFalse(Notification.objects.exists())

    def test_guest_booking_only_notifies_stylist(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.create(client=None, guest_name="Walk-in")
        self.assertEqual([m.to for m in mail.outbox], [["ana@example.com"]])

    def test_cancellation_notifies_client_and_stylist(self):
        appt = self.create()
        with self.captureOnCommitCallbacks(execute=True):
            self.manager.cancel_appointment(appt, reason="Typhoon")
        subjects = sorted(m.subject for m in mail.outbox)
        self.assertEqual(subjects, [f"Appointment #{appt.pk} Cancelled", "Appointment Cancelled"])
        client_mail = next(m for m in mail.outbox if m.subject == "Appointment Cancelled")
        self.assertIn("Reason: Typhoon", client_mail.body)

    def test_reschedule_notifies(self):
        appt = self.create()
        with self.captureOnCommitCallbacks(execute=True):
            self.manager.update_appointment(appt, start_time=at(MONDAY, "13:00"))
        self.assertTrue(all(m.subject == "Appointment Rescheduled" for m in mail.outbox))
        self.assertEqual(len(mail.outbox), 2)

    def test_transfer_notifies_client_and_both_stylists(self):
        appt = self.create()
        row = appt.service_assignments.get()
        with self.captureOnCommitCallbacks(execute=True):
            self.manager.update_appointment(appt, assignments={row.pk: self.other_stylist})
        subjects = {m.to[0]: m.subject for m in mail.outbox}
        self.assertEqual(subjects["maria@example.com"], "Stylist Changed")
        self.assertEqual(subjects["bea@example.com"], "Appointment Assigned to You")
        self.assertEqual(subjects["ana@example.com"], "Appointment Reassigned")

    @patch("booking.services.notification_service.send_mail", side_effect=smtplib.SMTPException("relay down"))
    def test_email_failure_is_recorded_not_raised(self, _send_mail):
        with self.assertLogs("booking.services.notification_service", level="ERROR"):
            with self.captureOnCommitCallbacks(execute=True):
                appt = self.create()
        self.assertTrue(Appointment.objects.filter(pk=appt.pk).exists())
        self.assertEqual(Notification.objects.count(), 2)
        self.assertFalse(Notification.objects.filter(sent=True).exists())
