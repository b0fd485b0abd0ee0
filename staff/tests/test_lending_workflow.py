# staff/tests/test_lending_workflow.py

from datetime import date, timedelta
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.exceptions import ValidationError
from django.test import TestCase

from booking.tests.helpers import make_branch, make_stylist
from notifications.models import ActivityLog, Notification
from staff.exceptions import LendingConflictError, LendingStateError
from staff.models import LendingRequest
from staff.services.lending_workflow import LendingWorkflow, is_lending_in_effect

User = get_user_model()

MAR_1 = date(2030, 3, 1)
MAR_5 = date(2030, 3, 5)
MAR_10 = date(2030, 3, 10)


class IsLendingInEffectTests(TestCase):
    def test_window_is_inclusive(self):
        for on_date in (MAR_1, MAR_5, MAR_10):
            self.assertTrue(is_lending_in_effect("approved", MAR_1, MAR_10, on_date))
        self.assertFalse(is_lending_in_effect("approved", MAR_1, MAR_10, MAR_1 - timedelta(days=1)))
        self.assertFalse(is_lending_in_effect("approved", MAR_1, MAR_10, MAR_10 + timedelta(days=1)))

    def test_only_approved_or_legacy_active_count(self):
        self.assertTrue(is_lending_in_effect("active", MAR_1, MAR_10, MAR_5))
        for status in ("pending", "rejected", "cancelled"):
            self.assertFalse(is_lending_in_effect(status, MAR_1, MAR_10, MAR_5))

    def test_missing_dates(self):
        self.assertFalse(is_lending_in_effect("approved", None, MAR_10, MAR_5))


class LendingWorkflowTestCase(TestCase):
    def setUp(self):
        self.workflow = LendingWorkflow()
        self.makati = make_branch("Makati")
        self.qc = make_branch("Quezon City")
        self.bgc = make_branch("BGC")
        self.ana = make_stylist(self.makati, name="Ana")
        self.bea = make_stylist(self.makati, name="Bea")
        self.requester = User.objects.create_user("qc-manager", "qc@example.com", "pass")
        self.approver = User.objects.create_user("makati-manager", "makati@example.com", "pass")

    def request(self, stylist=None, **kwargs):
        kwargs.setdefault("from_branch", self.makati)
        kwargs.setdefault("to_branch", self.qc)
        kwargs.setdefault("start_date", MAR_1)
        kwargs.setdefault("end_date", MAR_10)
        kwargs.setdefault("requester", self.requester)
        return self.workflow.request_lending(stylist, **kwargs)


class RequestLendingTests(LendingWorkflowTestCase):
    def test_request_is_pending_and_logged_on_requesting_branch(self):
        lending = self.request(self.ana, reason="Weekend rush")
        self.assertEqual(lending.status, LendingRequest.STATUS_PENDING)
        self.assertEqual(lending.requested_by, self.requester)
        self.assertEqual(lending.reason, "Weekend rush")
        log = ActivityLog.objects.get(action="stylist_lending_requested")
        self.assertEqual(log.branch, self.qc)
        self.assertEqual(log.details["stylist_id"], self.ana.pk)

    def test_stylist_may_be_left_open(self):
        lending = self.request(None)
        self.assertIsNone(lending.stylist)

    def test_same_branch_is_refused(self):
        with self.assertRaises(ValidationError):
            self.request(self.ana, to_branch=self.makati)

    def test_inverted_dates_are_refused(self):
        with self.assertRaises(ValidationError):
            self.request(self.ana, start_date=MAR_10, end_date=MAR_1)

    def test_single_day_lending(self):
        lending = self.request(self.ana, start_date=MAR_5, end_date=MAR_5)
        self.assertEqual(lending.start_date, lending.end_date)

    def test_stylist_must_belong_to_providing_branch(self):
        outsider = make_stylist(self.bgc, name="Cora")
        with self.assertRaises(ValidationError):
            self.request(outsider)

    def test_non_stylist_cannot_be_lent(self):
        desk = make_stylist(self.makati, name="Dina", role="receptionist")
        with self.assertRaises(ValidationError):
            self.request(desk)

    def test_overlap_with_approved_lending_is_refused(self):
        first = self.request(self.ana)
        self.workflow.approve_lending(first, approver=self.approver)
        with self.assertRaises(LendingConflictError):
            self.request(self.ana, to_branch=self.bgc, start_date=MAR_10, end_date=MAR_10 + timedelta(days=3))
        self.assertEqual(LendingRequest.objects.count(), 1)

    def test_pending_requests_do_not_block(self):
        self.request(self.ana)
        second = self.request(self.ana, to_branch=self.bgc)
        self.assertEqual(second.status, LendingRequest.STATUS_PENDING)


class DecisionTests(LendingWorkflowTestCase):
    def test_approve_with_stylist_chosen_by_provider(self):
        lending = self.request(None)
        approved = self.workflow.approve_lending(lending, approver=self.approver, stylist_override=self.bea)
        self.assertEqual(approved.status, LendingRequest.STATUS_APPROVED)
        self.assertEqual(approved.stylist, self.bea)
        self.assertEqual(approved.approved_by, self.approver)
        self.assertIsNotNone(approved.approved_at)

        lending.refresh_from_db()
        self.assertEqual(lending.stylist, self.bea)
        log = ActivityLog.objects.get(action="stylist_lending_approved")
        self.assertEqual(log.branch, self.makati)

    def test_approve_keeps_requested_stylist(self):
        lending = self.request(self.ana)
        approved = self.workflow.approve_lending(lending, approver=self.approver)
        self.assertEqual(approved.stylist, self.ana)

    def test_second_overlapping_approval_conflicts(self):
        first = self.request(self.ana)
        second = self.request(self.ana, to_branch=self.bgc, start_date=MAR_5, end_date=MAR_10 + timedelta(days=5))
        self.workflow.approve_lending(first, approver=self.approver)
        with self.assertRaises(LendingConflictError):
            self.workflow.approve_lending(second, approver=self.approver)
        second.refresh_from_db()
        self.assertEqual(second.status, LendingRequest.STATUS_PENDING)

    def test_reject_records_reason(self):
        lending = self.request(self.ana)
        rejected = self.workflow.reject_lending(lending, reason="Short-staffed", approver=self.approver)
        self.assertEqual(rejected.status, LendingRequest.STATUS_REJECTED)
        self.assertEqual(rejected.rejection_reason, "Short-staffed")
        self.assertEqual(rejected.rejected_by, self.approver)

    def test_approve_after_reject_is_refused(self):
        lending = self.request(self.ana)
        self.workflow.reject_lending(lending, approver=self.approver)
        with self.assertRaises(LendingStateError):
            self.workflow.approve_lending(lending, approver=self.approver)
        lending.refresh_from_db()
        self.assertEqual(lending.status, LendingRequest.STATUS_REJECTED)

    def test_reject_after_approve_is_refused(self):
        lending = self.request(self.ana)
        self.workflow.approve_lending(lending, approver=self.approver)
        with self.assertRaises(LendingStateError):
            self.workflow.reject_lending(lending, approver=self.approver)

    def test_cancel_approved_lending(self):
        lending = self.request(self.ana)
        self.workflow.approve_lending(lending, approver=self.approver)
        cancelled = self.workflow.cancel_lending(lending, actor=self.requester)
        self.assertEqual(cancelled.status, LendingRequest.STATUS_CANCELLED)
        self.assertEqual(cancelled.cancelled_by, self.requester)
        self.assertEqual(self.workflow.active_lendings_into(self.qc, on_date=MAR_5), [])

    def test_cancel_legacy_active_row(self):
        legacy = LendingRequest.objects.create(
            stylist=self.ana, from_branch=self.makati, to_branch=self.qc,
            start_date=MAR_1, end_date=MAR_10, status=LendingRequest.STATUS_LEGACY_ACTIVE,
        )
        cancelled = self.workflow.cancel_lending(legacy)
        self.assertEqual(cancelled.status, LendingRequest.STATUS_CANCELLED)

    def test_rejected_lending_cannot_be_cancelled(self):
        lending = self.request(self.ana)
        self.workflow.reject_lending(lending)
        with self.assertRaises(LendingStateError):
            self.workflow.cancel_lending(lending)

    def test_decision_notifies_requester_and_stylist(self):
        lending = self.request(self.ana)
        with self.captureOnCommitCallbacks(execute=True):
            self.workflow.approve_lending(lending, approver=self.approver)
        recipients = sorted(m.to[0] for m in mail.outbox)
        self.assertEqual(recipients, ["ana@example.com", "qc@example.com"])
        self.assertEqual(
            set(Notification.objects.values_list("kind", flat=True)),
            {"lending_approved", "lending_assignment"},
        )

    def test_rejection_mail_carries_reason(self):
        lending = self.request(self.ana)
        with self.captureOnCommitCallbacks(execute=True):
            self.workflow.reject_lending(lending, reason="Fully booked", approver=self.approver)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, "Stylist Lending Rejected")
        self.assertIn("Reason: Fully booked", mail.outbox[0].body)

    def test_failed_approval_announces_nothing(self):
        lending = self.request(self.ana)
        self.workflow.reject_lending(lending)
        with patch("staff.signals.lending_decided.send") as send:
            with self.captureOnCommitCallbacks(execute=True):
                with self.assertRaises(LendingStateError):
                    self.workflow.approve_lending(lending)
        send.assert_not_called()


class ActiveLendingQueryTests(LendingWorkflowTestCase):
    def setUp(self):
        super().setUp()
        self.approved = self.workflow.approve_lending(self.request(self.ana), approver=self.approver)
        self.pending = self.request(self.bea, to_branch=self.bgc)

    def test_active_into_on_date(self):
        self.assertEqual(self.workflow.active_lendings_into(self.qc, on_date=MAR_5), [self.approved])
        self.assertEqual(self.workflow.active_lendings_into(self.qc, on_date=MAR_10 + timedelta(days=1)), [])
        self.assertEqual(self.workflow.active_lendings_into(self.bgc, on_date=MAR_5), [])

    def test_active_out_of_on_date(self):
        self.assertEqual(self.workflow.active_lendings_out_of(self.makati, on_date=MAR_1), [self.approved])
        self.assertEqual(self.workflow.active_lendings_out_of(self.qc, on_date=MAR_1), [])

    def test_no_date_means_any_date(self):
        future = self.workflow.approve_lending(
            self.request(self.ana, start_date=date(2030, 6, 1), end_date=date(2030, 6, 3)),
            approver=self.approver,
        )
        rows = self.workflow.active_lendings_into(self.qc, on_date=None)
        self.assertEqual(rows, [self.approved, future])

    def test_default_is_today(self):
        self.assertEqual(self.workflow.active_lendings_into(self.qc), [])

    def test_legacy_active_rows_count(self):
        legacy = LendingRequest.objects.create(
            stylist=self.bea, from_branch=self.makati, to_branch=self.bgc,
            start_date=MAR_1, end_date=MAR_10, status=LendingRequest.STATUS_LEGACY_ACTIVE,
        )
        self.assertEqual(self.workflow.active_lendings_into(self.bgc, on_date=MAR_5), [legacy])

    def test_queries_agree_with_the_predicate_on_boundaries(self):
        for on_date in (MAR_1 - timedelta(days=1), MAR_1, MAR_5, MAR_10, MAR_10 + timedelta(days=1)):
            expected = is_lending_in_effect(self.approved.status, MAR_1, MAR_10, on_date)
            self.assertEqual(self.workflow.active_lendings_into(self.qc, on_date=on_date) == [self.approved],
                             expected, on_date)
            self.assertEqual(self.workflow.active_lending_for_stylist(self.ana, on_date=on_date) is not None,
                             expected, on_date)

    def test_predicate_has_the_final_word(self):
        with patch("staff.services.lending_workflow.is_lending_in_effect", return_value=False) as check:
            self.assertEqual(self.workflow.active_lendings_into(self.qc, on_date=MAR_5), [])
        check.assert_called_once_with("approved", MAR_1, MAR_10, MAR_5)

    def test_active_lending_for_stylist(self):
        self.assertEqual(self.workflow.active_lending_for_stylist(self.ana, on_date=MAR_5), self.approved)
        self.assertIsNone(self.workflow.active_lending_for_stylist(self.bea, on_date=MAR_5))

    def test_stylists_lent_in(self):
        self.assertEqual(self.workflow.stylists_lent_in(self.qc, on_date=MAR_5), [self.ana])

    def test_requests_for_branch_are_tagged_by_direction(self):
        makati_view = self.workflow.lending_requests_for_branch(self.makati)
        self.assertEqual([r.pk for r in makati_view], [self.pending.pk, self.approved.pk])
        self.assertEqual({r.direction for r in makati_view}, {"incoming"})

        qc_view = self.workflow.lending_requests_for_branch(self.qc)
        self.assertEqual([r.direction for r in qc_view], ["outgoing"])
