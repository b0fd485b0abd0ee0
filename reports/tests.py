from django.contrib.auth.models import User
from django.test import TestCase
from rest_framework.test import APIClient

from booking.models import Appointment
from booking.tests.helpers import MONDAY, at, book, make_branch, make_service


class ReportsSummaryTests(TestCase):
    def setUp(self):
        self.api = APIClient()
        self.api.force_authenticate(User.objects.create_user("boss", "boss@example.com", "pass", is_staff=True))
        self.branch = make_branch()
        self.haircut = make_service("Haircut")
        self.color = make_service("Color")

        book(self.branch, at(MONDAY, "09:00"), service=self.haircut)
        book(self.branch, at(MONDAY, "11:00"), service=self.haircut, status=Appointment.STATUS_CANCELLED)
        book(self.branch, at(MONDAY, "23:30"), service=self.color, status=Appointment.STATUS_COMPLETED)
        book(make_branch("Uptown"), at(MONDAY, "10:00"), service=self.color)

    def summary(self, **params):
        params.setdefault("from", MONDAY.isoformat())
        params.setdefault("to", MONDAY.isoformat())
        return self.api.get("/api/reports/summary", params)

    def test_summary_for_one_branch(self):
        res = self.summary(branch=self.branch.pk)
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["total"], 3)
        self.assertEqual(res.data["by_status"]["confirmed"], 1)
        self.assertEqual(res.data["by_status"]["cancelled"], 1)
        self.assertEqual(res.data["by_status"]["no_show"], 0)
        self.assertEqual(res.data["appointments_per_day"], [{"day": MONDAY.isoformat(), "count": 3}])
        self.assertEqual(res.data["cancellations_per_day"], [{"day": MONDAY.isoformat(), "count": 1}])
        self.assertEqual(res.data["top_services"][0]["service_name"], "Haircut")
        self.assertEqual(res.data["top_services"][0]["count"], 2)

    def test_summary_for_every_branch(self):
        res = self.summary()
        self.assertEqual(res.data["total"], 4)
        self.assertIsNone(res.data["branch"])

    def test_inverted_range(self):
        res = self.summary(**{"from": "2030-02-01", "to": "2030-01-01"})
        self.assertEqual(res.status_code, 400)

    def test_staff_only(self):
        api = APIClient()
        api.force_authenticate(User.objects.create_user("clerk", "clerk@example.com", "pass"))
        self.assertEqual(api.get("/api/reports/summary").status_code, 403)
