# staff/tests/test_schedules.py

from datetime import date, time, timedelta

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from booking.tests.helpers import MONDAY, make_branch, make_stylist
from staff.models import DateSpecificShift, ScheduleConfiguration
from staff.services import schedules

User = get_user_model()


class ScheduleResolutionTests(TestCase):
    def setUp(self):
        self.branch = make_branch()
        self.stylist = make_stylist(self.branch)

    def configure(self, start_date, start="10:00", end="18:00", is_active=True, day="monday"):
        return ScheduleConfiguration.objects.create(
            branch=self.branch,
            start_date=start_date,
            is_active=is_active,
            shifts={str(self.stylist.pk): {day: {"start": start, "end": end}}},
        )

    def test_no_configuration(self):
        self.assertIsNone(schedules.applicable_configuration(self.branch, MONDAY))
        self.assertIsNone(schedules.shift_for(self.stylist, self.branch, MONDAY))

    def test_latest_start_date_on_or_before_wins(self):
        self.configure(MONDAY - timedelta(days=60), start="08:00")
        newer = self.configure(MONDAY - timedelta(days=7), start="11:00")
        self.configure(MONDAY + timedelta(days=1), start="13:00")
        self.assertEqual(schedules.applicable_configuration(self.branch, MONDAY), newer)
        self.assertEqual(schedules.shift_for(self.stylist, self.branch, MONDAY), (time(11, 0), time(18, 0)))

    def test_configuration_starting_that_day_applies(self):
        config = self.configure(MONDAY)
        self.assertEqual(schedules.applicable_configuration(self.branch, MONDAY), config)

    def test_inactive_configuration_still_counts(self):
        config = self.configure(MONDAY - timedelta(days=1), is_active=False)
        self.assertEqual(schedules.applicable_configuration(self.branch, MONDAY), config)

    def test_other_branch_configuration_is_ignored(self):
        elsewhere = make_branch("Uptown")
        ScheduleConfiguration.objects.create(branch=elsewhere, start_date=MONDAY - timedelta(days=1))
        self.assertIsNone(schedules.applicable_configuration(self.branch, MONDAY))

    def test_date_specific_shift_wins(self):
        self.configure(MONDAY - timedelta(days=1))
        DateSpecificShift.objects.create(
            staff=self.stylist, branch=self.branch, date=MONDAY, start_time=time(7, 0), end_time=time(12, 0)
        )
        self.assertEqual(schedules.shift_for(self.stylist, self.branch, MONDAY), (time(7, 0), time(12, 0)))
        next_monday = schedules.shift_for(self.stylist, self.branch, MONDAY + timedelta(days=7))
        self.assertEqual(next_monday, (time(10, 0), time(18, 0)))

    def test_day_off(self):
        self.configure(MONDAY - timedelta(days=1), day="tuesday")
        self.assertIsNone(schedules.shift_for(self.stylist, self.branch, MONDAY))

    def test_malformed_shift_is_ignored_with_warning(self):
        self.configure(MONDAY - timedelta(days=1), start="ten o'clock")
        with self.assertLogs("staff.services.schedules", level="WARNING"):
            self.assertIsNone(schedules.shift_for(self.stylist, self.branch, MONDAY))

    def test_weekly_shifts_for(self):
        self.configure(MONDAY - timedelta(days=1))
        self.assertEqual(
            schedules.weekly_shifts_for(self.stylist, self.branch, MONDAY),
            {"monday": {"start": "10:00", "end": "18:00"}},
        )
        self.assertEqual(schedules.weekly_shifts_for(self.stylist, self.branch, date(2000, 1, 1)), {})


class ScheduleApiTests(TestCase):
    def setUp(self):
        self.api = APIClient()
        self.api.force_authenticate(User.objects.create_user("boss", "boss@example.com", "pass", is_staff=True))
        self.branch = make_branch()
        self.stylist = make_stylist(self.branch)

    def test_create_configuration_validates_shifts(self):
        res = self.api.post("/api/staff/schedules/", {
            "branch": self.branch.pk,
            "start_date": MONDAY.isoformat(),
            "shifts": {str(self.stylist.pk): {"monday": {"start": "18:00", "end": "10:00"}}},
        }, format="json")
        self.assertEqual(res.status_code, 400)

        res = self.api.post("/api/staff/schedules/", {
            "branch": self.branch.pk,
            "start_date": MONDAY.isoformat(),
            "shifts": {str(self.stylist.pk): {"monday": {"start": "10:00", "end": "18:00"}}},
        }, format="json")
        self.assertEqual(res.status_code, 201)

    def test_shift_lookup(self):
        DateSpecificShift.objects.create(
            staff=self.stylist, branch=self.branch, date=MONDAY, start_time=time(9, 0), end_time=time(13, 0)
        )
        res = self.api.get("/api/staff/schedules/shift/", {"stylist": self.stylist.pk, "date": MONDAY.isoformat()})
        self.assertEqual(res.status_code, 200)
        self.assertEqual((res.data["start"], res.data["end"]), ("09:00", "13:00"))

    def test_non_staff_cannot_edit_shifts(self):
        api = APIClient()
        api.force_authenticate(User.objects.create_user("clerk", "clerk@example.com", "pass"))
        res = api.post("/api/staff/shifts/", {
            "staff": self.stylist.pk, "branch": self.branch.pk, "date": MONDAY.isoformat(),
            "start_time": "09:00", "end_time": "12:00",
        }, format="json")
        self.assertEqual(res.status_code, 403)
