"""
seed_demo.py
------------
Seeds (creates or updates) demo data: two branches with weekday hours, a
service catalog, a few stylists per branch and a weekly schedule. Safe to run
repeatedly; rows are upserted by name / email.

Usage:
    python manage.py seed_demo
"""

from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from booking.models import Service, Staff
from branches.models import WEEKDAY_NAMES, Branch
from staff.models import ScheduleConfiguration

WEEKDAY_HOURS = {"open": "09:00", "close": "18:00", "isOpen": True}
SUNDAY_CLOSED = {"isOpen": False}

BRANCHES = [
    {"name": "Makati", "address": "Ayala Ave, Makati City", "phone": "0288881111"},
    {"name": "Quezon City", "address": "Tomas Morato Ave, Quezon City", "phone": "0288882222"},
]

CATALOG = [
    {"name": "Haircut",            "description": "Cut and style",        "duration_minutes": 60,  "price": Decimal("450.00")},
    {"name": "Blow-dry",           "description": "Wash and blow-dry",    "duration_minutes": 30,  "price": Decimal("300.00")},
    {"name": "Hair Color",         "description": "Single process color", "duration_minutes": 120, "price": Decimal("2500.00")},
    {"name": "Keratin Treatment",  "description": "Smoothing treatment",  "duration_minutes": 180, "price": Decimal("4500.00")},
    {"name": "Hair Spa",           "description": "Scalp and hair spa",   "duration_minutes": 60,  "price": Decimal("900.00")},
]

STYLISTS = {
    "Makati": ["Ana Reyes", "Bea Santos", "Carlo Cruz"],
    "Quezon City": ["Dina Lopez", "Eli Ramos"],
}


class Command(BaseCommand):
    help = "Seed or update demo branches, services, stylists and schedules."

    @transaction.atomic
    def handle(self, *args, **options):
        hours = {day: dict(WEEKDAY_HOURS) for day in WEEKDAY_NAMES}
        hours["sunday"] = dict(SUNDAY_CLOSED)

        branches = {}
        for item in BRANCHES:
            branch, _ = Branch.objects.update_or_create(
                name=item["name"],
                defaults={"address": item["address"], "phone": item["phone"], "operating_hours": hours},
            )
            branches[branch.name] = branch

        created = 0
        for item in CATALOG:
            _svc, is_created = Service.objects.update_or_create(
                name=item["name"],
                defaults={
                    "description": item["description"],
                    "duration_minutes": item["duration_minutes"],
                    "price": item["price"],
                    "active": True,
                },
            )
            created += int(is_created)

        stylists = 0
        for branch_name, names in STYLISTS.items():
            branch = branches[branch_name]
            shifts = {}
            for name in names:
                email = name.lower().replace(" ", ".") + "@example.com"
                staff, _ = Staff.objects.update_or_create(
                    email=email,
                    defaults={"name": name, "branch": branch, "role": Staff.ROLE_STYLIST, "is_active": True},
                )
                shifts[str(staff.pk)] = {
                    day: {"start": "10:00", "end": "18:00"} for day in WEEKDAY_NAMES if day != "sunday"
                }
                stylists += 1

            ScheduleConfiguration.objects.update_or_create(
                branch=branch,
                name="Default schedule",
                defaults={"start_date": timezone.localdate().replace(day=1), "shifts": shifts, "is_active": True},
            )

        self.stdout.write(self.style.SUCCESS(
            f"Seed complete. Branches={len(branches)}, new services={created}, stylists={stylists}"
        ))
