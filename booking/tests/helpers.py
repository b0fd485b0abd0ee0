# booking/tests/helpers.py
#
# Small builders shared by the test modules.
#
from datetime import date, time
from decimal import Decimal

from booking.models import Appointment, AppointmentService, ClientProfile, Service, Staff
from booking.services.slot_utils import at_time
from branches.models import WEEKDAY_NAMES, Branch

# 2030-01-07 is a Monday.
MONDAY = date(2030, 1, 7)
SUNDAY = date(2030, 1, 13)


def weekday_hours(open_="09:00", close="17:00", closed_days=("sunday",)):
    hours = {}
    for day in WEEKDAY_NAMES:
        if day in closed_days:
            hours[day] = {"isOpen": False}
        else:
            hours[day] = {"open": open_, "close": close, "isOpen": True}
    return hours


def make_branch(name="Main", **kwargs):
    kwargs.setdefault("operating_hours", weekday_hours())
    return Branch.objects.create(name=name, **kwargs)


def make_stylist(branch, name="Ana", email=None, role=Staff.ROLE_STYLIST):
    return Staff.objects.create(
        branch=branch,
        name=name,
        email=email or f"{name.lower().replace(' ', '.')}@example.com",
        role=role,
    )


def make_service(name="Haircut", duration=60, price="450.00"):
    return Service.objects.create(name=name, duration_minutes=duration, price=Decimal(price))


def make_client(name="Maria Clara", email="maria@example.com", phone="09171234567"):
    return ClientProfile.objects.create(name=name, email=email, phone=phone)


def at(day, hhmm):
    h, m = hhmm.split(":")
    return at_time(day, time(int(h), int(m)))


def book(branch, start, duration=60, stylist=None, legacy_stylist=None, service=None,
         status=Appointment.STATUS_CONFIRMED, client=None):
    """Write an appointment directly, bypassing BookingManager's guards."""
    appointment = Appointment.objects.create(
        branch=branch,
        client=client,
        guest_name="" if client else "Walk-in",
        stylist=legacy_stylist,
        start_time=start,
        duration_minutes=duration,
        status=status,
    )
    if service is not None or stylist is not None:
        AppointmentService.objects.create(
            appointment=appointment,
            service=service or make_service(name=f"Svc {appointment.pk}"),
            stylist=stylist,
        )
    return appointment
