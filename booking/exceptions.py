"""
Domain errors raised by the booking services.

They subclass ValueError so callers that only care about "the booking was
refused" can keep catching ValueError; views look at the concrete class to
pick the response code and message.
"""


class BookingError(ValueError):
    code = "booking_error"


class SlotUnavailableError(BookingError):
    """A stylist already has an overlapping active appointment."""
    code = "slot_unavailable"


class DuplicateBookingError(BookingError):
    """The same client already booked the same service+stylist at an overlapping time."""
    code = "duplicate_booking"


class RescheduleNotAllowedError(BookingError):
    """The appointment is in service, finished, or already paid."""
    code = "reschedule_not_allowed"


class AppointmentStateError(BookingError):
    """The requested status change is not allowed from the current status."""
    code = "invalid_status_transition"
