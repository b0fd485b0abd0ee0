# booking/api_errors.py
#
# Maps domain errors onto HTTP responses for every app's views:
#   ValidationError                       -> 400
#   SlotUnavailableError, DuplicateBookingError,
#   LendingConflictError                  -> 409 (with "code")
#   other BookingError / LendingError     -> 400 (with "code")
# Only the human-readable message goes to the client; details stay in the log.
#
import logging

from django.core.exceptions import ValidationError
from rest_framework import status
from rest_framework.response import Response

from staff.exceptions import LendingConflictError, LendingError
from .exceptions import BookingError, DuplicateBookingError, SlotUnavailableError

logger = logging.getLogger(__name__)

CONFLICT_ERRORS = (SlotUnavailableError, DuplicateBookingError, LendingConflictError)


def validation_messages(exc: ValidationError) -> str:
    return " ".join(exc.messages)


def domain_error_response(exc) -> Response:
    if isinstance(exc, ValidationError):
        return Response({"detail": validation_messages(exc)}, status=status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, CONFLICT_ERRORS):
        logger.info("Request refused (%s): %s", exc.code, exc)
        return Response({"detail": str(exc), "code": exc.code}, status=status.HTTP_409_CONFLICT)

    if isinstance(exc, (BookingError, LendingError)):
        logger.info("Request refused (%s): %s", exc.code, exc)
        return Response({"detail": str(exc), "code": exc.code}, status=status.HTTP_400_BAD_REQUEST)

    raise exc


DOMAIN_ERRORS = (ValidationError, BookingError, LendingError)
