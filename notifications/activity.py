# notifications/activity.py
#
# Fire-and-forget activity logging. A failure here is logged and swallowed:
# the operation that triggered it has already done its real work.
#
import json
import logging

from django.core.serializers.json import DjangoJSONEncoder
from django.db import DatabaseError, transaction

from .models import ActivityLog

logger = logging.getLogger(__name__)


def _jsonable(details):
    # Dates, Decimals and UUIDs go through Django's encoder.
    return json.loads(json.dumps(details or {}, cls=DjangoJSONEncoder))


def log_activity(action, performed_by=None, branch=None, target_type="", target_id="", details=None):
    """
    Append an ActivityLog row.

    Runs inside its own savepoint so a failed insert cannot break the
    surrounding transaction. Returns the row, or None when logging failed.
    """
    user = performed_by if getattr(performed_by, "is_authenticated", False) else None
    try:
        with transaction.atomic():
            return ActivityLog.objects.create(
                action=action,
                performed_by=user,
                branch=branch,
                target_type=target_type,
                target_id="" if target_id is None else str(target_id),
                details=_jsonable(details),
            )
    except (DatabaseError, TypeError, ValueError):
        logger.exception("Activity log write failed for action=%s target=%s:%s", action, target_type, target_id)
        return None
