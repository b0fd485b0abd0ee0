# booking/signals.py
#
# Appointment lifecycle signals. BookingManager sends them from
# transaction.on_commit, so receivers only ever see committed data and a
# rolled-back booking never mails anybody. Receivers live in
# notifications/signals.py.
#
from django.dispatch import Signal

# kwargs: appointment, performed_by
appointment_created = Signal()

# kwargs: appointment, old_status, new_status, reason, performed_by
appointment_status_changed = Signal()

# kwargs: appointment, old_start, new_start, reason, performed_by
appointment_rescheduled = Signal()

# kwargs: appointment, service, old_stylist, new_stylist, performed_by
appointment_transferred = Signal()
