# staff/signals.py
#
# Sent after commit by LendingWorkflow when a lending request is approved,
# rejected or cancelled.
#
from django.dispatch import Signal

# kwargs: lending, decision ("approved" | "rejected" | "cancelled"), performed_by
lending_decided = Signal()
