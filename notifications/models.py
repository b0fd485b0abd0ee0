# notifications/models.py
#
# Purpose:
# - Notification: record of every message sent to a client or staff member
#   (appointment lifecycle, lending decisions, reminders).
# - ActivityLog: append-only audit trail of who did what, per branch.
#
# Design:
# - Notification keeps the recipient email as sent, plus optional links to the
#   client/staff record it was addressed to.
# - 'sent' records the delivery attempt result.
#
from django.conf import settings
from django.db import models


class Notification(models.Model):
    kind = models.CharField(max_length=50)
    recipient_email = models.EmailField(blank=True)
    client = models.ForeignKey(
        "booking.ClientProfile",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
    )
    staff = models.ForeignKey(
        "booking.Staff",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
    )
    subject = models.CharField(max_length=200)
    message = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)
    sent = models.BooleanField(default=False)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        label = self.recipient_email or "recipient"
        return f"{self.kind} to {label}"


class ActivityLog(models.Model):
    action = models.CharField(max_length=100, db_index=True)
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    branch = models.ForeignKey(
        "branches.Branch",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="activity",
    )
    target_type = models.CharField(max_length=50, blank=True)
    target_id = models.CharField(max_length=64, blank=True)
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.action} ({self.target_type} {self.target_id})"
