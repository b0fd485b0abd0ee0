"""
lending_workflow.py
-------------------
Cross-branch stylist lending.

States:
    pending -> approved | rejected
    pending | approved -> cancelled

- Only real workflow states are stored. Whether a lending is in effect on a
  given day is decided by is_lending_in_effect(): the active-lending queries
  narrow candidates in SQL and keep only the rows it accepts, and the API
  reports it as "in_effect". Rows with the old stored value "active" are
  read like "approved".
- A named stylist cannot hold two approved lendings with overlapping dates.
  The guard runs when the request is made and again at approval.
- Approving after the end date is allowed; such a lending is simply never
  in effect.
- Activity is logged against the branch acting: the requesting (to) branch
  for requests, the providing (from) branch for decisions.
"""

import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from notifications.activity import log_activity
from .. import signals
from ..exceptions import LendingConflictError, LendingStateError
from ..models import LendingRequest

logger = logging.getLogger(__name__)

# Marker for "use today's local date"; None means "any date".
_TODAY = object()


def is_lending_in_effect(status, start_date, end_date, on_date) -> bool:
    """True when a lending with this status and date range applies on on_date."""
    if status not in LendingRequest.IN_EFFECT_STATUSES:
        return False
    if start_date is None or end_date is None:
        return False
    return start_date <= on_date <= end_date


def _resolve_date(on_date):
    if on_date is _TODAY:
        return timezone.localdate()
    return on_date


def _user_or_none(user):
    return user if getattr(user, "is_authenticated", False) else None


class LendingWorkflow:
    # -------------------------
    # guards
    # -------------------------
    def _check_stylist(self, stylist, from_branch):
        if not stylist.is_stylist:
            raise ValidationError(f"{stylist.name} is not a stylist and cannot be lent.")
        if stylist.branch_id != from_branch.pk:
            raise ValidationError(f"{stylist.name} does not work at {from_branch.name}.")

    def _ensure_not_double_lent(self, stylist, start_date, end_date, exclude_id=None):
        clash = LendingRequest.objects.filter(
            stylist=stylist,
            status__in=LendingRequest.IN_EFFECT_STATUSES,
            start_date__lte=end_date,
            end_date__gte=start_date,
        )
        if exclude_id is not None:
            clash = clash.exclude(pk=exclude_id)
        other = clash.order_by("start_date").first()
        if other is not None:
            raise LendingConflictError(
                f"{stylist.name} is already lent to {other.to_branch.name} "
                f"from {other.start_date} to {other.end_date}."
            )

    def _lock(self, lending):
        return LendingRequest.objects.select_for_update().get(pk=lending.pk)

    # -------------------------
    # transitions
    # -------------------------
    @transaction.atomic
    def request_lending(self, stylist, from_branch, to_branch, start_date, end_date, reason="", requester=None):
        """
        Ask from_branch to lend a stylist to to_branch for [start_date, end_date].

        stylist may be None to let the providing branch choose at approval.
        """
        if from_branch is None or to_branch is None:
            raise ValidationError("Both the providing and the requesting branch are required.")
        if from_branch.pk == to_branch.pk:
            raise ValidationError("A branch cannot borrow its own stylist.")
        if start_date is None or end_date is None:
            raise ValidationError("Start and end dates are required.")
        if start_date > end_date:
            raise ValidationError("The lending must start on or before its end date.")
        if stylist is not None:
            self._check_stylist(stylist, from_branch)
            self._ensure_not_double_lent(stylist, start_date, end_date)

        lending = LendingRequest.objects.create(
            stylist=stylist,
            from_branch=from_branch,
            to_branch=to_branch,
            start_date=start_date,
            end_date=end_date,
            reason=reason or "",
            requested_by=_user_or_none(requester),
        )
        log_activity(
            "stylist_lending_requested",
            performed_by=requester,
            branch=to_branch,
            target_type="lending_request",
            target_id=lending.pk,
            details={
                "stylist_id": stylist.pk if stylist else None,
                "from_branch_id": from_branch.pk,
                "to_branch_id": to_branch.pk,
                "start_date": start_date,
                "end_date": end_date,
            },
        )
        logger.info("Lending request %s: %s -> %s", lending.pk, from_branch.pk, to_branch.pk)
        return lending

    @transaction.atomic
    def approve_lending(self, lending, approver=None, stylist_override=None):
        lending = self._lock(lending)
        if lending.status != LendingRequest.STATUS_PENDING:
            raise LendingStateError(f"Only pending requests can be approved (this one is {lending.status}).")

        if stylist_override is not None:
            self._check_stylist(stylist_override, lending.from_branch)
            lending.stylist = stylist_override
        if lending.stylist is not None:
            self._ensure_not_double_lent(lending.stylist, lending.start_date, lending.end_date, exclude_id=lending.pk)

        lending.status = LendingRequest.STATUS_APPROVED
        lending.approved_by = _user_or_none(approver)
        lending.approved_at = timezone.now()
        lending.save()

        log_activity(
            "stylist_lending_approved",
            performed_by=approver,
            branch=lending.from_branch,
            target_type="lending_request",
            target_id=lending.pk,
            details={
                "stylist_id": lending.stylist_id,
                "from_branch_id": lending.from_branch_id,
                "to_branch_id": lending.to_branch_id,
            },
        )
        self._announce(lending, LendingRequest.STATUS_APPROVED, approver)
        return lending

    @transaction.atomic
    def reject_lending(self, lending, reason="", approver=None):
        lending = self._lock(lending)
        if lending.status != LendingRequest.STATUS_PENDING:
            raise LendingStateError(f"Only pending requests can be rejected (this one is {lending.status}).")

        lending.status = LendingRequest.STATUS_REJECTED
        lending.rejection_reason = reason or ""
        lending.rejected_by = _user_or_none(approver)
        lending.rejected_at = timezone.now()
        lending.save()

        log_activity(
            "stylist_lending_rejected",
            performed_by=approver,
            branch=lending.from_branch,
            target_type="lending_request",
            target_id=lending.pk,
            details={"reason": reason or ""},
        )
        self._announce(lending, LendingRequest.STATUS_REJECTED, approver)
        return lending

    @transaction.atomic
    def cancel_lending(self, lending, actor=None):
        lending = self._lock(lending)
        if lending.status not in (
            LendingRequest.STATUS_PENDING,
            LendingRequest.STATUS_APPROVED,
            LendingRequest.STATUS_LEGACY_ACTIVE,
        ):
            raise LendingStateError(f"A {lending.status} request cannot be cancelled.")

        lending.status = LendingRequest.STATUS_CANCELLED
        lending.cancelled_by = _user_or_none(actor)
        lending.cancelled_at = timezone.now()
        lending.save()

        log_activity(
            "stylist_lending_cancelled",
            performed_by=actor,
            branch=lending.to_branch,
            target_type="lending_request",
            target_id=lending.pk,
        )
        self._announce(lending, LendingRequest.STATUS_CANCELLED, actor)
        return lending

    def _announce(self, lending, decision, performed_by):
        transaction.on_commit(lambda: signals.lending_decided.send(
            sender=LendingRequest, lending=lending, decision=decision, performed_by=performed_by,
        ))

    # -------------------------
    # derived queries
    # -------------------------
    def _in_effect(self, on_date, **filters):
        on_date = _resolve_date(on_date)
        qs = LendingRequest.objects.filter(status__in=LendingRequest.IN_EFFECT_STATUSES, **filters)
        if on_date is not None:
            qs = qs.filter(start_date__lte=on_date, end_date__gte=on_date)
        rows = qs.select_related("stylist", "from_branch", "to_branch").order_by("start_date", "id")
        if on_date is None:
            return list(rows)
        return [
            lending for lending in rows
            if is_lending_in_effect(lending.status, lending.start_date, lending.end_date, on_date)
        ]

    def active_lendings_into(self, branch, on_date=_TODAY):
        """Approved lendings bringing stylists into branch (on_date=None: any date)."""
        return self._in_effect(on_date, to_branch=branch)

    def active_lendings_out_of(self, branch, on_date=_TODAY):
        """Approved lendings sending branch's stylists elsewhere (on_date=None: any date)."""
        return self._in_effect(on_date, from_branch=branch)

    def active_lending_for_stylist(self, stylist, on_date=_TODAY):
        rows = self._in_effect(on_date, stylist=stylist)
        return rows[0] if rows else None

    def lending_requests_for_branch(self, branch):
        """
        Every request the branch takes part in, newest first, each tagged with
        .direction: "incoming" when the branch provides the stylist,
        "outgoing" when it asked for one.
        """
        requests = list(
            LendingRequest.objects
            .filter(Q(from_branch=branch) | Q(to_branch=branch))
            .select_related("stylist", "from_branch", "to_branch")
            .order_by("-requested_at", "-id")
        )
        for lending in requests:
            lending.direction = "incoming" if lending.from_branch_id == branch.pk else "outgoing"
        return requests

    def stylists_lent_in(self, branch, on_date=_TODAY):
        """Staff currently lent into branch, for staff listings."""
        return [lending.stylist for lending in self.active_lendings_into(branch, on_date) if lending.stylist_id]
