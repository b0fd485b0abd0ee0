# staff/views.py
#
# Purpose:
# - Schedule configurations and date-specific shifts (staff-only writes).
# - Stylist lending API:
#     GET  /api/staff/lendings/?branch=ID              requests tagged incoming/outgoing
#     POST /api/staff/lendings/                        request a stylist
#     POST /api/staff/lendings/{id}/approve|reject|cancel/
#     GET  /api/staff/lendings/active/?branch=ID&direction=in|out[&date=YYYY-MM-DD|all]
# - Lending reads need a login; every lending write is Django-staff only.
#
from django.core.exceptions import ValidationError
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_date
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from booking.api_errors import DOMAIN_ERRORS, domain_error_response
from booking.models import Staff
from booking.permissions import IsStaffOrReadOnly
from branches.models import Branch
from .models import DateSpecificShift, LendingRequest, ScheduleConfiguration
from .serializers import (
    DateSpecificShiftSerializer,
    LendingApproveSerializer,
    LendingCreateSerializer,
    LendingRejectSerializer,
    LendingRequestSerializer,
    ScheduleConfigurationSerializer,
)
from .services import schedules
from .services.lending_workflow import LendingWorkflow


class ScheduleConfigurationViewSet(viewsets.ModelViewSet):
    serializer_class = ScheduleConfigurationSerializer
    permission_classes = [IsStaffOrReadOnly]

    def get_queryset(self):
        qs = ScheduleConfiguration.objects.all().order_by("branch_id", "-start_date")
        branch_id = self.request.query_params.get("branch")
        if branch_id:
            qs = qs.filter(branch_id=branch_id)
        return qs

    @action(detail=False, methods=["get"])
    def shift(self, request):
        """GET /api/staff/schedules/shift/?stylist=ID&date=YYYY-MM-DD[&branch=ID]"""
        stylist = get_object_or_404(Staff, pk=request.query_params.get("stylist"))
        day = parse_date(request.query_params.get("date") or "")
        if day is None:
            return Response({"detail": "Invalid date format. Use YYYY-MM-DD."}, status=400)
        branch = stylist.branch
        if request.query_params.get("branch"):
            branch = get_object_or_404(Branch, pk=request.query_params["branch"])

        window = schedules.shift_for(stylist, branch, day)
        config = schedules.applicable_configuration(branch, day)
        return Response({
            "stylist": stylist.pk,
            "date": day.isoformat(),
            "schedule": config.pk if config else None,
            "start": window[0].strftime("%H:%M") if window else None,
            "end": window[1].strftime("%H:%M") if window else None,
            "weekly": schedules.weekly_shifts_for(stylist, branch, day),
        })


class DateSpecificShiftViewSet(viewsets.ModelViewSet):
    serializer_class = DateSpecificShiftSerializer
    permission_classes = [IsStaffOrReadOnly]

    def get_queryset(self):
        qs = DateSpecificShift.objects.select_related("staff").order_by("date", "staff_id")
        params = self.request.query_params
        if params.get("staff"):
            qs = qs.filter(staff_id=params["staff"])
        if params.get("branch"):
            qs = qs.filter(branch_id=params["branch"])
        return qs


class LendingRequestViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Lending requests are created and moved only through LendingWorkflow;
    there is no generic update or delete.
    """
    serializer_class = LendingRequestSerializer
    permission_classes = [IsStaffOrReadOnly]
    workflow = LendingWorkflow()

    def get_queryset(self):
        return LendingRequest.objects.select_related("stylist", "from_branch", "to_branch")

    def list(self, request, *args, **kwargs):
        branch_id = request.query_params.get("branch")
        if branch_id:
            branch = get_object_or_404(Branch, pk=branch_id)
            rows = self.workflow.lending_requests_for_branch(branch)
        else:
            rows = self.get_queryset().order_by("-requested_at", "-id")
        return Response(self.get_serializer(rows, many=True).data)

    def create(self, request, *args, **kwargs):
        payload = LendingCreateSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data
        try:
            lending = self.workflow.request_lending(
                data.get("stylist"),
                data["from_branch"],
                data["to_branch"],
                data["start_date"],
                data["end_date"],
                reason=data["reason"],
                requester=request.user,
            )
        except DOMAIN_ERRORS as e:
            return domain_error_response(e)
        return Response(self.get_serializer(lending).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        payload = LendingApproveSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            lending = self.workflow.approve_lending(
                self.get_object(), approver=request.user, stylist_override=payload.validated_data.get("stylist")
            )
        except DOMAIN_ERRORS as e:
            return domain_error_response(e)
        return Response(self.get_serializer(lending).data)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        payload = LendingRejectSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            lending = self.workflow.reject_lending(
                self.get_object(), reason=payload.validated_data["reason"], approver=request.user
            )
        except DOMAIN_ERRORS as e:
            return domain_error_response(e)
        return Response(self.get_serializer(lending).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        try:
            lending = self.workflow.cancel_lending(self.get_object(), actor=request.user)
        except DOMAIN_ERRORS as e:
            return domain_error_response(e)
        return Response(self.get_serializer(lending).data)

    @action(detail=False, methods=["get"])
    def active(self, request):
        branch = get_object_or_404(Branch, pk=request.query_params.get("branch"))
        direction = request.query_params.get("direction", "in")
        date_raw = (request.query_params.get("date") or "").strip()

        kwargs = {}
        if date_raw == "all":
            kwargs["on_date"] = None
        elif date_raw:
            on_date = parse_date(date_raw)
            if on_date is None:
                return domain_error_response(ValidationError("Invalid date format. Use YYYY-MM-DD."))
            kwargs["on_date"] = on_date

        if direction == "out":
            rows = self.workflow.active_lendings_out_of(branch, **kwargs)
        else:
            rows = self.workflow.active_lendings_into(branch, **kwargs)
        return Response(self.get_serializer(rows, many=True).data)
