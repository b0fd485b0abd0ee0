# branches/views.py
#
# Purpose:
# - Branch CRUD (staff-only writes) plus:
#     GET /api/branches/{id}/calendar/?year=&month=   entries + public holidays
#     GET /api/branches/{id}/hours/?date=&stylist=    resolved working window + that day's entries
# - Calendar entry CRUD through branches.services.calendar (activity logged).
#
# Notes:
# - The public-holiday cache belongs to BranchViewSet. It is shared by every
#   request thread and guarded by its own lock. Changing the
#   PUBLIC_HOLIDAY_COUNTRY setting switches the cache's country, which drops
#   every cached year.
#
from django.conf import settings
from django.core.exceptions import ValidationError
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from booking.api_errors import domain_error_response
from booking.models import Staff
from booking.permissions import IsStaffOrReadOnly
from booking.services.availability_engine import AvailabilityEngine
from configmgr.models import SystemSetting
from .models import Branch, BranchCalendarEntry
from .serializers import BranchCalendarEntrySerializer, BranchSerializer, PublicHolidaySerializer
from .services import calendar as calendar_service
from .services.public_holidays import HolidayCache, PublicHolidayProvider


def _holiday_country():
    return SystemSetting.get_value("PUBLIC_HOLIDAY_COUNTRY", settings.PUBLIC_HOLIDAY_COUNTRY)


class BranchViewSet(viewsets.ModelViewSet):
    queryset = Branch.objects.all().order_by("name")
    serializer_class = BranchSerializer
    permission_classes = [IsStaffOrReadOnly]
    holiday_cache = HolidayCache(PublicHolidayProvider(), settings.PUBLIC_HOLIDAY_COUNTRY)
    engine = AvailabilityEngine()

    @action(detail=True, methods=["get"])
    def calendar(self, request, pk=None):
        branch = self.get_object()
        today = timezone.localdate()
        try:
            year = int(request.query_params.get("year") or today.year)
            month = int(request.query_params.get("month") or today.month)
        except ValueError:
            return Response({"detail": "year and month must be numbers."}, status=400)
        if not 1 <= month <= 12:
            return Response({"detail": "month must be between 1 and 12."}, status=400)
        if not 1 <= year <= 9998:
            return Response({"detail": "year must be between 1 and 9998."}, status=400)

        self.holiday_cache.set_country(_holiday_country())
        data = calendar_service.month_calendar(branch, year, month, holiday_cache=self.holiday_cache)
        return Response({
            "branch": data["branch"],
            "year": data["year"],
            "month": data["month"],
            "entries": BranchCalendarEntrySerializer(data["entries"], many=True).data,
            "public_holidays": PublicHolidaySerializer(data["public_holidays"], many=True).data,
            "holidays_error": data["holidays_error"],
        })

    @action(detail=True, methods=["get"])
    def hours(self, request, pk=None):
        branch = self.get_object()
        day = parse_date(request.query_params.get("date") or "") or timezone.localdate()
        stylist = None
        if request.query_params.get("stylist"):
            stylist = get_object_or_404(Staff, pk=request.query_params["stylist"])
        opens, closes, message = self.engine.working_window(branch, day, stylist)
        return Response({
            "date": day.isoformat(),
            "open": opens.strftime("%H:%M") if opens else None,
            "close": closes.strftime("%H:%M") if closes else None,
            "message": message,
            "entries": BranchCalendarEntrySerializer(
                calendar_service.entries_for_date(branch, day), many=True
            ).data,
        })


class BranchCalendarEntryViewSet(viewsets.ModelViewSet):
    """
    GET /api/calendar-entries/?branch=ID[&from=YYYY-MM-DD][&to=YYYY-MM-DD][&upcoming=1]
    """
    serializer_class = BranchCalendarEntrySerializer
    permission_classes = [IsStaffOrReadOnly]

    def get_queryset(self):
        qs = BranchCalendarEntry.objects.select_related("branch").order_by("date", "id")
        params = self.request.query_params
        if params.get("branch"):
            qs = qs.filter(branch_id=params["branch"])
        start = parse_date(params.get("from") or "")
        end = parse_date(params.get("to") or "")
        if params.get("upcoming") in ("1", "true"):
            start = timezone.localdate()
        if start:
            qs = qs.filter(date__gte=start)
        if end:
            qs = qs.filter(date__lte=end)
        return qs

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        branch = fields.pop("branch")
        try:
            entry = calendar_service.create_entry(branch, performed_by=request.user, **fields)
        except ValidationError as e:
            return domain_error_response(e)
        return Response(self.get_serializer(entry).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        entry = self.get_object()
        serializer = self.get_serializer(entry, data=request.data, partial=kwargs.get("partial", False))
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        fields.pop("branch", None)
        try:
            entry = calendar_service.update_entry(entry, performed_by=request.user, **fields)
        except ValidationError as e:
            return domain_error_response(e)
        return Response(self.get_serializer(entry).data)

    def destroy(self, request, *args, **kwargs):
        calendar_service.delete_entry(self.get_object(), performed_by=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
