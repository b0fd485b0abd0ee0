# reports/views.py
#
# GET /api/reports/summary?branch=ID&from=YYYY-MM-DD&to=YYYY-MM-DD
#
# Appointment statistics for one branch (or every branch) over a local-date
# range, defaulting to the last 30 days.
#
from datetime import timedelta

from django.db.models import Count
from django.db.models.functions import TruncDate
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework.response import Response
from rest_framework.views import APIView

from booking.models import Appointment, AppointmentService
from booking.permissions import IsStaffOnly
from booking.services.slot_utils import day_bounds


class ReportsView(APIView):
    """
    Returns JSON with:
    - total: number of appointments in range
    - by_status: {"pending": N, "confirmed": N, ...} (every status present)
    - appointments_per_day: [{"day": "YYYY-MM-DD", "count": N}, ...]
    - cancellations_per_day: [{"day": "YYYY-MM-DD", "count": N}, ...]
    - top_services: [{"service_id": X, "service_name": "...", "count": N}, ...] (top 5)

    Only accessible by staff users.
    """
    permission_classes = [IsStaffOnly]

    def get(self, request):
        today = timezone.localdate()
        start_day = parse_date(request.query_params.get("from") or "") or today - timedelta(days=30)
        end_day = parse_date(request.query_params.get("to") or "") or today
        if start_day > end_day:
            return Response({"detail": "'from' must be on or before 'to'."}, status=400)

        range_start, _ = day_bounds(start_day)
        _, range_end = day_bounds(end_day)
        appointments = Appointment.objects.filter(start_time__gte=range_start, start_time__lt=range_end)
        branch_id = request.query_params.get("branch")
        if branch_id:
            appointments = appointments.filter(branch_id=branch_id)

        by_status = {value: 0 for value, _label in Appointment.STATUS_CHOICES}
        for row in appointments.values("status").annotate(count=Count("id")):
            by_status[row["status"]] = row["count"]

        tz = timezone.get_current_timezone()

        def per_day(qs):
            rows = (
                qs.annotate(day=TruncDate("start_time", tzinfo=tz))
                .values("day")
                .annotate(count=Count("id"))
                .order_by("day")
            )
            return [{"day": row["day"].isoformat(), "count": row["count"]} for row in rows]

        top_services = (
            AppointmentService.objects.filter(appointment__in=appointments)
            .values("service", "service__name")
            .annotate(count=Count("id"))
            .order_by("-count", "service")[:5]
        )

        return Response({
            "branch": int(branch_id) if branch_id and branch_id.isdigit() else None,
            "from": start_day.isoformat(),
            "to": end_day.isoformat(),
            "total": sum(by_status.values()),
            "by_status": by_status,
            "appointments_per_day": per_day(appointments),
            "cancellations_per_day": per_day(appointments.filter(status=Appointment.STATUS_CANCELLED)),
            "top_services": [
                {"service_id": row["service"], "service_name": row["service__name"], "count": row["count"]}
                for row in top_services
            ],
        })
