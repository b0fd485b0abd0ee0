# booking/views.py
#
# Purpose:
# - CRUD APIs for Clients, Services, Staff and Appointments.
# - Appointment writes go through BookingManager (duplicate + availability
#   guards, status machine, history, notifications after commit).
# - Availability endpoints backed by AvailabilityEngine:
#     GET /api/appointments/availability/   day slot list
#     GET /api/appointments/check/          point check for one stylist
# - Permissions:
#   * Everything requires a login (REST_FRAMEWORK default).
#   * Service and staff writes are Django-staff only.
#   * Physically deleting an appointment is Django-staff only.
#   * Status changes are Django-staff only; edits and cancellations are
#     staff or the client who owns the booking.
#
import re

from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_date
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from staff.services.lending_workflow import LendingWorkflow
from .api_errors import DOMAIN_ERRORS, domain_error_response
from .models import Appointment, ClientProfile, Service, Staff
from .permissions import IsStaffOrAppointmentOwner, IsStaffOrReadOnly
from .serializers import (
    AppointmentCreateSerializer,
    AppointmentHistorySerializer,
    AppointmentSerializer,
    AppointmentUpdateSerializer,
    AvailabilityQuerySerializer,
    CancelSerializer,
    ClientProfileSerializer,
    ServiceSerializer,
    StaffSerializer,
    StatusChangeSerializer,
    StylistCheckSerializer,
)
from .services.availability_engine import AvailabilityEngine
from .services.booking_manager import BookingManager
from .services.slot_utils import day_bounds

PHONE_RE = re.compile(r"^\d{7,15}$")


class ClientProfileViewSet(viewsets.ModelViewSet):
    queryset = ClientProfile.objects.all().order_by("id")
    serializer_class = ClientProfileSerializer

    def create(self, request, *args, **kwargs):
        """
        Create-or-reuse a ClientProfile.
        - An existing (name, email case-insensitive; phone exact) match is
          returned with 200 instead of creating a duplicate.
        """
        name = (request.data.get("name") or "").strip()
        email = (request.data.get("email") or "").strip()
        phone = (request.data.get("phone") or "").strip()

        if not name or not phone:
            return Response({"detail": "name and phone are required."}, status=400)
        if not PHONE_RE.match(phone):
            return Response({"detail": "Phone must be digits only, 7 to 15 digits."}, status=400)

        existing = ClientProfile.objects.filter(name__iexact=name, email__iexact=email, phone=phone).first()
        if existing:
            return Response(self.get_serializer(existing).data, status=200)

        serializer = self.get_serializer(data={"name": name, "email": email, "phone": phone})
        serializer.is_valid(raise_exception=True)
        self.perform_create(serializer)
        headers = self.get_success_headers(serializer.data)
        return Response(serializer.data, status=201, headers=headers)


class ServiceViewSet(viewsets.ModelViewSet):
    """
    Service catalog:
    - Staff users see every service; everyone else sees active ones only.
    """
    serializer_class = ServiceSerializer
    permission_classes = [IsStaffOrReadOnly]

    def get_queryset(self):
        qs = Service.objects.all().order_by("id")
        if self.request.user.is_staff:
            return qs
        return qs.filter(active=True)


class StaffViewSet(viewsets.ModelViewSet):
    """
    GET /api/staff-members/?branch=ID[&role=stylist][&include_lent=1][&date=YYYY-MM-DD|all]

    include_lent adds stylists lent INTO the branch (on date, today by default,
    or regardless of date with date=all).
    """
    serializer_class = StaffSerializer
    permission_classes = [IsStaffOrReadOnly]
    lending = LendingWorkflow()

    def get_queryset(self):
        qs = Staff.objects.select_related("branch").order_by("name")
        role = self.request.query_params.get("role")
        if role:
            qs = qs.filter(role=role)
        return qs

    def list(self, request, *args, **kwargs):
        qs = self.get_queryset()
        branch_id = request.query_params.get("branch")
        if not branch_id:
            return Response(self.get_serializer(qs, many=True).data)

        members = list(qs.filter(branch_id=branch_id))
        payload = self.get_serializer(members, many=True).data
        if request.query_params.get("include_lent") in ("1", "true", "yes"):
            date_raw = (request.query_params.get("date") or "").strip()
            from branches.models import Branch

            branch = get_object_or_404(Branch, pk=branch_id)
            if date_raw == "all":
                lent = self.lending.stylists_lent_in(branch, on_date=None)
            elif date_raw:
                on_date = parse_date(date_raw)
                if on_date is None:
                    return Response({"detail": "Invalid date format. Use YYYY-MM-DD."}, status=400)
                lent = self.lending.stylists_lent_in(branch, on_date=on_date)
            else:
                lent = self.lending.stylists_lent_in(branch)
            seen = {m.pk for m in members}
            for stylist in lent:
                if stylist.pk in seen:
                    continue
                seen.add(stylist.pk)
                row = dict(self.get_serializer(stylist).data)
                row["lent_in"] = True
                payload.append(row)
        return Response(payload)


class AppointmentViewSet(viewsets.ModelViewSet):
    """
    Endpoints:
    - GET    /api/appointments/?branch=&date=&status=&stylist=
    - POST   /api/appointments/                     create (409 on conflicts)
    - PATCH  /api/appointments/{id}/                reschedule / edit
    - DELETE /api/appointments/{id}/                admin delete
    - POST   /api/appointments/{id}/status/         status machine
    - POST   /api/appointments/{id}/cancel/
    - GET    /api/appointments/{id}/history/
    - GET    /api/appointments/availability/
    - GET    /api/appointments/check/
    """
    serializer_class = AppointmentSerializer
    permission_classes = [IsAuthenticated, IsStaffOrAppointmentOwner]
    manager = BookingManager()
    engine = AvailabilityEngine()

    def get_queryset(self):
        qs = (
            Appointment.objects
            .select_related("branch", "client", "stylist")
            .prefetch_related("service_assignments__service", "service_assignments__stylist")
            .order_by("start_time", "id")
        )
        params = self.request.query_params
        if params.get("branch"):
            qs = qs.filter(branch_id=params["branch"])
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("stylist"):
            stylist_id = params["stylist"]
            qs = qs.filter(Q(stylist_id=stylist_id) | Q(service_assignments__stylist_id=stylist_id)).distinct()
        if params.get("date"):
            day = parse_date(params["date"])
            if day is not None:
                start, end = day_bounds(day)
                qs = qs.filter(start_time__gte=start, start_time__lt=end)
        return qs

    def _detail(self, appointment, code=status.HTTP_200_OK):
        fresh = self.get_queryset().get(pk=appointment.pk)
        return Response(AppointmentSerializer(fresh).data, status=code)

    def create(self, request, *args, **kwargs):
        payload = AppointmentCreateSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data

        try:
            appointment = self.manager.create_appointment(
                branch=data["branch"],
                services=[dict(line) for line in data["services"]],
                start_time=data["start_time"],
                performed_by=request.user,
                client=data.get("client"),
                guest_name=data.get("guest_name", ""),
                stylist=data.get("stylist"),
                duration_minutes=data.get("duration_minutes"),
                status=data["status"],
                notes=data.get("notes", ""),
            )
        except DOMAIN_ERRORS as e:
            return domain_error_response(e)
        return self._detail(appointment, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        appointment = self.get_object()
        payload = AppointmentUpdateSerializer(data=request.data, partial=kwargs.get("partial", False))
        payload.is_valid(raise_exception=True)
        data = payload.validated_data

        assignments = None
        if "assignments" in data:
            assignments = {item["line"]: item["stylist"] for item in data["assignments"]}
        try:
            appointment = self.manager.update_appointment(
                appointment,
                performed_by=request.user,
                start_time=data.get("start_time"),
                duration_minutes=data.get("duration_minutes"),
                assignments=assignments,
                notes=data.get("notes"),
                reschedule_reason=data.get("reschedule_reason", ""),
            )
        except DOMAIN_ERRORS as e:
            return domain_error_response(e)
        return self._detail(appointment)

    def destroy(self, request, *args, **kwargs):
        if not request.user.is_staff:
            raise PermissionDenied("Only administrators can delete appointments.")
        appointment = self.get_object()
        self.manager.delete_appointment(appointment, performed_by=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="status")
    def change_status(self, request, pk=None):
        if not request.user.is_staff:
            raise PermissionDenied("Only staff can change an appointment's status.")
        appointment = self.get_object()
        payload = StatusChangeSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            appointment = self.manager.change_status(
                appointment,
                payload.validated_data["status"],
                performed_by=request.user,
                reason=payload.validated_data["reason"],
            )
        except DOMAIN_ERRORS as e:
            return domain_error_response(e)
        return self._detail(appointment)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        appointment = self.get_object()
        payload = CancelSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            appointment = self.manager.cancel_appointment(
                appointment, performed_by=request.user, reason=payload.validated_data["reason"]
            )
        except DOMAIN_ERRORS as e:
            return domain_error_response(e)
        return self._detail(appointment)

    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        appointment = self.get_object()
        rows = appointment.history.select_related("performed_by")
        return Response(AppointmentHistorySerializer(rows, many=True).data)

    @action(detail=False, methods=["get"], url_path="availability")
    def availability(self, request):
        """
        GET /api/appointments/availability/?branch=ID&date=YYYY-MM-DD&service=ID[&stylist=ID]
        (duration=N may replace service). Past slots are returned disabled, not removed.
        """
        query = AvailabilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data

        duration = data.get("duration")
        if duration is None and data.get("service") is not None:
            duration = data["service"].duration_minutes

        result = self.engine.generate_time_slots(
            data["branch"],
            data["date"],
            service_duration_minutes=duration,
            stylist=data.get("stylist"),
        )
        return Response(result)

    @action(detail=False, methods=["get"], url_path="check")
    def check(self, request):
        query = StylistCheckSerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data
        free = self.engine.is_stylist_free(
            data["stylist"],
            data["start_time"],
            data.get("duration"),
            exclude_appointment_id=data.get("exclude"),
        )
        return Response({"stylist": data["stylist"].pk, "available": free})
