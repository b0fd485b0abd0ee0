from datetime import date, datetime

from rest_framework import serializers

from branches.models import Branch
from .models import (
    Appointment,
    AppointmentHistory,
    AppointmentService,
    ClientProfile,
    Service,
    Staff,
)

# Longest single booking or availability query, in minutes.
MAX_DURATION_MINUTES = 24 * 60


def _before_last_day(value):
    """Reject the last representable day; its end would overflow datetime."""
    day = value.date() if isinstance(value, datetime) else value
    if day >= date.max:
        raise serializers.ValidationError("Date is out of range.")
    return value


class ClientProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = ClientProfile
        fields = ["id", "name", "email", "phone"]


class ServiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Service
        fields = ["id", "name", "description", "duration_minutes", "price", "active"]


class StaffSerializer(serializers.ModelSerializer):
    branch_name = serializers.CharField(source="branch.name", read_only=True)

    class Meta:
        model = Staff
        fields = ["id", "name", "email", "role", "branch", "branch_name", "is_active"]


class AppointmentServiceSerializer(serializers.ModelSerializer):
    service_name = serializers.CharField(source="service.name", read_only=True)
    stylist_name = serializers.CharField(source="stylist.name", read_only=True, default=None)
    total_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    class Meta:
        model = AppointmentService
        fields = [
            "id",
            "service",
            "service_name",
            "stylist",
            "stylist_name",
            "price",
            "adjustment",
            "adjustment_reason",
            "total_price",
        ]


class AppointmentHistorySerializer(serializers.ModelSerializer):
    performed_by = serializers.CharField(source="performed_by.username", read_only=True, default=None)

    class Meta:
        model = AppointmentHistory
        fields = ["id", "action", "performed_by", "timestamp", "reason", "details"]


class AppointmentSerializer(serializers.ModelSerializer):
    """Read shape of an appointment, services included."""
    client_name = serializers.CharField(source="client_display_name", read_only=True)
    end_time = serializers.DateTimeField(read_only=True)
    services = AppointmentServiceSerializer(source="service_assignments", many=True, read_only=True)

    class Meta:
        model = Appointment
        fields = [
            "id",
            "branch",
            "client",
            "guest_name",
            "client_name",
            "stylist",
            "start_time",
            "end_time",
            "duration_minutes",
            "status",
            "payment_status",
            "notes",
            "cancellation_reason",
            "cancelled_at",
            "services",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


# -------------------------
# Write payloads
# -------------------------
class ServiceLineSerializer(serializers.Serializer):
    service = serializers.PrimaryKeyRelatedField(queryset=Service.objects.all())
    stylist = serializers.PrimaryKeyRelatedField(
        queryset=Staff.objects.filter(role=Staff.ROLE_STYLIST), allow_null=True, required=False
    )
    price = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    adjustment = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, default=0)
    adjustment_reason = serializers.CharField(required=False, allow_blank=True, default="")


class AppointmentCreateSerializer(serializers.Serializer):
    branch = serializers.PrimaryKeyRelatedField(queryset=Branch.objects.all())
    client = serializers.PrimaryKeyRelatedField(
        queryset=ClientProfile.objects.all(), allow_null=True, required=False
    )
    guest_name = serializers.CharField(required=False, allow_blank=True, default="")
    stylist = serializers.PrimaryKeyRelatedField(
        queryset=Staff.objects.filter(role=Staff.ROLE_STYLIST), allow_null=True, required=False
    )
    start_time = serializers.DateTimeField(validators=[_before_last_day])
    duration_minutes = serializers.IntegerField(
        min_value=1, max_value=MAX_DURATION_MINUTES, required=False, allow_null=True
    )
    status = serializers.ChoiceField(
        choices=[Appointment.STATUS_PENDING, Appointment.STATUS_CONFIRMED],
        default=Appointment.STATUS_PENDING,
    )
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    services = ServiceLineSerializer(many=True)

    def validate(self, attrs):
        if attrs.get("client") is None and not (attrs.get("guest_name") or "").strip():
            raise serializers.ValidationError("A registered client or a guest name is required.")
        if not attrs.get("services"):
            raise serializers.ValidationError("At least one service is required.")
        return attrs


class StylistReassignmentSerializer(serializers.Serializer):
    line = serializers.IntegerField()
    stylist = serializers.PrimaryKeyRelatedField(
        queryset=Staff.objects.filter(role=Staff.ROLE_STYLIST), allow_null=True
    )


class AppointmentUpdateSerializer(serializers.Serializer):
    start_time = serializers.DateTimeField(required=False, validators=[_before_last_day])
    duration_minutes = serializers.IntegerField(min_value=1, max_value=MAX_DURATION_MINUTES, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    reschedule_reason = serializers.CharField(required=False, allow_blank=True, default="")
    assignments = StylistReassignmentSerializer(many=True, required=False)


class StatusChangeSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[value for value, _label in Appointment.STATUS_CHOICES])
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class AvailabilityQuerySerializer(serializers.Serializer):
    """GET /api/appointments/availability/?branch=&date=&service=|duration=&stylist="""
    branch = serializers.PrimaryKeyRelatedField(queryset=Branch.objects.all())
    date = serializers.DateField(validators=[_before_last_day])
    service = serializers.PrimaryKeyRelatedField(queryset=Service.objects.all(), required=False)
    duration = serializers.IntegerField(min_value=1, max_value=MAX_DURATION_MINUTES, required=False)
    stylist = serializers.PrimaryKeyRelatedField(queryset=Staff.objects.all(), required=False)


class StylistCheckSerializer(serializers.Serializer):
    """GET /api/appointments/check/?stylist=&start_time=&duration=&exclude="""
    stylist = serializers.PrimaryKeyRelatedField(queryset=Staff.objects.all())
    start_time = serializers.DateTimeField(validators=[_before_last_day])
    duration = serializers.IntegerField(min_value=1, max_value=MAX_DURATION_MINUTES, required=False)
    exclude = serializers.IntegerField(required=False)
