from django.utils import timezone
from rest_framework import serializers

from booking.models import Staff
from branches.models import WEEKDAY_NAMES, Branch, parse_hhmm
from .models import DateSpecificShift, LendingRequest, ScheduleConfiguration
from .services.lending_workflow import is_lending_in_effect


class ScheduleConfigurationSerializer(serializers.ModelSerializer):
    class Meta:
        model = ScheduleConfiguration
        fields = ["id", "branch", "name", "start_date", "is_active", "shifts", "created_at", "updated_at"]
        read_only_fields = ["created_at", "updated_at"]

    def validate_shifts(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("shifts must map staff ids to weekly shifts.")
        for staff_id, week in value.items():
            if not str(staff_id).isdigit() or not isinstance(week, dict):
                raise serializers.ValidationError(f"Invalid shift block for staff '{staff_id}'.")
            for day, shift in week.items():
                if day.lower() not in WEEKDAY_NAMES:
                    raise serializers.ValidationError(f"Unknown weekday '{day}'.")
                if not shift:
                    continue
                try:
                    start, end = parse_hhmm(shift["start"]), parse_hhmm(shift["end"])
                except (KeyError, TypeError, ValueError):
                    raise serializers.ValidationError(f"Shift for staff {staff_id} on {day} needs start/end as HH:MM.")
                if start >= end:
                    raise serializers.ValidationError(f"Shift for staff {staff_id} on {day} must start before it ends.")
        return value


class DateSpecificShiftSerializer(serializers.ModelSerializer):
    class Meta:
        model = DateSpecificShift
        fields = ["id", "staff", "branch", "date", "start_time", "end_time"]

    def validate(self, attrs):
        start = attrs.get("start_time", getattr(self.instance, "start_time", None))
        end = attrs.get("end_time", getattr(self.instance, "end_time", None))
        if start and end and start >= end:
            raise serializers.ValidationError("Shift must start before it ends.")
        return attrs


class LendingRequestSerializer(serializers.ModelSerializer):
    stylist_name = serializers.CharField(source="stylist.name", read_only=True, default=None)
    from_branch_name = serializers.CharField(source="from_branch.name", read_only=True)
    to_branch_name = serializers.CharField(source="to_branch.name", read_only=True)
    direction = serializers.CharField(read_only=True, default=None)
    in_effect = serializers.SerializerMethodField()

    class Meta:
        model = LendingRequest
        fields = [
            "id",
            "stylist",
            "stylist_name",
            "from_branch",
            "from_branch_name",
            "to_branch",
            "to_branch_name",
            "start_date",
            "end_date",
            "reason",
            "status",
            "direction",
            "in_effect",
            "requested_by",
            "requested_at",
            "approved_by",
            "approved_at",
            "rejected_by",
            "rejected_at",
            "rejection_reason",
            "cancelled_by",
            "cancelled_at",
        ]
        read_only_fields = fields

    def get_in_effect(self, obj):
        """Whether the lending applies today (local date)."""
        return is_lending_in_effect(obj.status, obj.start_date, obj.end_date, timezone.localdate())


class LendingCreateSerializer(serializers.Serializer):
    stylist = serializers.PrimaryKeyRelatedField(queryset=Staff.objects.all(), allow_null=True, required=False)
    from_branch = serializers.PrimaryKeyRelatedField(queryset=Branch.objects.all())
    to_branch = serializers.PrimaryKeyRelatedField(queryset=Branch.objects.all())
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class LendingApproveSerializer(serializers.Serializer):
    stylist = serializers.PrimaryKeyRelatedField(queryset=Staff.objects.all(), allow_null=True, required=False)


class LendingRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")
