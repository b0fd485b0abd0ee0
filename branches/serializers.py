from rest_framework import serializers

from .models import WEEKDAY_NAMES, Branch, BranchCalendarEntry, parse_hhmm


class BranchSerializer(serializers.ModelSerializer):
    class Meta:
        model = Branch
        fields = ["id", "name", "address", "phone", "is_active", "operating_hours"]

    def validate_operating_hours(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("operating_hours must be an object keyed by weekday.")
        cleaned = {}
        for day, hours in value.items():
            day = str(day).lower()
            if day not in WEEKDAY_NAMES:
                raise serializers.ValidationError(f"Unknown weekday '{day}'.")
            if not isinstance(hours, dict):
                raise serializers.ValidationError(f"Hours for {day} must be an object.")
            if Branch.is_open_record(hours):
                try:
                    opens, closes = parse_hhmm(hours["open"]), parse_hhmm(hours["close"])
                except (KeyError, TypeError, ValueError):
                    raise serializers.ValidationError(f"{day} needs open and close times as HH:MM.")
                if opens >= closes:
                    raise serializers.ValidationError(f"{day} must open before it closes.")
            cleaned[day] = hours
        return cleaned


class BranchCalendarEntrySerializer(serializers.ModelSerializer):
    closes_branch = serializers.BooleanField(read_only=True)

    class Meta:
        model = BranchCalendarEntry
        fields = [
            "id",
            "branch",
            "date",
            "title",
            "description",
            "entry_type",
            "special_open",
            "special_close",
            "status",
            "closes_branch",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["status", "created_by", "created_at", "updated_at"]


class PublicHolidaySerializer(serializers.Serializer):
    date = serializers.DateField()
    name = serializers.CharField()
    local_name = serializers.CharField(allow_blank=True)
    country_code = serializers.CharField()
