# staff/admin.py
from django.contrib import admin

from .models import DateSpecificShift, LendingRequest, ScheduleConfiguration


@admin.register(ScheduleConfiguration)
class ScheduleConfigurationAdmin(admin.ModelAdmin):
    list_display = ("branch", "name", "start_date", "is_active")
    list_filter = ("branch", "is_active")


@admin.register(DateSpecificShift)
class DateSpecificShiftAdmin(admin.ModelAdmin):
    list_display = ("staff", "branch", "date", "start_time", "end_time")
    list_filter = ("branch",)
    search_fields = ("staff__name",)


@admin.register(LendingRequest)
class LendingRequestAdmin(admin.ModelAdmin):
    # Decisions go through the API so activity and notifications are recorded.
    list_display = ("id", "stylist", "from_branch", "to_branch", "start_date", "end_date", "status")
    list_filter = ("status", "from_branch", "to_branch")
    readonly_fields = ("status", "requested_by", "requested_at", "approved_by", "approved_at",
                       "rejected_by", "rejected_at", "cancelled_by", "cancelled_at")
