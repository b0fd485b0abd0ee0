from django.contrib import admin

from notifications.models import ActivityLog, Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("kind", "recipient_email", "subject", "sent", "created_at")
    list_filter = ("kind", "sent", "created_at")
    search_fields = ("recipient_email", "subject", "message")


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ("action", "branch", "performed_by", "target_type", "target_id", "created_at")
    list_filter = ("action", "branch")
    search_fields = ("action", "target_id")
    readonly_fields = ("action", "performed_by", "branch", "target_type", "target_id", "details", "created_at")
