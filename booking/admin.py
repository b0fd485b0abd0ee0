from django.contrib import admin

from .models import Appointment, AppointmentHistory, AppointmentService, ClientProfile, Service, Staff


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "price", "duration_minutes", "active")
    list_filter = ("active",)
    search_fields = ("name",)
    list_editable = ("price", "duration_minutes", "active")


@admin.register(ClientProfile)
class ClientProfileAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "email", "phone")
    search_fields = ("name", "email", "phone")


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "email", "role", "branch", "is_active")
    list_filter = ("role", "branch", "is_active")
    search_fields = ("name", "email")


class AppointmentServiceInline(admin.TabularInline):
    model = AppointmentService
    extra = 0


class AppointmentHistoryInline(admin.TabularInline):
    model = AppointmentHistory
    extra = 0
    can_delete = False
    readonly_fields = ("action", "performed_by", "timestamp", "reason", "details")


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    # Status changes belong to the API so history and notifications stay consistent.
    list_display = ("id", "client_display_name", "branch", "start_time", "duration_minutes", "status", "payment_status")
    list_filter = ("status", "branch", "payment_status")
    search_fields = ("client__name", "guest_name")
    readonly_fields = ("status", "created_at", "updated_at")
    inlines = [AppointmentServiceInline, AppointmentHistoryInline]
