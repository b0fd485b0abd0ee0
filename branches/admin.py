from django.contrib import admin

from .models import Branch, BranchCalendarEntry


@admin.register(Branch)
class BranchAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "phone", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name", "address")


@admin.register(BranchCalendarEntry)
class BranchCalendarEntryAdmin(admin.ModelAdmin):
    list_display = ("branch", "date", "title", "entry_type", "status")
    list_filter = ("entry_type", "branch")
    search_fields = ("title", "branch__name")
    date_hierarchy = "date"
