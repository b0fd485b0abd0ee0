# salon_system/urls.py
#
# Purpose:
# - Project URL router. Every JSON API lives under /api/.
#
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include("booking.urls")),
    path("api/", include("branches.urls")),
    path("api/staff/", include("staff.urls")),
    path("api/reports/", include("reports.urls")),
]
