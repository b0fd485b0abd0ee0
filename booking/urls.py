# booking/urls.py
#
# REST API endpoints for the booking app, registered on a DRF router and
# mounted under /api/ by salon_system/urls.py.
#
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    AppointmentViewSet,
    ClientProfileViewSet,
    ServiceViewSet,
    StaffViewSet,
)

router = DefaultRouter()
router.register(r"clients", ClientProfileViewSet, basename="client")
router.register(r"services", ServiceViewSet, basename="service")
router.register(r"staff-members", StaffViewSet, basename="staff-member")
router.register(r"appointments", AppointmentViewSet, basename="appointment")

urlpatterns = [
    path("", include(router.urls)),
]
