from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import DateSpecificShiftViewSet, LendingRequestViewSet, ScheduleConfigurationViewSet

router = DefaultRouter()
router.register(r"schedules", ScheduleConfigurationViewSet, basename="schedule")
router.register(r"shifts", DateSpecificShiftViewSet, basename="date-shift")
router.register(r"lendings", LendingRequestViewSet, basename="lending")

urlpatterns = [path("", include(router.urls))]
