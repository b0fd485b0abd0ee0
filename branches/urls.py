from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import BranchCalendarEntryViewSet, BranchViewSet

router = DefaultRouter()
router.register(r"branches", BranchViewSet, basename="branch")
router.register(r"calendar-entries", BranchCalendarEntryViewSet, basename="calendar-entry")

urlpatterns = [path("", include(router.urls))]
