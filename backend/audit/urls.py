from django.urls import path

from .views import IdentityScanLogListAPIView, ScanLogListAPIView

urlpatterns = [
    path("scan/logs/", ScanLogListAPIView.as_view(), name="scan-log-list"),
    path("scan/logs/<uuid:user_id>/", IdentityScanLogListAPIView.as_view(), name="scan-log-identity"),
]
