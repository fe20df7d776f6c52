from __future__ import annotations

from rest_framework import generics, permissions
from rest_framework.exceptions import PermissionDenied

from users.permissions import IsAdmin, IsSelfOrAdmin

from .exceptions import ScanLogAccessDenied
from .serializers import ScanLogSerializer
from .services import list_scan_logs, list_scan_logs_for_identity


class ScanLogListAPIView(generics.ListAPIView):
	serializer_class = ScanLogSerializer
	permission_classes = [permissions.IsAuthenticated, IsAdmin]

	def get_queryset(self):
		return list_scan_logs()


class IdentityScanLogListAPIView(generics.ListAPIView):
	serializer_class = ScanLogSerializer
	permission_classes = [permissions.IsAuthenticated, IsSelfOrAdmin]

	def get_queryset(self):
		try:
			return list_scan_logs_for_identity(self.kwargs["user_id"], self.request.user)
		except ScanLogAccessDenied as exc:
			raise PermissionDenied(str(exc)) from exc
