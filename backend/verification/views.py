from __future__ import annotations

from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from users.permissions import IsScanOperator
from users.serializers import ScannedIdentitySerializer

from .serializers import ScanRequestSerializer
from .services import verify_scan


class ScanAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsScanOperator]

    def post(self, request, format=None):
        serializer = ScanRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"detail": "QR data is required"}, status=status.HTTP_400_BAD_REQUEST)

        result = verify_scan(raw_token=serializer.validated_data["qr_data"], operator=request.user)
        return Response(
            {
                "success": True,
                "is_valid": result.is_valid,
                "outcome": result.outcome,
                "message": result.detail,
                "user": ScannedIdentitySerializer(result.identity).data if result.identity else None,
                "certificate_error": result.certificate_error,
                "audit_error": result.audit_error,
            },
            status=status.HTTP_200_OK,
        )
