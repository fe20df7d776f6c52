from __future__ import annotations

from rest_framework import serializers


class ScanRequestSerializer(serializers.Serializer):
    qr_data = serializers.CharField(
        trim_whitespace=False,
        error_messages={
            "required": "QR data is required",
            "blank": "QR data is required",
            "null": "QR data is required",
        },
    )

    def validate_qr_data(self, value):
        if not value.strip():
            raise serializers.ValidationError("QR data is required")
        return value
