from __future__ import annotations

from rest_framework import serializers

from .models import ScanLog


class ScanLogSerializer(serializers.ModelSerializer):
	identity_name = serializers.CharField(source="identity.name", read_only=True, default=None)
	identity_email = serializers.CharField(source="identity.email", read_only=True, default=None)
	operator_email = serializers.CharField(source="operator.email", read_only=True)
	operator_role = serializers.CharField(source="operator.role", read_only=True)

	class Meta:
		model = ScanLog
		fields = [
			"id",
			"created_at",
			"identity",
			"identity_name",
			"identity_email",
			"operator",
			"operator_email",
			"operator_role",
			"raw_token",
			"is_valid",
			"outcome",
			"detail",
		]
		read_only_fields = fields
