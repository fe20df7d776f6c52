from rest_framework import serializers

from .models import User


class IdentitySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = [
            "id",
            "name",
            "email",
            "role",
            "profession",
            "designation",
            "city",
            "state",
            "phone",
            "profile_image",
            "registration_number",
            "registration_date",
            "payment_amount",
            "payment_status",
            "verification_token",
            "verification_image",
            "certificate_file",
            "certificate_image",
            "is_verified",
        ]
        read_only_fields = fields


class ScannedIdentitySerializer(serializers.ModelSerializer):
    """Subset shown to the gate operator after a valid scan."""

    class Meta:
        model = User
        fields = [
            "id",
            "name",
            "email",
            "designation",
            "city",
            "profile_image",
            "verification_image",
            "certificate_file",
            "certificate_image",
        ]
        read_only_fields = fields
