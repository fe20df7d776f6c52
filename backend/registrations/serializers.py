from rest_framework import serializers

from users.models import User


class RegistrantSerializer(serializers.Serializer):
    """Registrant fields accepted alongside a confirmed payment.

    Only these fields reach the identity; role, payment and credential fields
    are always set by the issuance service.
    """

    name = serializers.CharField(max_length=100)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, max_length=128, write_only=True, trim_whitespace=False)
    profession = serializers.ChoiceField(choices=User.PROFESSIONS, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    state = serializers.CharField(max_length=100, required=False, allow_blank=True)
    designation = serializers.CharField(max_length=100, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    medical_council_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    profile_image = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def validate_email(self, value):
        return User.objects.normalize_email(value)


class PaymentVerifySerializer(serializers.Serializer):
    order_id = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    payment_id = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    signature = serializers.CharField(max_length=256, required=False, allow_blank=True, default="")
    amount = serializers.IntegerField(min_value=0)
    registrant = RegistrantSerializer()

    def validate(self, attrs):
        if attrs["amount"] > 0:
            missing = [key for key in ("order_id", "payment_id", "signature") if not attrs.get(key)]
            if missing:
                raise serializers.ValidationError({key: "This field is required for paid registrations." for key in missing})
        return attrs


class IssuedRegistrationSerializer(serializers.ModelSerializer):
    qr_code_image = serializers.CharField(source="verification_image", read_only=True)

    class Meta:
        model = User
        fields = ["id", "email", "registration_number", "qr_code_image"]
        read_only_fields = fields
