from __future__ import annotations

import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from users.models import User
from users.permissions import IsAdmin

from .exceptions import (
    DuplicateEmail,
    DuplicateRegistrationNumber,
    EncodingFailed,
    NotificationDeliveryFailed,
    PaymentNotConfirmed,
    RegistrationValidationError,
)
from .payments import build_payment_fact
from .serializers import IssuedRegistrationSerializer, PaymentVerifySerializer
from .services import issue_registration, resend_registration_email
from .throttles import PaymentVerifyRateThrottle


logger = logging.getLogger(__name__)


class PaymentVerifyAPIView(APIView):
    """Gateway callback: confirm the payment, then issue the registrant's pass."""

    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [PaymentVerifyRateThrottle]

    def post(self, request, format=None):
        serializer = PaymentVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            payment = build_payment_fact(
                amount=data["amount"],
                order_id=data["order_id"],
                payment_id=data["payment_id"],
                signature=data["signature"],
            )
            identity = issue_registration(registrant=data["registrant"], payment=payment)
        except PaymentNotConfirmed as exc:
            logger.warning("registration.payment_rejected", extra={"order_id": data["order_id"]})
            return Response({"detail": exc.message}, status=status.HTTP_400_BAD_REQUEST)
        except (DuplicateEmail, DuplicateRegistrationNumber, RegistrationValidationError) as exc:
            return Response({"detail": exc.message}, status=status.HTTP_400_BAD_REQUEST)
        except EncodingFailed as exc:
            return Response({"detail": exc.message}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response(
            {
                "success": True,
                "detail": "Payment verified & user registered",
                "data": IssuedRegistrationSerializer(identity).data,
            },
            status=status.HTTP_201_CREATED,
        )


class ResendRegistrationEmailAPIView(APIView):
    permission_classes = [IsAdmin]

    def post(self, request, user_id, format=None):
        identity = get_object_or_404(User, pk=user_id)
        try:
            result = resend_registration_email(identity)
        except EncodingFailed as exc:
            return Response({"detail": exc.message}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        except NotificationDeliveryFailed as exc:
            return Response({"detail": exc.message}, status=status.HTTP_502_BAD_GATEWAY)

        return Response(
            {
                "success": True,
                "detail": "Email resent successfully with new credentials",
                "delivery_id": result.delivery.id,
            },
            status=status.HTTP_200_OK,
        )
