from django.urls import path

from .views import PaymentVerifyAPIView, ResendRegistrationEmailAPIView

urlpatterns = [
    path("payments/verify/", PaymentVerifyAPIView.as_view(), name="payment-verify"),
    path("users/<uuid:user_id>/resend-email/", ResendRegistrationEmailAPIView.as_view(), name="user-resend-email"),
]
