from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass

from django.conf import settings

from users.models import User

from .exceptions import PaymentNotConfirmed


FREE_PAYMENT_REFERENCE = "FREE_PAYMENT"
FREE_ORDER_REFERENCE = "FREE_REGISTRATION"


@dataclass(frozen=True)
class PaymentFact:
    amount_paid: int
    reference_id: str
    status: str
    order_id: str = ""

    @property
    def is_confirmed(self) -> bool:
        return self.status in User.SETTLED_PAYMENT_STATUSES


def expected_signature(order_id: str, payment_id: str, secret: str | None = None) -> str:
    key = secret if secret is not None else str(getattr(settings, "PAYMENT_GATEWAY_KEY_SECRET", "") or "")
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(key.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(*, order_id: str, payment_id: str, signature: str) -> bool:
    secret = str(getattr(settings, "PAYMENT_GATEWAY_KEY_SECRET", "") or "")
    if not secret or not signature:
        return False
    return hmac.compare_digest(expected_signature(order_id, payment_id, secret), signature)


def build_payment_fact(*, amount: int, order_id: str = "", payment_id: str = "", signature: str = "") -> PaymentFact:
    """Turn a gateway callback into a settled payment fact.

    Zero-amount registrations skip the signature check and become ``free``.
    Anything else must carry a valid gateway signature.
    """

    if amount < 0:
        raise PaymentNotConfirmed("Invalid payment amount")
    if amount == 0:
        return PaymentFact(
            amount_paid=0,
            reference_id=FREE_PAYMENT_REFERENCE,
            status=User.PAYMENT_FREE,
            order_id=FREE_ORDER_REFERENCE,
        )
    if not verify_signature(order_id=order_id, payment_id=payment_id, signature=signature):
        raise PaymentNotConfirmed()
    return PaymentFact(
        amount_paid=amount,
        reference_id=payment_id,
        status=User.PAYMENT_PAID,
        order_id=order_id,
    )
