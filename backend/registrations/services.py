from __future__ import annotations

import logging
import secrets
import time
import uuid
from typing import Any, Mapping

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from communications.email_service import EmailSendResult
from notifications.services import notify_admins_of_registration
from users.models import User
from users.security import generate_resend_password
from users.selectors import email_exists

from .emails import send_registration_email
from .exceptions import (
    DuplicateEmail,
    DuplicateRegistrationNumber,
    NotificationDeliveryFailed,
    PaymentNotConfirmed,
    RegistrationValidationError,
)
from .payments import PaymentFact
from .tasks import send_registration_email_task
from .tokens import build_token_content, read_verification_image, write_verification_image


logger = logging.getLogger(__name__)

REQUIRED_REGISTRANT_FIELDS = ("name", "email", "password")
REGISTRANT_PROFILE_FIELDS = (
    "name",
    "profession",
    "city",
    "state",
    "designation",
    "phone",
    "medical_council_number",
    "profile_image",
)


def generate_registration_number() -> str:
    """``reg<epoch millis><10 random digits>``.

    Not a counter: concurrent issuances never coordinate, uniqueness is
    enforced by the database constraint.
    """

    random_part = 1_000_000_000 + secrets.randbelow(9_000_000_000)
    return f"reg{int(time.time() * 1000)}{random_part}"


def _classify_integrity_error(*, email: str, registration_number: str, exc: IntegrityError) -> Exception:
    if User.objects.filter(email__iexact=email).exists():
        return DuplicateEmail()
    if User.objects.filter(registration_number=registration_number).exists():
        return DuplicateRegistrationNumber()
    return exc


def _dispatch_registration_email(identity_id: str, password: str) -> None:
    try:
        if getattr(settings, "REGISTRATION_EMAIL_ASYNC", False):
            send_registration_email_task.delay(identity_id, password)
        else:
            send_registration_email_task(identity_id, password)
    except Exception:
        logger.exception("registration.email_dispatch_failed", extra={"identity_id": identity_id})


def _notify_admins(identity: User) -> None:
    try:
        notify_admins_of_registration(identity)
    except Exception:
        logger.exception("registration.admin_notification_failed", extra={"identity_id": str(identity.pk)})


def issue_registration(*, registrant: Mapping[str, Any], payment: PaymentFact) -> User:
    """Create a registrant identity bound to a QR verification token.

    Either the identity is fully created (QR image on disk, row committed) or
    nothing is visible. The confirmation email and the admin notifications run
    after commit and never undo the issuance.
    """

    if not payment.is_confirmed:
        raise PaymentNotConfirmed()

    missing = [field for field in REQUIRED_REGISTRANT_FIELDS if not str(registrant.get(field) or "").strip()]
    if missing:
        raise RegistrationValidationError(f"Missing required fields: {', '.join(missing)}")

    email = User.objects.normalize_email(registrant["email"])
    if email_exists(email):
        raise DuplicateEmail()

    identity_id = uuid.uuid4()
    registration_number = generate_registration_number()
    token = build_token_content(identity_id)
    image_url, _png = write_verification_image(identity_id)

    identity = User(
        id=identity_id,
        email=email,
        registration_number=registration_number,
        registration_date=timezone.now(),
        verification_token=token,
        verification_image=image_url,
        is_verified=True,
        payment_amount=payment.amount_paid,
        payment_reference=payment.reference_id,
        payment_order_id=payment.order_id,
        payment_status=payment.status,
        **{field: registrant[field] for field in REGISTRANT_PROFILE_FIELDS if registrant.get(field) is not None},
    )
    identity.set_password(registrant["password"])

    try:
        with transaction.atomic():
            identity.save(force_insert=True)
    except IntegrityError as exc:
        classified = _classify_integrity_error(email=email, registration_number=registration_number, exc=exc)
        if classified is exc:
            raise
        raise classified from exc

    logger.info(
        "registration.issued",
        extra={
            "identity_id": str(identity_id),
            "registration_number": registration_number,
            "payment_status": payment.status,
        },
    )

    password = registrant["password"]
    transaction.on_commit(lambda: _dispatch_registration_email(str(identity_id), password))
    transaction.on_commit(lambda: _notify_admins(identity))
    return identity


def resend_registration_email(identity: User) -> EmailSendResult:
    """Rotate the password, repair a missing QR image and mail the credentials again.

    The QR content is derived from the existing id, so a repaired image is
    identical to the original. Unlike issuance, a delivery failure is raised.
    """

    password = generate_resend_password(identity.first_name_slug)
    identity.set_password(password)
    identity.verification_token = build_token_content(identity.pk)
    update_fields = ["password", "verification_token", "updated_at"]

    if read_verification_image(identity.pk) is None:
        image_url, _png = write_verification_image(identity.pk)
        identity.verification_image = image_url
        update_fields.append("verification_image")
        logger.info("registration.qrcode_repaired", extra={"identity_id": str(identity.pk)})

    identity.save(update_fields=update_fields)

    result = send_registration_email(identity, password, resent=True)
    if not result.sent:
        raise NotificationDeliveryFailed(result.delivery.error_message or None)

    logger.info("registration.email_resent", extra={"identity_id": str(identity.pk), "delivery_id": result.delivery.id})
    return result
