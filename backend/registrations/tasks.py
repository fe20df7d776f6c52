from __future__ import annotations

import logging

from celery import shared_task

from users.models import User

from .emails import send_registration_email


logger = logging.getLogger(__name__)


@shared_task
def send_registration_email_task(identity_id: str, password: str) -> bool:
    identity = User.objects.filter(pk=identity_id).first()
    if identity is None:
        logger.warning("registration.email_skipped", extra={"identity_id": identity_id, "reason": "missing identity"})
        return False

    result = send_registration_email(identity, password)
    if not result.sent:
        logger.warning(
            "registration.email_not_sent",
            extra={
                "identity_id": identity_id,
                "delivery_id": result.delivery.id,
                "status": result.delivery.status,
            },
        )
    return result.sent
