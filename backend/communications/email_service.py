from __future__ import annotations

import logging
from dataclasses import dataclass
from email.mime.image import MIMEImage
from typing import Iterable, Optional, Sequence, Tuple

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.db import IntegrityError
from django.utils import timezone

from .models import EmailDelivery


logger = logging.getLogger(__name__)

# (filename, content, mimetype)
Attachment = Tuple[str, bytes, str]
# (content_id, png bytes)
InlineImage = Tuple[str, bytes]


@dataclass
class EmailSendResult:
    sent: bool
    delivery: EmailDelivery


def _resolve_existing_delivery(recipient_email: str, idempotency_key: str) -> Optional[EmailDelivery]:
    if not idempotency_key:
        return None
    return EmailDelivery.objects.filter(
        recipient_email=recipient_email,
        idempotency_key=idempotency_key,
    ).first()


def _attach_inline_images(message: EmailMultiAlternatives, inline_images: Iterable[InlineImage]) -> None:
    message.mixed_subtype = "related"
    for content_id, content in inline_images:
        image = MIMEImage(content)
        image.add_header("Content-ID", f"<{content_id}>")
        image.add_header("Content-Disposition", "inline", filename=f"{content_id}.png")
        message.attach(image)


def send_email(
    *,
    recipient_email: str,
    subject: str,
    body_text: str,
    body_html: str = "",
    category: str = "transactional",
    idempotency_key: str = "",
    from_email: Optional[str] = None,
    attachments: Optional[Sequence[Attachment]] = None,
    inline_images: Optional[Sequence[InlineImage]] = None,
    log_body: bool = True,
) -> EmailSendResult:
    """Send one message and record the attempt as an EmailDelivery row.

    A non-empty idempotency_key makes repeated calls for the same recipient
    return the first delivery without sending again. Transport failures are
    recorded on the delivery (status FAILED) and reported through
    ``EmailSendResult.sent``; they are never raised.

    Pass ``log_body=False`` when the body carries credentials; the delivery
    row then keeps only the subject and attachment names.
    """

    normalized_recipient_email = (recipient_email or "").strip().lower()
    existing = _resolve_existing_delivery(normalized_recipient_email, idempotency_key)
    if existing is not None:
        return EmailSendResult(sent=False, delivery=existing)

    attachments = list(attachments or [])
    inline_images = list(inline_images or [])

    try:
        delivery = EmailDelivery.objects.create(
            recipient_email=normalized_recipient_email,
            subject=subject,
            body_text=body_text if log_body else "",
            body_html=body_html if log_body else "",
            category=category,
            attachment_names=[name for name, _content, _mimetype in attachments],
            idempotency_key=idempotency_key,
            status=EmailDelivery.STATUS_PENDING,
        )
    except IntegrityError:
        existing = _resolve_existing_delivery(normalized_recipient_email, idempotency_key)
        if existing is not None:
            return EmailSendResult(sent=False, delivery=existing)
        raise

    message = EmailMultiAlternatives(
        subject=subject,
        body=body_text,
        from_email=from_email or settings.DEFAULT_FROM_EMAIL,
        to=[normalized_recipient_email],
    )
    if body_html:
        message.attach_alternative(body_html, "text/html")
    if inline_images:
        _attach_inline_images(message, inline_images)
    for filename, content, mimetype in attachments:
        message.attach(filename, content, mimetype)

    message.tags = [category]
    message.metadata = {
        "delivery_id": str(delivery.id),
        "category": category,
        "idempotency_key": idempotency_key,
    }

    try:
        message.send(fail_silently=False)
        anymail_status = getattr(message, "anymail_status", None)
        provider_message_id = str(anymail_status.message_id or "") if anymail_status else ""
        delivery.status = EmailDelivery.STATUS_SENT
        delivery.provider_message_id = provider_message_id
        delivery.sent_at = timezone.now()
        delivery.error_message = ""
    except Exception as exc:
        logger.warning(
            "email.send_failed",
            extra={"delivery_id": delivery.id, "category": category, "error": str(exc)},
        )
        delivery.status = EmailDelivery.STATUS_FAILED
        delivery.error_message = str(exc)

    delivery.save(update_fields=["status", "provider_message_id", "sent_at", "error_message", "updated_at"])
    return EmailSendResult(sent=delivery.status == EmailDelivery.STATUS_SENT, delivery=delivery)
