from __future__ import annotations

from django.conf import settings
from django.template.loader import render_to_string
from django.utils import timezone

from communications.email_service import EmailSendResult, send_email
from users.models import User

from .tokens import encode, build_token_content, read_verification_image


QRCODE_CONTENT_ID = "qrcodeimg"
PASS_ATTACHMENT_NAME = "EventPass.png"


def registration_email_subject(*, resent: bool = False) -> str:
    event_name = str(getattr(settings, "EVENT_NAME", "") or "").strip()
    subject = f"Your {event_name} registration is confirmed" if event_name else "Your registration is confirmed"
    if resent:
        subject = f"{subject} (details resent)"
    return subject


def send_registration_email(identity: User, password: str, *, resent: bool = False) -> EmailSendResult:
    """Mail the registrant their credentials with the QR pass inline and attached."""

    png = read_verification_image(identity.pk)
    if png is None:
        png = encode(identity.verification_token or build_token_content(identity.pk))

    context = {
        "name": identity.name,
        "email": identity.email,
        "password": password,
        "registration_number": identity.registration_number,
        "event_name": getattr(settings, "EVENT_NAME", ""),
        "login_url": getattr(settings, "EVENT_LOGIN_URL", ""),
        "qrcode_cid": QRCODE_CONTENT_ID,
        "resent": resent,
        "year": timezone.now().year,
    }
    body_html = render_to_string("registrations/registration_email.html", context)
    body_text = render_to_string("registrations/registration_email.txt", context)

    return send_email(
        recipient_email=identity.email,
        subject=registration_email_subject(resent=resent),
        body_text=body_text,
        body_html=body_html,
        category="registration",
        # Resends rotate the password, so each one must go out.
        idempotency_key="" if resent else f"registration:{identity.pk}",
        attachments=[(PASS_ATTACHMENT_NAME, png, "image/png")],
        inline_images=[(QRCODE_CONTENT_ID, png)],
        log_body=False,
    )
