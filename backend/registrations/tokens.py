from __future__ import annotations

import logging
import uuid
from io import BytesIO
from pathlib import Path

import qrcode
from django.conf import settings
from qrcode.constants import ERROR_CORRECT_M

from .exceptions import EncodingFailed


logger = logging.getLogger(__name__)

TOKEN_PREFIX = "USER_ID:"
QRCODE_DIR = "qrcodes"


def build_token_content(identity_id: str | uuid.UUID) -> str:
    return f"{TOKEN_PREFIX}{identity_id}"


def encode(content: str) -> bytes:
    """Render ``content`` as a QR code PNG.

    The output only depends on ``content``: the same token always yields the
    same bytes, which is what lets a missing image be repaired in place.
    """

    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(content)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def qrcode_relative_path(identity_id: str | uuid.UUID) -> str:
    return f"{QRCODE_DIR}/{identity_id}-qrcode.png"


def qrcode_absolute_path(identity_id: str | uuid.UUID) -> Path:
    return Path(settings.MEDIA_ROOT) / qrcode_relative_path(identity_id)


def qrcode_public_url(identity_id: str | uuid.UUID) -> str:
    media_url = str(getattr(settings, "MEDIA_URL", "/uploads/") or "/uploads/")
    if not media_url.endswith("/"):
        media_url = f"{media_url}/"
    return f"{media_url}{qrcode_relative_path(identity_id)}"


def write_verification_image(identity_id: str | uuid.UUID) -> tuple[str, bytes]:
    """Encode the identity's token and write it to its conventional path.

    Returns ``(public_url, png_bytes)``. Any failure is raised as
    ``EncodingFailed``; an identity without its QR image is unusable at the gate.
    """

    content = build_token_content(identity_id)
    target = qrcode_absolute_path(identity_id)
    try:
        png = encode(content)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(png)
    except Exception as exc:
        logger.exception("registration.qrcode_failed", extra={"identity_id": str(identity_id)})
        raise EncodingFailed(f"Could not generate the QR code: {exc}") from exc
    return qrcode_public_url(identity_id), png


def read_verification_image(identity_id: str | uuid.UUID) -> bytes | None:
    target = qrcode_absolute_path(identity_id)
    if not target.exists():
        return None
    return target.read_bytes()
