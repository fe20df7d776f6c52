from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Callable
from urllib.parse import urlparse

from django.conf import settings
from django.template.loader import render_to_string
from django.utils import timezone
from django.utils.module_loading import import_string

from registrations.tokens import build_token_content, encode, read_verification_image
from users.models import User

from .exceptions import CertificateGenerationFailed


logger = logging.getLogger(__name__)

CERTIFICATE_DIR = "certificates"

CERTIFICATE_CSS = """
@page {
    size: A4 landscape;
    margin: 12mm;
}

html, body {
    font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, Arial, sans-serif;
    color: #0f172a;
}
"""

# A4 landscape at 150 dpi
PREVIEW_SIZE = (1754, 1240)


@dataclass(frozen=True)
class CertificatePaths:
    document_path: str
    image_path: str


class WeasyPrintUnavailableError(RuntimeError):
    pass


def _media_url() -> str:
    media_url = str(getattr(settings, "MEDIA_URL", "/uploads/") or "/uploads/")
    return media_url if media_url.endswith("/") else f"{media_url}/"


def certificate_document_relative_path(identity_id) -> str:
    return f"{CERTIFICATE_DIR}/{identity_id}-certificate.pdf"


def certificate_image_relative_path(identity_id) -> str:
    return f"{CERTIFICATE_DIR}/{identity_id}-certificate-1.png"


def certificate_url_fetcher(url: str):
    """Only local resources; remote http(s) URLs are refused."""

    parsed = urlparse(url)
    if parsed.scheme in {"http", "https"}:
        raise ValueError("Remote URLs are not allowed in PDF rendering")

    from weasyprint.urls import default_url_fetcher  # noqa: PLC0415

    return default_url_fetcher(url)


def render_pdf_bytes_from_html(*, html: str, base_url: str | None = None, extra_css: str = "") -> bytes:
    try:
        from weasyprint import CSS, HTML  # noqa: PLC0415
    except (ImportError, OSError) as e:  # pragma: no cover
        raise WeasyPrintUnavailableError(
            "WeasyPrint is not available (missing system libraries such as Pango). "
            "See https://doc.courtbouillon.org/weasyprint/stable/first_steps.html#installation"
        ) from e

    stylesheets = [CSS(string=CERTIFICATE_CSS)]
    if extra_css:
        stylesheets.append(CSS(string=extra_css))

    return HTML(
        string=html,
        base_url=base_url,
        url_fetcher=certificate_url_fetcher,
    ).write_pdf(stylesheets=stylesheets)


def _qrcode_png(identity: User) -> bytes:
    png = read_verification_image(identity.pk)
    if png is None:
        png = encode(identity.verification_token or build_token_content(identity.pk))
    return png


def _certificate_context(identity: User, qr_png: bytes) -> dict:
    place = ", ".join(part for part in (identity.city, identity.state) if part)
    return {
        "event_name": getattr(settings, "EVENT_NAME", ""),
        "name": identity.name,
        "designation": identity.designation,
        "place": place,
        "registration_number": identity.registration_number,
        "issued_on": timezone.localdate(),
        "qr_data_uri": f"data:image/png;base64,{base64.b64encode(qr_png).decode('ascii')}",
    }


def render_certificate_pdf(identity: User, qr_png: bytes) -> bytes:
    html = render_to_string("verification/certificate.html", _certificate_context(identity, qr_png))
    return render_pdf_bytes_from_html(html=html)


def render_certificate_png(identity: User, qr_png: bytes) -> bytes:
    from PIL import Image, ImageDraw, ImageFont  # noqa: PLC0415

    width, height = PREVIEW_SIZE
    img = Image.new("RGB", PREVIEW_SIZE, "#fdf6e3")
    draw = ImageDraw.Draw(img)
    draw.rectangle((40, 40, width - 40, height - 40), outline="#333333", width=4)

    def _font(size: int):
        return ImageFont.load_default(size=size)

    def _centered(text: str, y: int, size: int, fill: str) -> None:
        font = _font(size)
        left, _top, right, _bottom = draw.textbbox((0, 0), text, font=font)
        draw.text(((width - (right - left)) / 2, y), text, font=font, fill=fill)

    _centered("Certificate of Participation", 150, 72, "#2c3e50")
    _centered("This is proudly presented to:", 330, 44, "#000000")
    _centered(identity.name or "", 440, 68, "#e74c3c")

    context = _certificate_context(identity, qr_png)
    if identity.designation or context["place"]:
        line = "For participating"
        if identity.designation:
            line = f"{line} as {identity.designation}"
        if context["place"]:
            line = f"{line} in {context['place']}"
        _centered(line, 580, 36, "#000000")

    draw.text((200, 1000), f"Date: {context['issued_on']:%Y-%m-%d}", font=_font(28), fill="#000000")
    draw.text((width - 520, 1000), "Authorized Signature", font=_font(28), fill="#000000")

    qr = Image.open(BytesIO(qr_png)).convert("RGB")
    qr.thumbnail((260, 260))
    img.paste(qr, (120, 680))

    out = BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()


def render_certificate(identity: User) -> CertificatePaths:
    """Write ``<id>-certificate.pdf`` and its ``-1.png`` preview under MEDIA_ROOT.

    Existing files are overwritten; the output only depends on the identity.
    """

    try:
        qr_png = _qrcode_png(identity)
        pdf_bytes = render_certificate_pdf(identity, qr_png)
        png_bytes = render_certificate_png(identity, qr_png)

        media_root = Path(settings.MEDIA_ROOT)
        document_rel = certificate_document_relative_path(identity.pk)
        image_rel = certificate_image_relative_path(identity.pk)
        (media_root / CERTIFICATE_DIR).mkdir(parents=True, exist_ok=True)
        (media_root / document_rel).write_bytes(pdf_bytes)
        (media_root / image_rel).write_bytes(png_bytes)
    except Exception as exc:
        logger.exception("certificate.render_failed", extra={"identity_id": str(identity.pk)})
        raise CertificateGenerationFailed(f"Certificate generation failed: {exc}") from exc

    return CertificatePaths(
        document_path=f"{_media_url()}{document_rel}",
        image_path=f"{_media_url()}{image_rel}",
    )


def get_certificate_renderer() -> Callable[[User], CertificatePaths]:
    dotted = str(getattr(settings, "CERTIFICATE_RENDERER", "") or "").strip()
    if not dotted:
        return render_certificate
    return import_string(dotted)
