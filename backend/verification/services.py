from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction

from audit.models import ScanLog
from audit.services import append_scan_log
from registrations.tokens import TOKEN_PREFIX
from users.models import User
from users.selectors import get_identity

from .certificates import get_certificate_renderer
from .exceptions import CertificateGenerationFailed


logger = logging.getLogger(__name__)

DETAIL_NOT_FOUND = "User not found for scanned QR"
DETAIL_INVALID_FORMAT = "Invalid QR code format"
AUDIT_ERROR_MESSAGE = "Scan could not be recorded in the audit log"


@dataclass
class VerificationResult:
    is_valid: bool
    outcome: str
    detail: str
    identity: Optional[User] = None
    certificate_error: Optional[str] = None
    audit_error: Optional[str] = None
    scan_log: Optional[ScanLog] = None


def normalize_token(raw_token: str) -> str:
    """Strip the ``USER_ID:`` prefix when present; bare ids are accepted as-is."""

    token = raw_token or ""
    if token.startswith(TOKEN_PREFIX):
        token = token[len(TOKEN_PREFIX):]
    return token.strip()


def resolve_token(token: str) -> tuple[Optional[User], str, str]:
    if not token:
        return None, ScanLog.Outcome.INVALID_FORMAT, DETAIL_INVALID_FORMAT
    try:
        identity = get_identity(token)
    except ValidationError:
        return None, ScanLog.Outcome.INVALID_FORMAT, DETAIL_INVALID_FORMAT
    if identity is None:
        return None, ScanLog.Outcome.NOT_FOUND, DETAIL_NOT_FOUND
    return identity, ScanLog.Outcome.VALID, f"QR code verified for {identity.name}"


def _generate_certificate(identity: User) -> None:
    previous = (identity.certificate_file, identity.certificate_image)
    try:
        renderer = get_certificate_renderer()
        paths = renderer(identity)
        identity.certificate_file = paths.document_path
        identity.certificate_image = paths.image_path
        identity.save(update_fields=["certificate_file", "certificate_image", "updated_at"])
    except Exception as exc:
        identity.certificate_file, identity.certificate_image = previous
        if isinstance(exc, CertificateGenerationFailed):
            raise
        raise CertificateGenerationFailed(f"Certificate generation failed: {exc}") from exc
    logger.info("certificate.generated", extra={"identity_id": str(identity.pk)})


def ensure_certificate(identity: User) -> User:
    """Generate the certificate on first valid scan; no-op once both refs exist.

    Without SCAN_CERTIFICATE_LOCKING two simultaneous first scans may both
    render. The output is the same for both, so the last write wins.
    """

    if identity.has_certificate:
        return identity

    if not getattr(settings, "SCAN_CERTIFICATE_LOCKING", False):
        _generate_certificate(identity)
        return identity

    with transaction.atomic():
        locked = User.objects.select_for_update().get(pk=identity.pk)
        if not locked.has_certificate:
            _generate_certificate(locked)
    return locked


def verify_scan(*, raw_token: str, operator: User) -> VerificationResult:
    """Classify a presented QR token and record the attempt.

    Unknown or malformed tokens are an outcome, not an error. Certificate and
    audit failures are reported on the result next to the classification.
    """

    identity, outcome, detail = resolve_token(normalize_token(raw_token))
    result = VerificationResult(
        is_valid=identity is not None,
        outcome=outcome,
        detail=detail,
        identity=identity,
    )

    if identity is not None:
        try:
            # Savepoint: a failed certificate write must not poison the audit append.
            with transaction.atomic():
                result.identity = ensure_certificate(identity)
        except CertificateGenerationFailed as exc:
            result.certificate_error = str(exc)
            logger.warning(
                "scan.certificate_failed",
                extra={"identity_id": str(identity.pk), "error": str(exc)},
            )
        except Exception as exc:
            result.certificate_error = f"Certificate generation failed: {exc}"
            logger.exception("scan.certificate_failed", extra={"identity_id": str(identity.pk)})

    try:
        with transaction.atomic():
            result.scan_log = append_scan_log(
                operator=operator,
                identity=identity,
                raw_token=raw_token,
                is_valid=result.is_valid,
                outcome=outcome,
                detail=detail,
            )
    except Exception:
        result.audit_error = AUDIT_ERROR_MESSAGE
        logger.exception(
            "scan.audit_append_failed",
            extra={"operator_id": str(operator.pk), "outcome": str(outcome)},
        )

    logger.info(
        "scan.verified",
        extra={
            "operator_id": str(operator.pk),
            "identity_id": str(identity.pk) if identity else None,
            "outcome": str(outcome),
        },
    )
    return result
