import shutil
import tempfile
import uuid
from pathlib import Path
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from audit.models import ScanLog
from registrations.payments import PaymentFact
from registrations.services import issue_registration

from .certificates import CertificatePaths, render_certificate
from .exceptions import CertificateGenerationFailed
from .services import normalize_token, verify_scan


User = get_user_model()

FAKE_PDF = b"%PDF-1.7 fake"
FREE = PaymentFact(amount_paid=0, reference_id="FREE_PAYMENT", status="free", order_id="FREE_REGISTRATION")


def static_renderer(identity):
    return CertificatePaths(
        document_path=f"/static-certs/{identity.pk}.pdf",
        image_path=f"/static-certs/{identity.pk}.png",
    )


class ScanFixtureMixin:
    fake_pdf = True

    def setUp(self):
        super().setUp()
        self.media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)
        override = override_settings(
            MEDIA_ROOT=self.media_root,
            EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend",
            CERTIFICATE_RENDERER="verification.certificates.render_certificate",
            SCAN_CERTIFICATE_LOCKING=False,
        )
        override.enable()
        self.addCleanup(override.disable)

        # WeasyPrint needs native libraries; the PDF bytes are faked and the
        # Pillow preview is rendered for real.
        if self.fake_pdf:
            pdf_patch = mock.patch("verification.certificates.render_certificate_pdf", return_value=FAKE_PDF)
            self.render_pdf = pdf_patch.start()
            self.addCleanup(pdf_patch.stop)

        self.operator = User.objects.create_user(
            email="gate@example.com", password="x", name="Gate Keeper", role=User.ROLE_USER
        )
        self.identity = issue_registration(
            registrant={
                "name": "Jane Doe",
                "email": "jane@example.com",
                "password": "s3cret-pass",
                "designation": "Consultant",
                "city": "Kochi",
                "state": "Kerala",
            },
            payment=FREE,
        )


class NormalizeTokenTests(TestCase):
    def test_prefix_is_stripped(self):
        self.assertEqual(normalize_token("USER_ID:abc"), "abc")
        self.assertEqual(normalize_token("USER_ID: abc \n"), "abc")

    def test_raw_value_is_kept(self):
        self.assertEqual(normalize_token("abc"), "abc")
        self.assertEqual(normalize_token("user_id:abc"), "user_id:abc")


class VerifyScanTests(ScanFixtureMixin, TestCase):
    def test_valid_scan_generates_certificate_and_logs(self):
        token = f"USER_ID:{self.identity.pk}"

        result = verify_scan(raw_token=token, operator=self.operator)

        self.assertTrue(result.is_valid)
        self.assertEqual(result.outcome, ScanLog.Outcome.VALID)
        self.assertEqual(result.detail, "QR code verified for Jane Doe")
        self.assertIsNone(result.certificate_error)
        self.assertIsNone(result.audit_error)

        self.identity.refresh_from_db()
        self.assertEqual(self.identity.certificate_file, f"/uploads/certificates/{self.identity.pk}-certificate.pdf")
        self.assertEqual(self.identity.certificate_image, f"/uploads/certificates/{self.identity.pk}-certificate-1.png")
        certs = Path(self.media_root) / "certificates"
        self.assertEqual((certs / f"{self.identity.pk}-certificate.pdf").read_bytes(), FAKE_PDF)
        self.assertTrue((certs / f"{self.identity.pk}-certificate-1.png").read_bytes().startswith(b"\x89PNG"))

        log = ScanLog.objects.get()
        self.assertEqual(log.identity_id, self.identity.pk)
        self.assertEqual(log.operator_id, self.operator.pk)
        self.assertEqual(log.raw_token, token)
        self.assertTrue(log.is_valid)

    def test_raw_id_matches_prefixed_token(self):
        prefixed = verify_scan(raw_token=f"USER_ID:{self.identity.pk}", operator=self.operator)
        raw = verify_scan(raw_token=str(self.identity.pk), operator=self.operator)

        self.assertEqual((prefixed.is_valid, prefixed.outcome, prefixed.detail), (raw.is_valid, raw.outcome, raw.detail))
        self.assertEqual(raw.identity.pk, self.identity.pk)

    def test_second_scan_does_not_regenerate(self):
        verify_scan(raw_token=f"USER_ID:{self.identity.pk}", operator=self.operator)
        self.identity.refresh_from_db()
        first_refs = (self.identity.certificate_file, self.identity.certificate_image)

        verify_scan(raw_token=f"USER_ID:{self.identity.pk}", operator=self.operator)
        self.identity.refresh_from_db()

        self.assertEqual(self.render_pdf.call_count, 1)
        self.assertEqual((self.identity.certificate_file, self.identity.certificate_image), first_refs)
        self.assertEqual(ScanLog.objects.filter(identity=self.identity).count(), 2)

    def test_unknown_id_is_not_found_and_logged_without_identity(self):
        token = f"USER_ID:{uuid.uuid4()}"

        result = verify_scan(raw_token=token, operator=self.operator)

        self.assertFalse(result.is_valid)
        self.assertEqual(result.outcome, ScanLog.Outcome.NOT_FOUND)
        self.assertEqual(result.detail, "User not found for scanned QR")
        log = ScanLog.objects.get()
        self.assertIsNone(log.identity)
        self.assertFalse(log.is_valid)
        self.assertEqual(log.raw_token, token)
        self.render_pdf.assert_not_called()

    def test_malformed_token_is_invalid_format(self):
        result = verify_scan(raw_token="USER_ID:not-a-uuid", operator=self.operator)

        self.assertFalse(result.is_valid)
        self.assertEqual(result.outcome, ScanLog.Outcome.INVALID_FORMAT)
        self.assertEqual(result.detail, "Invalid QR code format")
        self.assertEqual(ScanLog.objects.get().detail, "Invalid QR code format")

    def test_certificate_failure_keeps_valid_and_is_surfaced(self):
        self.render_pdf.side_effect = RuntimeError("no fonts")

        result = verify_scan(raw_token=f"USER_ID:{self.identity.pk}", operator=self.operator)

        self.assertTrue(result.is_valid)
        self.assertIn("no fonts", result.certificate_error)
        self.identity.refresh_from_db()
        self.assertEqual(self.identity.certificate_file, "")
        self.assertEqual(self.identity.certificate_image, "")
        self.assertTrue(ScanLog.objects.get().is_valid)

    def test_certificate_save_failure_still_logs_scan(self):
        with mock.patch.object(User, "save", side_effect=DatabaseError("disk full")):
            result = verify_scan(raw_token=f"USER_ID:{self.identity.pk}", operator=self.operator)

        self.assertTrue(result.is_valid)
        self.assertIn("disk full", result.certificate_error)
        self.assertEqual(result.identity.certificate_file, "")
        self.assertEqual(ScanLog.objects.count(), 1)
        self.assertTrue(ScanLog.objects.get().is_valid)
        self.identity.refresh_from_db()
        self.assertFalse(self.identity.has_certificate)

    @override_settings(CERTIFICATE_RENDERER="verification.missing_renderers.render")
    def test_unresolvable_renderer_still_logs_scan(self):
        result = verify_scan(raw_token=f"USER_ID:{self.identity.pk}", operator=self.operator)

        self.assertTrue(result.is_valid)
        self.assertIsNotNone(result.certificate_error)
        self.assertEqual(ScanLog.objects.count(), 1)

    @override_settings(SCAN_CERTIFICATE_LOCKING=True)
    def test_lock_failure_still_logs_scan(self):
        with mock.patch.object(User.objects, "select_for_update", side_effect=DatabaseError("lock timeout")):
            result = verify_scan(raw_token=f"USER_ID:{self.identity.pk}", operator=self.operator)

        self.assertTrue(result.is_valid)
        self.assertIn("lock timeout", result.certificate_error)
        self.assertEqual(ScanLog.objects.count(), 1)

    def test_audit_failure_is_surfaced_not_raised(self):
        with mock.patch("verification.services.append_scan_log", side_effect=RuntimeError("db down")):
            result = verify_scan(raw_token=f"USER_ID:{self.identity.pk}", operator=self.operator)

        self.assertTrue(result.is_valid)
        self.assertIsNotNone(result.audit_error)
        self.assertIsNone(result.scan_log)

    @override_settings(SCAN_CERTIFICATE_LOCKING=True)
    def test_locking_mode_generates_once(self):
        verify_scan(raw_token=f"USER_ID:{self.identity.pk}", operator=self.operator)
        verify_scan(raw_token=f"USER_ID:{self.identity.pk}", operator=self.operator)

        self.identity.refresh_from_db()
        self.assertTrue(self.identity.has_certificate)
        self.assertEqual(self.render_pdf.call_count, 1)

    @override_settings(CERTIFICATE_RENDERER="verification.tests.static_renderer")
    def test_renderer_is_configurable(self):
        verify_scan(raw_token=f"USER_ID:{self.identity.pk}", operator=self.operator)

        self.identity.refresh_from_db()
        self.assertEqual(self.identity.certificate_file, f"/static-certs/{self.identity.pk}.pdf")
        self.render_pdf.assert_not_called()

    def test_free_registration_then_scan(self):
        self.assertEqual(self.identity.payment_status, "free")
        self.assertRegex(self.identity.registration_number, r"^reg\d+\d{10}$")
        self.assertEqual(self.identity.verification_token, f"USER_ID:{self.identity.pk}")

        result = verify_scan(raw_token=f"USER_ID:{self.identity.pk}", operator=self.operator)

        self.assertTrue(result.is_valid)
        self.identity.refresh_from_db()
        self.assertTrue(self.identity.certificate_file)
        self.assertTrue(self.identity.certificate_image)
        logs = ScanLog.objects.filter(identity=self.identity)
        self.assertEqual(logs.count(), 1)
        self.assertTrue(logs.get().is_valid)


class WeasyPrintCertificateTests(ScanFixtureMixin, TestCase):
    fake_pdf = False

    def test_renders_real_pdf_when_weasyprint_is_available(self):
        try:
            import weasyprint  # noqa: F401, PLC0415
        except (ImportError, OSError):
            self.skipTest("WeasyPrint not available")

        paths = render_certificate(self.identity)

        pdf = (Path(self.media_root) / "certificates" / f"{self.identity.pk}-certificate.pdf").read_bytes()
        self.assertTrue(pdf.startswith(b"%PDF"))
        self.assertTrue(paths.document_path.endswith("-certificate.pdf"))


class RenderCertificateTests(ScanFixtureMixin, TestCase):
    def test_failures_are_classified(self):
        self.render_pdf.side_effect = RuntimeError("boom")
        with self.assertRaises(CertificateGenerationFailed):
            render_certificate(self.identity)


class ScanAPITests(ScanFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()

    def test_scan_valid(self):
        self.client.force_authenticate(user=self.operator)
        res = self.client.post("/api/scan/", {"qr_data": f"USER_ID:{self.identity.pk}"}, format="json")

        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.data["success"])
        self.assertTrue(res.data["is_valid"])
        self.assertEqual(res.data["message"], "QR code verified for Jane Doe")
        self.assertEqual(res.data["user"]["email"], "jane@example.com")
        self.assertTrue(res.data["user"]["certificate_file"].endswith("-certificate.pdf"))
        self.assertIsNone(res.data["certificate_error"])
        self.assertIsNone(res.data["audit_error"])

    def test_scan_invalid_is_still_200(self):
        self.client.force_authenticate(user=self.operator)
        res = self.client.post("/api/scan/", {"qr_data": "hello"}, format="json")

        self.assertEqual(res.status_code, 200)
        self.assertFalse(res.data["is_valid"])
        self.assertIsNone(res.data["user"])
        self.assertEqual(ScanLog.objects.count(), 1)

    def test_missing_qr_data(self):
        self.client.force_authenticate(user=self.operator)
        for payload in ({}, {"qr_data": ""}, {"qr_data": "   "}):
            res = self.client.post("/api/scan/", payload, format="json")
            self.assertEqual(res.status_code, 400)
            self.assertEqual(res.data["detail"], "QR data is required")
        self.assertEqual(ScanLog.objects.count(), 0)

    def test_anonymous_rejected_before_anything_runs(self):
        res = self.client.post("/api/scan/", {"qr_data": f"USER_ID:{self.identity.pk}"}, format="json")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(ScanLog.objects.count(), 0)
