import hashlib
import hmac
import re
import shutil
import tempfile
import threading
import uuid
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from rest_framework.test import APIClient

from communications.models import EmailDelivery
from notifications.models import Notification
from users.models import PaymentFactImmutable

from .exceptions import DuplicateEmail, EncodingFailed, NotificationDeliveryFailed, PaymentNotConfirmed
from .payments import PaymentFact, build_payment_fact, verify_signature
from .services import generate_registration_number, issue_registration, resend_registration_email
from .tokens import build_token_content, encode, qrcode_absolute_path


User = get_user_model()

GATEWAY_SECRET = "test-gateway-secret"


def _sign(order_id: str, payment_id: str) -> str:
    return hmac.new(GATEWAY_SECRET.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def _registrant(**overrides):
    data = {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "password": "s3cret-pass",
        "profession": "Delegates",
        "city": "Kochi",
        "state": "Kerala",
        "designation": "Consultant",
        "phone": "9999999999",
    }
    data.update(overrides)
    return data


FREE = PaymentFact(amount_paid=0, reference_id="FREE_PAYMENT", status="free", order_id="FREE_REGISTRATION")


class TempMediaMixin:
    def setUp(self):
        super().setUp()
        media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, media_root, ignore_errors=True)
        override = override_settings(
            MEDIA_ROOT=media_root,
            EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend",
            PAYMENT_GATEWAY_KEY_SECRET=GATEWAY_SECRET,
            REGISTRATION_EMAIL_ASYNC=False,
            PAYMENT_VERIFY_THROTTLE_RATE="1000/min",
        )
        override.enable()
        self.addCleanup(override.disable)


class TokenEncoderTests(TestCase):
    def test_token_content_embeds_id(self):
        identity_id = uuid.uuid4()
        self.assertEqual(build_token_content(identity_id), f"USER_ID:{identity_id}")

    def test_encode_is_deterministic_png(self):
        first = encode("USER_ID:abc")
        second = encode("USER_ID:abc")
        self.assertTrue(first.startswith(b"\x89PNG\r\n\x1a\n"))
        self.assertEqual(first, second)
        self.assertNotEqual(first, encode("USER_ID:abd"))

    def test_encoded_image_decodes_to_token(self):
        try:
            import cv2  # noqa: PLC0415
            import numpy as np  # noqa: PLC0415
        except Exception:
            self.skipTest("OpenCV not available")

        content = build_token_content(uuid.uuid4())
        img = cv2.imdecode(np.frombuffer(encode(content), dtype=np.uint8), cv2.IMREAD_COLOR)
        decoded, _points, _ = cv2.QRCodeDetector().detectAndDecode(img)
        self.assertEqual(decoded, content)


class PaymentFactTests(TestCase):
    @override_settings(PAYMENT_GATEWAY_KEY_SECRET=GATEWAY_SECRET)
    def test_signature_check(self):
        good = _sign("order_1", "pay_1")
        self.assertTrue(verify_signature(order_id="order_1", payment_id="pay_1", signature=good))
        self.assertFalse(verify_signature(order_id="order_1", payment_id="pay_2", signature=good))

    @override_settings(PAYMENT_GATEWAY_KEY_SECRET="")
    def test_signature_rejected_without_secret(self):
        self.assertFalse(verify_signature(order_id="o", payment_id="p", signature="anything"))

    @override_settings(PAYMENT_GATEWAY_KEY_SECRET=GATEWAY_SECRET)
    def test_paid_fact(self):
        fact = build_payment_fact(amount=500, order_id="order_1", payment_id="pay_1", signature=_sign("order_1", "pay_1"))
        self.assertEqual(fact.status, "paid")
        self.assertEqual(fact.reference_id, "pay_1")
        self.assertEqual(fact.amount_paid, 500)

    def test_zero_amount_is_free_and_skips_signature(self):
        fact = build_payment_fact(amount=0, signature="garbage")
        self.assertEqual(fact.status, "free")
        self.assertEqual(fact.reference_id, "FREE_PAYMENT")

    @override_settings(PAYMENT_GATEWAY_KEY_SECRET=GATEWAY_SECRET)
    def test_bad_signature_raises(self):
        with self.assertRaises(PaymentNotConfirmed):
            build_payment_fact(amount=500, order_id="order_1", payment_id="pay_1", signature="bad")


class IssueRegistrationTests(TempMediaMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.admin = User.objects.create_user(
            email="admin@example.com", password="x", name="Admin", role=User.ROLE_ADMIN
        )

    def test_registration_number_shape(self):
        self.assertRegex(generate_registration_number(), r"^reg\d{13}\d{10}$")

    def test_free_issuance_end_to_end(self):
        with self.captureOnCommitCallbacks(execute=True):
            identity = issue_registration(registrant=_registrant(), payment=FREE)

        identity.refresh_from_db()
        self.assertEqual(identity.payment_status, "free")
        self.assertEqual(identity.payment_amount, 0)
        self.assertEqual(identity.payment_reference, "FREE_PAYMENT")
        self.assertTrue(re.match(r"^reg\d+\d{10}$", identity.registration_number))
        self.assertEqual(identity.verification_token, f"USER_ID:{identity.pk}")
        self.assertEqual(identity.verification_image, f"/uploads/qrcodes/{identity.pk}-qrcode.png")
        self.assertTrue(identity.is_verified)
        self.assertEqual(identity.role, User.ROLE_USER)
        self.assertTrue(identity.check_password("s3cret-pass"))
        self.assertEqual(identity.certificate_file, "")

        png = qrcode_absolute_path(identity.pk).read_bytes()
        self.assertEqual(png, encode(identity.verification_token))

        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ["jane@example.com"])
        self.assertIn("s3cret-pass", message.body)
        self.assertIn(identity.registration_number, message.body)
        filenames = [a[0] for a in message.attachments if isinstance(a, tuple)]
        self.assertIn("EventPass.png", filenames)
        delivery = EmailDelivery.objects.get(recipient_email="jane@example.com")
        self.assertEqual(delivery.status, EmailDelivery.STATUS_SENT)
        self.assertEqual(delivery.body_text, "")

        self.assertEqual(Notification.objects.filter(recipient=self.admin).count(), 1)

    def test_unconfirmed_payment_is_rejected_before_any_side_effect(self):
        pending = PaymentFact(amount_paid=500, reference_id="pay_1", status="pending")
        with self.assertRaises(PaymentNotConfirmed):
            issue_registration(registrant=_registrant(), payment=pending)
        self.assertFalse(User.objects.filter(email="jane@example.com").exists())

    def test_duplicate_email_is_case_insensitive(self):
        issue_registration(registrant=_registrant(), payment=FREE)
        with self.assertRaises(DuplicateEmail):
            issue_registration(registrant=_registrant(email="JANE@Example.com"), payment=FREE)
        self.assertEqual(User.objects.filter(email="jane@example.com").count(), 1)

    def test_constraint_rejects_duplicate_that_passed_precheck(self):
        issue_registration(registrant=_registrant(), payment=FREE)
        # Both writers passed the pre-check; the database constraint decides.
        with mock.patch("registrations.services.email_exists", return_value=False):
            with self.assertRaises(DuplicateEmail):
                issue_registration(registrant=_registrant(email="Jane@example.com"), payment=FREE)
        self.assertEqual(User.objects.filter(email__iexact="jane@example.com").count(), 1)

    def test_encoding_failure_creates_nothing(self):
        with mock.patch("registrations.tokens.encode", side_effect=RuntimeError("boom")):
            with self.assertRaises(EncodingFailed):
                issue_registration(registrant=_registrant(), payment=FREE)
        self.assertFalse(User.objects.filter(email="jane@example.com").exists())

    def test_email_failure_does_not_undo_issuance(self):
        with mock.patch(
            "registrations.services.send_registration_email_task",
            side_effect=RuntimeError("mail down"),
        ):
            with self.captureOnCommitCallbacks(execute=True):
                identity = issue_registration(registrant=_registrant(), payment=FREE)
        self.assertTrue(User.objects.filter(pk=identity.pk).exists())

    @override_settings(REGISTRATION_EMAIL_ASYNC=True)
    def test_async_email_goes_through_celery(self):
        with mock.patch("registrations.services.send_registration_email_task") as task:
            with self.captureOnCommitCallbacks(execute=True):
                identity = issue_registration(registrant=_registrant(), payment=FREE)
        task.assert_not_called()
        task.delay.assert_called_once_with(str(identity.pk), "s3cret-pass")
        self.assertEqual(len(mail.outbox), 0)

    def test_settled_payment_fact_is_immutable(self):
        identity = issue_registration(registrant=_registrant(), payment=FREE)
        identity = User.objects.get(pk=identity.pk)
        identity.payment_status = User.PAYMENT_PAID
        with self.assertRaises(PaymentFactImmutable):
            identity.save()


class ConcurrentIssuanceTests(TempMediaMixin, TransactionTestCase):
    def setUp(self):
        if connection.vendor == "sqlite":
            self.skipTest("SQLite serializes writers with table locks instead of constraint errors")
        super().setUp()

    def test_two_concurrent_issuances_with_same_email(self):
        barrier = threading.Barrier(2, timeout=10)
        outcomes = []
        lock = threading.Lock()

        def passed_precheck(email):
            # Both writers clear the pre-check before either inserts.
            barrier.wait()
            return False

        def issue(email):
            try:
                identity = issue_registration(registrant=_registrant(email=email), payment=FREE)
                result = ("ok", identity.pk)
            except DuplicateEmail:
                result = ("duplicate", None)
            except Exception as exc:
                result = ("error", repr(exc))
            finally:
                connection.close()
            with lock:
                outcomes.append(result)

        with mock.patch("registrations.services.email_exists", side_effect=passed_precheck):
            threads = [
                threading.Thread(target=issue, args=("jane@example.com",)),
                threading.Thread(target=issue, args=("JANE@example.com",)),
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=30)

        kinds = sorted(kind for kind, _ in outcomes)
        self.assertEqual(kinds, ["duplicate", "ok"], outcomes)
        self.assertEqual(User.objects.filter(email__iexact="jane@example.com").count(), 1)

class ResendRegistrationEmailTests(TempMediaMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.identity = issue_registration(registrant=_registrant(), payment=FREE)
        self.original_png = qrcode_absolute_path(self.identity.pk).read_bytes()

    def test_resend_rotates_password_and_repairs_missing_qrcode(self):
        qrcode_absolute_path(self.identity.pk).unlink()

        result = resend_registration_email(self.identity)

        self.assertTrue(result.sent)
        self.identity.refresh_from_db()
        self.assertFalse(self.identity.check_password("s3cret-pass"))
        self.assertEqual(self.identity.verification_token, f"USER_ID:{self.identity.pk}")
        self.assertEqual(qrcode_absolute_path(self.identity.pk).read_bytes(), self.original_png)

        message = mail.outbox[-1]
        self.assertIn("(details resent)", message.subject)
        password = re.search(r"Password: (\S+)", message.body).group(1)
        self.assertRegex(password, r"^jane@\d{4}$")
        self.assertTrue(self.identity.check_password(password))

    def test_resend_delivery_failure_is_raised(self):
        with mock.patch(
            "communications.email_service.EmailMultiAlternatives.send",
            side_effect=RuntimeError("smtp down"),
        ):
            with self.assertRaises(NotificationDeliveryFailed):
                resend_registration_email(self.identity)


class PaymentVerifyAPITests(TempMediaMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()

    def test_free_registration(self):
        res = self.client.post(
            "/api/payments/verify/",
            {"amount": 0, "registrant": _registrant()},
            format="json",
        )
        self.assertEqual(res.status_code, 201)
        data = res.data["data"]
        identity = User.objects.get(email="jane@example.com")
        self.assertEqual(str(data["id"]), str(identity.pk))
        self.assertEqual(data["registration_number"], identity.registration_number)
        self.assertEqual(data["qr_code_image"], f"/uploads/qrcodes/{identity.pk}-qrcode.png")
        self.assertNotIn("password", data)

    def test_paid_registration_with_valid_signature(self):
        res = self.client.post(
            "/api/payments/verify/",
            {
                "order_id": "order_1",
                "payment_id": "pay_1",
                "signature": _sign("order_1", "pay_1"),
                "amount": 1500,
                "registrant": _registrant(),
            },
            format="json",
        )
        self.assertEqual(res.status_code, 201)
        identity = User.objects.get(email="jane@example.com")
        self.assertEqual(identity.payment_status, "paid")
        self.assertEqual(identity.payment_order_id, "order_1")

    def test_bad_signature_creates_nothing(self):
        res = self.client.post(
            "/api/payments/verify/",
            {
                "order_id": "order_1",
                "payment_id": "pay_1",
                "signature": "forged",
                "amount": 1500,
                "registrant": _registrant(),
            },
            format="json",
        )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["detail"], "Payment verification failed")
        self.assertFalse(User.objects.filter(email="jane@example.com").exists())

    def test_client_cannot_choose_role(self):
        res = self.client.post(
            "/api/payments/verify/",
            {"amount": 0, "registrant": _registrant(role="admin")},
            format="json",
        )
        self.assertEqual(res.status_code, 201)
        self.assertEqual(User.objects.get(email="jane@example.com").role, User.ROLE_USER)

    def test_missing_registrant_fields(self):
        res = self.client.post(
            "/api/payments/verify/",
            {"amount": 0, "registrant": {"email": "jane@example.com"}},
            format="json",
        )
        self.assertEqual(res.status_code, 400)
        self.assertIn("registrant", res.data)

    def test_duplicate_email(self):
        self.client.post("/api/payments/verify/", {"amount": 0, "registrant": _registrant()}, format="json")
        res = self.client.post("/api/payments/verify/", {"amount": 0, "registrant": _registrant()}, format="json")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["detail"], "Email already registered")

    def test_encoding_failure_is_500(self):
        with mock.patch("registrations.tokens.encode", side_effect=RuntimeError("boom")):
            res = self.client.post("/api/payments/verify/", {"amount": 0, "registrant": _registrant()}, format="json")
        self.assertEqual(res.status_code, 500)
        self.assertIn("QR code", res.data["detail"])


class ResendRegistrationEmailAPITests(TempMediaMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.admin = User.objects.create_user(
            email="admin@example.com", password="x", name="Admin", role=User.ROLE_ADMIN
        )
        self.identity = issue_registration(registrant=_registrant(), payment=FREE)

    def test_admin_can_resend(self):
        self.client.force_authenticate(user=self.admin)
        res = self.client.post(f"/api/users/{self.identity.pk}/resend-email/")
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.data["success"])

    def test_non_admin_is_forbidden(self):
        self.client.force_authenticate(user=self.identity)
        res = self.client.post(f"/api/users/{self.identity.pk}/resend-email/")
        self.assertEqual(res.status_code, 403)

    def test_unknown_identity_is_404(self):
        self.client.force_authenticate(user=self.admin)
        res = self.client.post(f"/api/users/{uuid.uuid4()}/resend-email/")
        self.assertEqual(res.status_code, 404)

    def test_delivery_failure_is_502(self):
        self.client.force_authenticate(user=self.admin)
        with mock.patch(
            "communications.email_service.EmailMultiAlternatives.send",
            side_effect=RuntimeError("smtp down"),
        ):
            res = self.client.post(f"/api/users/{self.identity.pk}/resend-email/")
        self.assertEqual(res.status_code, 502)
