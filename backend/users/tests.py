import uuid

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from .models import PaymentFactImmutable, User
from .security import generate_resend_password
from .selectors import admins, email_exists, get_identity


class UserAuthTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = User.objects.create_user(
            email="admin@example.com", password="password", name="Admin", role=User.ROLE_ADMIN
        )
        self.registrant = User.objects.create_user(
            email="jane@example.com", password="password", name="Jane Doe"
        )

    def get_token(self, email, password="password"):
        response = self.client.post("/api/token/", {"email": email, "password": password})
        return response

    def test_login_by_email_returns_tokens(self):
        response = self.get_token("jane@example.com")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access", response.data)
        self.assertIn("refresh", response.data)

    def test_login_with_wrong_password(self):
        response = self.get_token("jane@example.com", "nope")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_returns_credential_fields(self):
        token = self.get_token("jane@example.com").data["access"]
        self.client.credentials(HTTP_AUTHORIZATION="Bearer " + token)
        response = self.client.get("/api/users/me/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["email"], "jane@example.com")
        self.assertIn("verification_image", response.data)
        self.assertIn("certificate_file", response.data)
        self.assertNotIn("password", response.data)

    def test_me_requires_authentication(self):
        response = self.client.get("/api/users/me/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class IdentityStoreTests(TestCase):
    def test_email_is_normalized(self):
        user = User.objects.create_user(email="  Jane@Example.COM ", password="x", name="Jane")
        self.assertEqual(user.email, "jane@example.com")
        self.assertTrue(email_exists("JANE@example.com"))

    def test_email_is_unique_case_insensitively(self):
        User.objects.create_user(email="jane@example.com", password="x", name="Jane")
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                User.objects.create_user(email="Jane@example.com", password="x", name="Other")

    def test_registration_number_is_unique(self):
        User.objects.create_user(email="a@example.com", password="x", name="A", registration_number="reg1")
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                User.objects.create_user(email="b@example.com", password="x", name="B", registration_number="reg1")

    def test_payment_fact_is_mutable_until_settled(self):
        user = User.objects.create_user(email="a@example.com", password="x", name="A")
        user = User.objects.get(pk=user.pk)
        user.payment_status = User.PAYMENT_PAID
        user.payment_amount = 1500
        user.save()

        user = User.objects.get(pk=user.pk)
        user.payment_amount = 10
        with self.assertRaises(PaymentFactImmutable):
            user.save()

    def test_settled_identity_can_still_change_other_fields(self):
        user = User.objects.create_user(
            email="a@example.com", password="x", name="A", payment_status=User.PAYMENT_FREE
        )
        user = User.objects.get(pk=user.pk)
        user.certificate_file = "/uploads/certificates/x.pdf"
        user.save(update_fields=["certificate_file"])
        self.assertEqual(User.objects.get(pk=user.pk).certificate_file, "/uploads/certificates/x.pdf")

    def test_admins_selector_only_returns_active_admins(self):
        User.objects.create_user(email="b@example.com", password="x", name="B", role=User.ROLE_ADMIN)
        User.objects.create_user(email="a@example.com", password="x", name="A", role=User.ROLE_ADMIN)
        User.objects.create_user(email="c@example.com", password="x", name="C", role=User.ROLE_ADMIN, is_active=False)
        User.objects.create_user(email="d@example.com", password="x", name="D")
        self.assertEqual(list(admins().values_list("email", flat=True)), ["a@example.com", "b@example.com"])

    def test_get_identity(self):
        user = User.objects.create_user(email="a@example.com", password="x", name="A")
        self.assertEqual(get_identity(str(user.pk)), user)
        self.assertIsNone(get_identity(uuid.uuid4()))
        with self.assertRaises(ValidationError):
            get_identity("not-a-uuid")

    def test_superuser_is_admin(self):
        user = User.objects.create_superuser(email="root@example.com", password="x", name="Root")
        self.assertEqual(user.role, User.ROLE_ADMIN)
        self.assertTrue(user.is_staff)


class ResendPasswordTests(TestCase):
    def test_shape(self):
        self.assertRegex(generate_resend_password("Jane"), r"^jane@\d{4}$")
        self.assertRegex(generate_resend_password(""), r"^user@\d{4}$")
