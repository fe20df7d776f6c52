import uuid

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from .exceptions import AuditLogImmutable, ScanLogAccessDenied
from .models import ScanLog
from .services import append_scan_log, list_scan_logs, list_scan_logs_for_identity


User = get_user_model()


class ScanLogFixtureMixin:
	def setUp(self):
		super().setUp()
		self.admin = User.objects.create_user(email="admin@example.com", password="x", name="Admin", role=User.ROLE_ADMIN)
		self.gate = User.objects.create_user(email="gate@example.com", password="x", name="Gate", role=User.ROLE_USER)
		self.alice = User.objects.create_user(email="alice@example.com", password="x", name="Alice")
		self.bob = User.objects.create_user(email="bob@example.com", password="x", name="Bob")

		self.first = append_scan_log(
			operator=self.gate,
			identity=self.alice,
			raw_token=f"USER_ID:{self.alice.pk}",
			is_valid=True,
			outcome=ScanLog.Outcome.VALID,
			detail="QR code verified for Alice",
		)
		self.second = append_scan_log(
			operator=self.gate,
			raw_token="garbage",
			is_valid=False,
			outcome=ScanLog.Outcome.INVALID_FORMAT,
			detail="Invalid QR code format",
		)
		self.third = append_scan_log(
			operator=self.admin,
			identity=self.bob,
			raw_token=str(self.bob.pk),
			is_valid=True,
			outcome=ScanLog.Outcome.VALID,
			detail="QR code verified for Bob",
		)


class ScanLogServiceTests(ScanLogFixtureMixin, TestCase):
	def test_list_all_is_newest_first(self):
		ids = list(list_scan_logs().values_list("id", flat=True))
		self.assertEqual(ids, [self.third.id, self.second.id, self.first.id])

	def test_admin_can_list_any_identity(self):
		logs = list(list_scan_logs_for_identity(self.alice.pk, self.admin))
		self.assertEqual(logs, [self.first])

	def test_identity_can_list_own_log(self):
		logs = list(list_scan_logs_for_identity(str(self.bob.pk), self.bob))
		self.assertEqual(logs, [self.third])

	def test_other_identity_is_forbidden(self):
		with self.assertRaises(ScanLogAccessDenied):
			list_scan_logs_for_identity(self.alice.pk, self.bob)

	def test_unresolved_scan_has_no_identity(self):
		self.assertIsNone(self.second.identity)
		self.assertEqual(self.second.raw_token, "garbage")


class ScanLogImmutabilityTests(ScanLogFixtureMixin, TestCase):
	def test_instance_save_after_create_is_rejected(self):
		self.first.detail = "tampered"
		with self.assertRaises(AuditLogImmutable):
			self.first.save()

	def test_instance_delete_is_rejected(self):
		with self.assertRaises(AuditLogImmutable):
			self.first.delete()

	def test_bulk_update_and_delete_are_rejected(self):
		with self.assertRaises(AuditLogImmutable):
			ScanLog.objects.filter(pk=self.first.pk).update(detail="tampered")
		with self.assertRaises(AuditLogImmutable):
			ScanLog.objects.all().delete()
		self.assertEqual(ScanLog.objects.count(), 3)


class ScanLogAPITests(ScanLogFixtureMixin, TestCase):
	def setUp(self):
		super().setUp()
		self.client = APIClient()

	def test_admin_lists_everything(self):
		self.client.force_authenticate(user=self.admin)
		res = self.client.get("/api/scan/logs/")
		self.assertEqual(res.status_code, 200)
		self.assertEqual([row["id"] for row in res.data], [self.third.id, self.second.id, self.first.id])
		unresolved = res.data[1]
		self.assertIsNone(unresolved["identity"])
		self.assertIsNone(unresolved["identity_name"])
		self.assertEqual(unresolved["operator_email"], "gate@example.com")
		self.assertEqual(unresolved["detail"], "Invalid QR code format")

	def test_non_admin_cannot_list_everything(self):
		self.client.force_authenticate(user=self.gate)
		res = self.client.get("/api/scan/logs/")
		self.assertEqual(res.status_code, 403)

	def test_identity_reads_own_log(self):
		self.client.force_authenticate(user=self.alice)
		res = self.client.get(f"/api/scan/logs/{self.alice.pk}/")
		self.assertEqual(res.status_code, 200)
		self.assertEqual(len(res.data), 1)
		self.assertTrue(res.data[0]["is_valid"])

	def test_identity_cannot_read_someone_else(self):
		self.client.force_authenticate(user=self.bob)
		res = self.client.get(f"/api/scan/logs/{self.alice.pk}/")
		self.assertEqual(res.status_code, 403)
		self.assertEqual(res.data["detail"], "Not authorized to view these logs")

	def test_admin_reads_unknown_identity_as_empty(self):
		self.client.force_authenticate(user=self.admin)
		res = self.client.get(f"/api/scan/logs/{uuid.uuid4()}/")
		self.assertEqual(res.status_code, 200)
		self.assertEqual(res.data, [])

	def test_anonymous_is_rejected(self):
		res = self.client.get("/api/scan/logs/")
		self.assertEqual(res.status_code, 401)
