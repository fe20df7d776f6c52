from __future__ import annotations

from django.conf import settings
from django.db import models

from .exceptions import AuditLogImmutable


class ScanLogQuerySet(models.QuerySet):
	def update(self, **kwargs):
		raise AuditLogImmutable("Scan log entries cannot be updated")

	def delete(self):
		raise AuditLogImmutable("Scan log entries cannot be deleted")


class ScanLog(models.Model):
	"""One QR presentation at the gate, valid or not.

	Rows are written once and never changed; `raw_token` is the exact text the
	scanner sent so a scan can be replayed later.
	"""

	class Outcome(models.TextChoices):
		VALID = "VALID", "Valid"
		NOT_FOUND = "NOT_FOUND", "Not found"
		INVALID_FORMAT = "INVALID_FORMAT", "Invalid format"

	identity = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		on_delete=models.SET_NULL,
		null=True,
		blank=True,
		related_name="scan_logs",
	)
	operator = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		on_delete=models.PROTECT,
		related_name="performed_scans",
	)

	raw_token = models.TextField()
	is_valid = models.BooleanField(default=False)
	outcome = models.CharField(max_length=20, choices=Outcome.choices)
	detail = models.CharField(max_length=255, blank=True, default="")

	created_at = models.DateTimeField(auto_now_add=True)

	objects = ScanLogQuerySet.as_manager()

	class Meta:
		ordering = ["-created_at", "-id"]
		indexes = [
			models.Index(fields=["created_at"], name="audit_scanl_created_4b1e7a_idx"),
			models.Index(fields=["identity", "created_at"], name="audit_scanl_identit_2c9d51_idx"),
		]

	def save(self, *args, **kwargs):
		if not self._state.adding:
			raise AuditLogImmutable("Scan log entries cannot be updated")
		super().save(*args, **kwargs)

	def delete(self, *args, **kwargs):
		raise AuditLogImmutable("Scan log entries cannot be deleted")

	def __str__(self) -> str:
		return f"{self.created_at:%Y-%m-%d %H:%M:%S} {self.outcome} {self.raw_token[:40]}"
