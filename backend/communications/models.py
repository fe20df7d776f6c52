from django.db import models


class EmailDelivery(models.Model):
	STATUS_PENDING = "PENDING"
	STATUS_SENT = "SENT"
	STATUS_FAILED = "FAILED"

	STATUS_CHOICES = [
		(STATUS_PENDING, "Pending"),
		(STATUS_SENT, "Sent"),
		(STATUS_FAILED, "Failed"),
	]

	recipient_email = models.EmailField()
	subject = models.CharField(max_length=255)
	body_text = models.TextField(blank=True, default="")
	body_html = models.TextField(blank=True, default="")
	category = models.CharField(max_length=50, default="transactional")
	attachment_names = models.JSONField(default=list, blank=True)
	provider_message_id = models.CharField(max_length=255, blank=True, default="")
	idempotency_key = models.CharField(max_length=150, blank=True, default="", db_index=True)
	status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
	error_message = models.TextField(blank=True, default="")
	sent_at = models.DateTimeField(blank=True, null=True)
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		ordering = ["-created_at"]
		constraints = [
			models.UniqueConstraint(
				fields=["recipient_email", "idempotency_key"],
				condition=~models.Q(idempotency_key=""),
				name="communications_unique_email_idempotency",
			)
		]

	def __str__(self) -> str:
		return f"{self.recipient_email} - {self.subject} ({self.status})"
