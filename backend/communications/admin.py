from django.contrib import admin
from .models import EmailDelivery


@admin.register(EmailDelivery)
class EmailDeliveryAdmin(admin.ModelAdmin):
	list_display = (
		"id",
		"recipient_email",
		"subject",
		"category",
		"status",
		"sent_at",
		"created_at",
	)
	search_fields = ("recipient_email", "subject", "idempotency_key", "provider_message_id")
	list_filter = ("status", "category", "created_at")
	readonly_fields = ("attachment_names", "error_message", "provider_message_id", "sent_at", "created_at", "updated_at")
