from django.contrib import admin

from .models import ScanLog


@admin.register(ScanLog)
class ScanLogAdmin(admin.ModelAdmin):
	list_display = ("created_at", "outcome", "is_valid", "identity", "operator", "raw_token")
	list_filter = ("outcome", "is_valid")
	search_fields = ("raw_token", "identity__email", "operator__email", "detail")
	readonly_fields = (
		"created_at",
		"identity",
		"operator",
		"raw_token",
		"is_valid",
		"outcome",
		"detail",
	)

	def has_add_permission(self, request):
		return False

	def has_change_permission(self, request, obj=None):
		return False

	def has_delete_permission(self, request, obj=None):
		return False
