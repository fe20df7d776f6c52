class AuditLogImmutable(Exception):
	"""Scan log entries are append-only."""


class ScanLogAccessDenied(Exception):
	"""Requester may not read another identity's scan log."""

	message = "Not authorized to view these logs"
