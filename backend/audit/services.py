from __future__ import annotations

import uuid
from typing import Optional

from django.db.models import QuerySet

from users.models import User

from .exceptions import ScanLogAccessDenied
from .models import ScanLog


def append_scan_log(
	*,
	operator: User,
	raw_token: str,
	is_valid: bool,
	outcome: str,
	detail: str = "",
	identity: Optional[User] = None,
) -> ScanLog:
	# Errors propagate: the caller decides how to surface a failed append.
	return ScanLog.objects.create(
		operator=operator,
		identity=identity,
		raw_token=raw_token,
		is_valid=is_valid,
		outcome=outcome,
		detail=(detail or "")[:255],
	)


def list_scan_logs() -> QuerySet[ScanLog]:
	return ScanLog.objects.select_related("identity", "operator").order_by("-created_at", "-id")


def list_scan_logs_for_identity(identity_id: str | uuid.UUID, requester: User) -> QuerySet[ScanLog]:
	if requester.role != User.ROLE_ADMIN and str(requester.pk) != str(identity_id):
		raise ScanLogAccessDenied(ScanLogAccessDenied.message)
	return list_scan_logs().filter(identity_id=identity_id)
