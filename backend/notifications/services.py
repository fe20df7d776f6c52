from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable, Optional

from django.utils import timezone

from users.models import User
from users.selectors import admins

from .models import Notification


logger = logging.getLogger(__name__)

REGISTRATION_NOTIFICATION_TYPE = "REGISTRATION"
REGISTRATION_DEDUPE_SECONDS = 24 * 60 * 60


def notify_users(
    *,
    recipients: Iterable[User],
    title: str,
    body: str = "",
    url: str = "",
    type: str = "",
    dedupe_key: str = "",
    dedupe_within_seconds: Optional[int] = None,
) -> int:
    recipients_list = list(recipients)
    if not recipients_list:
        return 0

    if dedupe_within_seconds is not None and dedupe_key:
        since = timezone.now() - timedelta(seconds=int(dedupe_within_seconds))
        existing_ids = set(
            Notification.objects.filter(
                recipient__in=recipients_list,
                dedupe_key=dedupe_key,
                created_at__gte=since,
            ).values_list("recipient_id", flat=True)
        )
        recipients_list = [u for u in recipients_list if u.id not in existing_ids]
        if not recipients_list:
            return 0

    notifications = [
        Notification(
            recipient=u,
            type=type,
            title=title,
            body=body,
            url=url,
            dedupe_key=dedupe_key,
        )
        for u in recipients_list
    ]
    Notification.objects.bulk_create(notifications)
    return len(notifications)


def notify_admins_of_registration(identity: User) -> int:
    """Tell every active admin that a new registrant was issued a pass."""

    created = notify_users(
        recipients=admins(),
        title="New registration",
        body=f"{identity.name} ({identity.email}) registered with number {identity.registration_number}.",
        url=f"/admin/users/user/{identity.pk}/change/",
        type=REGISTRATION_NOTIFICATION_TYPE,
        dedupe_key=f"registration:{identity.pk}",
        dedupe_within_seconds=REGISTRATION_DEDUPE_SECONDS,
    )
    logger.info(
        "notifications.registration_fanout",
        extra={"identity_id": str(identity.pk), "created": created},
    )
    return created


def mark_all_read_for_user(user: User) -> int:
    now = timezone.now()
    return Notification.objects.filter(recipient=user, read_at__isnull=True).update(read_at=now)
