from __future__ import annotations

import uuid

from django.db.models import QuerySet

from .models import User


def admins() -> QuerySet[User]:
    return User.objects.filter(role=User.ROLE_ADMIN, is_active=True).order_by("email")


def email_exists(email: str) -> bool:
    normalized = User.objects.normalize_email(email)
    return User.objects.filter(email__iexact=normalized).exists()


def get_identity(identity_id: str | uuid.UUID) -> User | None:
    """Lookup by primary key.

    A malformed id raises django.core.exceptions.ValidationError; callers
    decide whether that is an error or a classification.
    """

    return User.objects.filter(pk=identity_id).first()
