from __future__ import annotations

from secrets import randbelow


def generate_resend_password(first_name: str) -> str:
    """Memorable password sent with a resent registration email: `<firstname>@<4 digits>`."""

    stem = "".join((first_name or "").lower().split()) or "user"
    return f"{stem}@{1000 + randbelow(9000)}"
