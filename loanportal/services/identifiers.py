"""Human-readable identifiers issued once at creation time."""

import secrets
import string
from datetime import datetime, timezone

_BASE36_UPPER = string.digits + string.ascii_uppercase


def _epoch_ms(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def _random_base36(length: int) -> str:
    return "".join(secrets.choice(_BASE36_UPPER) for _ in range(length))


def generate_application_number(now: datetime | None = None) -> str:
    """``LA{YYYY}{MM}{last 6 digits of epoch ms}{2 random chars}``."""
    now = now or datetime.now(timezone.utc)
    stamp = str(_epoch_ms(now))[-6:]
    return f"LA{now.year}{now.month:02d}{stamp}{_random_base36(2)}"


def generate_dsa_id(bank_name: str, now: datetime | None = None) -> str:
    """Bank prefix + last 6 digits of epoch ms + 3 random chars, e.g. ``SBI123456X7Q``."""
    now = now or datetime.now(timezone.utc)
    prefix = bank_name[:3].upper()
    stamp = str(_epoch_ms(now))[-6:]
    return f"{prefix}{stamp}{_random_base36(3)}"


def generate_ticket_number(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    stamp = str(_epoch_ms(now))[-4:]
    return f"TK{now:%Y%m%d}{stamp}"
