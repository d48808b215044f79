"""Human-readable ticket ids: FB-<epoch millis>-<4 base-36 chars>."""

import re
import secrets
import string
from datetime import datetime, timezone

BASE36_ALPHABET = string.digits + string.ascii_uppercase
SUFFIX_LENGTH = 4

TICKET_ID_PATTERN = re.compile(r"^FB-\d{13,}-[0-9A-Z]{4}$")


def generate_ticket_id(now: datetime | None = None) -> str:
    """Generate a new ticket id from the creation time and a random suffix."""
    now = now or datetime.now(timezone.utc)
    millis = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"FB-{millis}-{suffix}"


def is_valid_ticket_id(value: str) -> bool:
    return bool(TICKET_ID_PATTERN.match(value))
