# Overview: Public sale identifier generation (TUR-YYYYMMDD-XXXX).

"""
Identifier Service - external-facing sale ids

WHY: The internal primary key must never leave the service. Sales are exposed
by a secure id derived from the creation date plus a short base36 suffix.

FORMAT: TUR-YYYYMMDD-XXXX
- YYYYMMDD: creation date (UTC)
- XXXX: last 4 chars of base36(epoch millis) + base36(random 0..999), uppercased

UNIQUENESS: The suffix alone is not collision-free, so every candidate is
checked against storage; the unique constraint on sales.secure_id is the
final guard.
"""

from __future__ import annotations

import re
import secrets
import time
from datetime import datetime

from ..errors import StorageError
from ..time_utils import utcnow
from . import sale_repository


SECURE_ID_PREFIX = "TUR"
SECURE_ID_RE = re.compile(r"^TUR-\d{8}-[0-9A-Z]{4}$")
MAX_GENERATION_ATTEMPTS = 10

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def generate_secure_id(
    created_at: datetime | None = None,
    *,
    epoch_millis: int | None = None,
    random_part: int | None = None,
) -> str:
    """Build one candidate id. Does not touch storage."""
    created_at = created_at or utcnow()
    if epoch_millis is None:
        epoch_millis = int(time.time() * 1000)
    if random_part is None:
        random_part = secrets.randbelow(1000)

    suffix = (to_base36(epoch_millis) + to_base36(random_part).rjust(3, "0"))[-4:].upper()
    return f"{SECURE_ID_PREFIX}-{created_at:%Y%m%d}-{suffix}"


def is_secure_id(value) -> bool:
    return isinstance(value, str) and bool(SECURE_ID_RE.match(value))


def new_secure_id(created_at: datetime | None = None, *, max_attempts: int = MAX_GENERATION_ATTEMPTS) -> str:
    """Generate a secure id not yet used by any sale."""
    for _ in range(max_attempts):
        candidate = generate_secure_id(created_at)
        if not sale_repository.secure_id_exists(candidate):
            return candidate
    raise StorageError(
        "Could not generate a unique sale identifier",
        details={"attempts": max_attempts},
    )
