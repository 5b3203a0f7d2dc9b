# Overview: UTC clock and date/time formatting helpers shared by models and services.

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def date_part(value: str) -> str:
    """'2025-05-15T14:00:00' -> '2025-05-15' (plain dates pass through)."""
    return value.strip().split("T", 1)[0]


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_provider_datetime(dt: datetime) -> str:
    """Provider wire format: yyyy-MM-ddTHH:mm:ss, no offset, no fraction."""
    return dt.replace(microsecond=0, tzinfo=None).strftime("%Y-%m-%dT%H:%M:%S")


def to_iso_date(value: Optional[date]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()
