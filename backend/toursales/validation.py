from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError, InvalidTimeFormatError, InvalidPaxQuantityError
from .time_utils import date_part


# 24-hour clock, seconds mandatory: "14:00:00" ok, "14:00" / "25:61:00" / "2pm" rejected
TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d):([0-5]\d)$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
# Provider wire format (no offset, no fraction)
PROVIDER_DATETIME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_time(value: Any) -> bool:
    return isinstance(value, str) and bool(TIME_RE.match(value))


def validate_time(value: Any, field: str = "time") -> str:
    """Return ``value`` unchanged if it is a strict HH:MM:SS time."""
    if not is_valid_time(value):
        raise InvalidTimeFormatError(
            f"{field} must be in HH:MM:SS format (24-hour)",
            details={"field": field, "value": value},
        )
    return value


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_RE.match(value))


def is_uuid(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def coerce_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def coerce_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return result


def normalize_service_date(value: Any, field: str = "date") -> str:
    """Accept an ISO-8601 date or datetime and keep the calendar date part."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be an ISO-8601 date")
    day = date_part(value)
    if not DATE_RE.match(day):
        raise ValidationError(f"{field} must be an ISO-8601 date")
    try:
        date.fromisoformat(day)
    except ValueError:
        raise ValidationError(f"{field} must be a valid calendar date")
    return day


# =============================================================================
# Request payloads
# =============================================================================


@dataclass(frozen=True)
class SaleRequest:
    """Validated body of POST /sales."""
    provider_name: str
    id_sale_provider: str
    name: str
    last_name: str
    email: str
    phone_number: str
    country: str
    city: str
    language: str
    service_date: str  # YYYY-MM-DD
    service_time: str  # HH:MM:SS
    qtypax: int
    opt: str
    total: Decimal
    item_ids: tuple[str, ...]

    @property
    def tour_code(self) -> str:
        # The first cart item's e-commerce id identifies the tour at the provider
        return self.item_ids[0]


class _FieldErrors:
    def __init__(self):
        self.errors: dict[str, str] = {}

    def add(self, field: str, message: str) -> None:
        self.errors.setdefault(field, message)

    def raise_if_any(self, message: str = "Request validation failed") -> None:
        if self.errors:
            raise ValidationError(message, details={"fields": self.errors})


def parse_create_sale_payload(payload: Any) -> SaleRequest:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    provider = payload.get("provider") or {}
    customer = payload.get("custommer") or {}
    if not isinstance(provider, dict) or not isinstance(customer, dict):
        raise ValidationError("provider and custommer must be objects")

    if _is_blank(customer.get("idSaleProvider")):
        raise ValidationError(
            "The provider sale id is required",
            code="MISSING_PROVIDER_SALE_ID",
        )

    errs = _FieldErrors()

    if _is_blank(provider.get("name")):
        errs.add("provider.name", "Provider name is required")
    elif not isinstance(provider["name"], str):
        errs.add("provider.name", "Provider name must be text")

    # phoneNumber and opt may arrive as numbers and are stringified below
    for key, label, text_only in (
        ("name", "Name", True),
        ("lastName", "Last name", True),
        ("phoneNumber", "Phone number", False),
        ("city", "City", True),
        ("idioma", "Language", True),
        ("opt", "Option", False),
    ):
        value = customer.get(key)
        if _is_blank(value):
            errs.add(f"custommer.{key}", f"{label} is required")
        elif text_only and not isinstance(value, str):
            errs.add(f"custommer.{key}", f"{label} must be text")

    if not is_valid_email(customer.get("email")):
        errs.add("custommer.email", "Invalid email")

    country = customer.get("country")
    if not isinstance(country, str) or len(country.strip()) != 2:
        errs.add("custommer.country", "Country must be a 2-letter code")

    service_date = None
    try:
        service_date = normalize_service_date(customer.get("date"), "custommer.date")
    except ValidationError as e:
        errs.add("custommer.date", e.message)

    if not is_valid_time(customer.get("time")):
        errs.add("custommer.time", "Time must be in HH:MM:SS format")

    qtypax = None
    try:
        qtypax = coerce_int(customer.get("qtypax"), "custommer.qtypax")
        if qtypax < 1:
            errs.add("custommer.qtypax", "Passenger count must be a positive integer")
    except ValidationError:
        errs.add("custommer.qtypax", "Passenger count must be a positive integer")

    total = None
    try:
        total = coerce_decimal(customer.get("total"), "custommer.total")
        if total < 0:
            errs.add("custommer.total", "Total must be a non-negative number")
    except ValidationError:
        errs.add("custommer.total", "Total must be a non-negative number")

    items = customer.get("itemsCart")
    item_ids: list[str] = []
    if not isinstance(items, list) or not items:
        errs.add("custommer.itemsCart", "At least one cart item is required")
    else:
        for i, item in enumerate(items):
            item_id = item.get("idItemEcommerce") if isinstance(item, dict) else None
            if not is_uuid(item_id):
                errs.add(f"custommer.itemsCart[{i}].idItemEcommerce", "idItemEcommerce must be a valid UUID")
            else:
                item_ids.append(item_id)

    errs.raise_if_any()

    return SaleRequest(
        provider_name=provider["name"].strip(),
        id_sale_provider=str(customer["idSaleProvider"]).strip(),
        name=customer["name"].strip(),
        last_name=customer["lastName"].strip(),
        email=customer["email"].strip(),
        phone_number=str(customer["phoneNumber"]).strip(),
        country=country.strip().upper(),
        city=customer["city"].strip(),
        language=customer["idioma"].strip(),
        service_date=service_date,
        service_time=customer["time"],
        qtypax=qtypax,
        opt=str(customer["opt"]).strip(),
        total=total,
        item_ids=tuple(item_ids),
    )


# Body key -> Sale attribute for PUT /sales/<id>
UPDATABLE_FIELDS = {
    "name": "name",
    "lastName": "last_name",
    "email": "email",
    "phoneNumber": "phone_number",
    "country": "country",
    "city": "city",
    "idioma": "language",
    "date": "service_date",
    "time": "service_time",
}


def parse_update_payload(payload: Any) -> dict:
    """
    Returns a patch keyed by Sale attribute. Keys outside UPDATABLE_FIELDS are
    ignored; empty values are treated as "not provided". Time format is not
    checked here, the lifecycle service owns that rule.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errs = _FieldErrors()
    patch: dict = {}

    for key, attr in UPDATABLE_FIELDS.items():
        if key not in payload:
            continue
        raw = payload[key]
        if _is_blank(raw):
            if raw is not None:
                errs.add(key, f"{key} cannot be empty")
            continue

        if key == "email":
            if is_valid_email(raw):
                patch[attr] = raw.strip()
            else:
                errs.add(key, "Invalid email")
        elif key == "country":
            if isinstance(raw, str) and len(raw.strip()) == 2:
                patch[attr] = raw.strip().upper()
            else:
                errs.add(key, "Country must be a 2-letter code")
        elif key == "date":
            try:
                patch[attr] = normalize_service_date(raw, key)
            except ValidationError as e:
                errs.add(key, e.message)
        elif key == "time":
            patch[attr] = raw
        else:
            patch[attr] = str(raw).strip()

    errs.raise_if_any()
    return patch


def _optional_reason(payload: dict) -> str | None:
    reason = payload.get("reason")
    if reason is None:
        return None
    if not isinstance(reason, str):
        raise ValidationError("reason must be text")
    return reason.strip() or None


def parse_pax_payload(payload: Any) -> tuple[int, str | None]:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    raw = payload.get("qtypax")
    try:
        qtypax = coerce_int(raw, "qtypax")
    except ValidationError:
        raise InvalidPaxQuantityError("The number of passengers to cancel must be a positive integer")
    return qtypax, _optional_reason(payload)


def parse_cancel_payload(payload: Any) -> str | None:
    if payload is None:
        return None
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return _optional_reason(payload)
