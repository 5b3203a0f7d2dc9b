# Overview: Pure availability checks over provider tour information.

"""
Availability checks against a provider TourInfo:

    {
        "dates": [{"date": "2025-05-15",
                   "quotas": [{"startTime": "14:00:00", "endTime": "18:00:00",
                               "availableQuota": 2, "isAvailable": true}]}],
        "priceHeaders": [{"prices": [{"ageGroupCode": "ADT", ...}]}],
        "encounterType": "NONE" | "MEETINGPOINT" | "PICKUPLOCATION",
        "meetingPoints": [...], "pickupLocations": [...]
    }

No I/O, no database. Failures are AvailabilityError with one of the stable
codes below; callers branch on ``error.code``.
"""

from __future__ import annotations

from ..errors import AvailabilityError, ValidationError
from ..time_utils import date_part


NO_AVAILABILITY = "NO_AVAILABILITY"
DATE_NOT_AVAILABLE = "DATE_NOT_AVAILABLE"
TIME_NOT_AVAILABLE = "TIME_NOT_AVAILABLE"
EXCEEDS_AVAILABLE_QUOTA = "EXCEEDS_AVAILABLE_QUOTA"

ADULT_AGE_GROUP = "ADT"
ENCOUNTER_TYPES = ("NONE", "MEETINGPOINT", "PICKUPLOCATION")


def find_date(tour_info: dict, date: str) -> dict:
    dates = tour_info.get("dates") or []
    if not dates:
        raise AvailabilityError("The tour has no available dates", code=NO_AVAILABILITY)

    wanted = date_part(date)
    for entry in dates:
        if date_part(str(entry.get("date") or "")) == wanted:
            return entry

    raise AvailabilityError(
        "The requested date is not available",
        details={"date": wanted},
        code=DATE_NOT_AVAILABLE,
    )


def find_quota(tour_date: dict, start_time: str) -> dict:
    for quota in tour_date.get("quotas") or []:
        if quota.get("startTime") == start_time:
            return quota

    raise AvailabilityError(
        "The requested time is not available",
        details={"date": tour_date.get("date"), "startTime": start_time},
        code=TIME_NOT_AVAILABLE,
    )


def has_price_schedule(tour_info: dict) -> bool:
    return any(header.get("prices") for header in tour_info.get("priceHeaders") or [])


def schedule_age_group_codes(tour_info: dict) -> list[str]:
    """Distinct ageGroupCode values across all price headers, in first-seen order."""
    codes: list[str] = []
    for header in tour_info.get("priceHeaders") or []:
        for price in header.get("prices") or []:
            code = price.get("ageGroupCode")
            if code and code not in codes:
                codes.append(code)
    return codes


def build_age_groups(tour_info: dict, id_item_ecommerce: str, qtypax: int) -> list[dict]:
    """
    Age-group breakdown sent to the cart, one entry per code in the tour's
    price schedule. Every passenger travels as ADT; groups left at zero are
    dropped. Without a schedule a single ADT group is sent.
    """
    if not has_price_schedule(tour_info):
        return [{"idItemEcommerce": id_item_ecommerce, "ageGroupCode": ADULT_AGE_GROUP, "quantity": qtypax}]

    codes = schedule_age_group_codes(tour_info)
    if ADULT_AGE_GROUP not in codes:
        raise ValidationError(
            "The tour's price schedule has no adult (ADT) age group",
            details={"ageGroupCodes": codes},
            code="INVALID_AGE_GROUP",
        )

    groups = [
        {
            "idItemEcommerce": id_item_ecommerce,
            "ageGroupCode": code,
            "quantity": qtypax if code == ADULT_AGE_GROUP else 0,
        }
        for code in codes
    ]
    return [group for group in groups if group["quantity"] > 0]


def compute_requested_pax(tour_info: dict, qtypax: int, age_groups: list[dict] | None = None) -> int:
    """
    Passengers counted against the quota. With a price schedule only the ADT
    group's quantity counts; without one the raw qtypax is used.
    """
    if not has_price_schedule(tour_info):
        return qtypax
    groups = age_groups if age_groups is not None else build_age_groups(tour_info, "", qtypax)
    return sum(int(g.get("quantity") or 0) for g in groups if g.get("ageGroupCode") == ADULT_AGE_GROUP)


def check_quota(quota: dict, requested_pax: int) -> None:
    available = quota.get("availableQuota") or 0
    # A slot flagged unavailable has no usable quota whatever the counter says
    if quota.get("isAvailable") is False:
        available = 0

    if requested_pax > available:
        raise AvailabilityError(
            f"Not enough quota available. Requested: {requested_pax}, available: {available}",
            details={"requested": requested_pax, "available": available},
            code=EXCEEDS_AVAILABLE_QUOTA,
        )


def check_availability(tour_info: dict, date: str, start_time: str, qtypax: int) -> dict:
    """Run the full gate; returns the matching quota on success."""
    tour_date = find_date(tour_info, date)
    quota = find_quota(tour_date, start_time)
    check_quota(quota, compute_requested_pax(tour_info, qtypax))
    return quota


def select_encounter(tour_info: dict) -> tuple[int | None, str | None]:
    """
    (meetingPointId, pickupLocationId) for the cart step. Exactly one of them
    is set for MEETINGPOINT / PICKUPLOCATION tours; both are None for NONE.
    """
    encounter_type = str(tour_info.get("encounterType") or "NONE").upper()
    if encounter_type not in ENCOUNTER_TYPES:
        raise ValidationError(f"Unsupported encounter type: {encounter_type}", code="INVALID_ENCOUNTER_TYPE")

    if encounter_type == "MEETINGPOINT":
        points = tour_info.get("meetingPoints") or []
        if not points or points[0].get("id") is None:
            raise ValidationError("The tour requires a meeting point but none is offered", code="INVALID_ENCOUNTER_TYPE")
        return points[0]["id"], None

    if encounter_type == "PICKUPLOCATION":
        locations = tour_info.get("pickupLocations") or []
        if not locations or locations[0].get("id") is None:
            raise ValidationError("The tour requires a pickup location but none is offered", code="INVALID_ENCOUNTER_TYPE")
        return None, str(locations[0]["id"])

    return None, None
