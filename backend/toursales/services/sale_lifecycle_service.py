# Overview: Post-creation sale mutations (detail updates, passenger and full cancellation).

"""
Sale Lifecycle Service

STATUS GATE: every mutation rejects CANCELLED and REFUNDED sales with
InvalidStatusError before touching any row.

PASSENGER CANCELLATION:
- Cancels exactly qtypax ACTIVE items, first-N in creation order
- Decrements qty_pax by qtypax; at zero the sale becomes CANCELLED
- Otherwise the sale keeps its current status
- Post-check: a sale left without ACTIVE items is force-cancelled even if
  the counter disagrees

CONFLICTS: each unit of work locks the sale row and commits once. A lock
timeout (OperationalError) or a version_id mismatch (StaleDataError) rolls
the session back and re-runs the whole unit from a fresh read, so a unit
must stay safe to repeat. The passenger post-check is its own unit for
that reason: re-running the item cancellation after it committed would
cancel more passengers than asked.
"""

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import (
    InvalidPaxOperationError,
    InvalidPaxQuantityError,
    InvalidStatusError,
    SaleNotFoundError,
)
from ..extensions import db
from ..models import Sale
from ..validation import validate_time
from . import sale_repository
from .sale_repository import ItemMutation


logger = logging.getLogger(__name__)

# Sale attributes callers may change after creation
MUTABLE_ATTRIBUTES = frozenset({
    "name", "last_name", "email", "phone_number",
    "country", "city", "language", "service_date", "service_time",
})

PARTIAL_ITEM_REASON = "Partial passenger cancellation"
TOTAL_PAX_REASON = "Total passenger cancellation"
ALL_ITEMS_REASON = "All items have been cancelled"

CONFLICT_ATTEMPTS = 3
CONFLICT_BACKOFF_SECONDS = 0.1


def _in_unit_of_work(identifier: str, unit, *, gate: bool = True):
    """
    Run ``unit(sale)`` against a freshly locked sale and return its result.
    With ``gate`` the status gate runs first. Remote provider calls never go
    through here.
    """
    for attempt in range(1, CONFLICT_ATTEMPTS + 1):
        try:
            sale = get_sale(identifier, for_update=True)
            if gate:
                _ensure_mutable(sale)
            return unit(sale)
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt == CONFLICT_ATTEMPTS:
                logger.error("Sale %s: giving up after %d conflicting writes", identifier, attempt)
                raise
            logger.warning(
                "Sale %s: %s on attempt %d/%d, re-reading",
                identifier, type(exc).__name__, attempt, CONFLICT_ATTEMPTS,
            )
            time.sleep(CONFLICT_BACKOFF_SECONDS * attempt)


def get_sale(identifier: str, *, for_update: bool = False) -> Sale:
    sale = sale_repository.find_by_either_id(identifier, for_update=for_update)
    if sale is None:
        raise SaleNotFoundError("Sale not found", details={"id": identifier})
    return sale


def _ensure_mutable(sale: Sale) -> None:
    if sale.is_terminal:
        raise InvalidStatusError(
            f"Cannot modify a sale in status {sale.status}",
            details={"status": sale.status},
        )


def update_details(identifier: str, patch: dict) -> Sale:
    """Apply a validated patch of customer/locale/date/time fields."""
    fields = {key: value for key, value in patch.items() if key in MUTABLE_ATTRIBUTES}

    def _apply(sale):
        if "service_time" in fields:
            validate_time(fields["service_time"], "time")
        sale_repository.update_fields(sale, fields)
        logger.info("Sale %s updated (%s)", sale.secure_id, ", ".join(sorted(fields)) or "no fields")
        return sale

    return _in_unit_of_work(identifier, _apply)


def cancel_partial(identifier: str, qtypax: int, reason: str | None = None) -> Sale:
    """Cancel ``qtypax`` passengers of a sale."""
    if isinstance(qtypax, bool) or not isinstance(qtypax, int) or qtypax < 1:
        raise InvalidPaxQuantityError("The number of passengers to cancel must be a positive integer")

    def _cancel_items(sale):
        if qtypax > sale.qty_pax:
            raise InvalidPaxOperationError(
                f"Cannot cancel more passengers than the sale holds ({sale.qty_pax} available)",
                details={"requested": qtypax, "available": sale.qty_pax},
            )

        mutations = [
            ItemMutation(item.id, "CANCELLED", reason or PARTIAL_ITEM_REASON)
            for item in sale.active_items[:qtypax]
        ]

        remaining_pax = sale.qty_pax - qtypax
        fields: dict = {"qty_pax": remaining_pax}
        if remaining_pax == 0:
            fields["status"] = "CANCELLED"
            fields["cancel_reason"] = reason or TOTAL_PAX_REASON

        sale_repository.transactional_update(sale, mutations, fields)
        logger.info("Sale %s: cancelled %d passengers, %d remain", sale.secure_id, qtypax, sale.qty_pax)
        return sale

    def _close_if_emptied(sale):
        # Left alone if a concurrent writer already closed the sale
        if not sale.active_items and not sale.is_terminal:
            logger.warning("Sale %s has no active items left; cancelling", sale.secure_id)
            sale_repository.update_fields(sale, {
                "status": "CANCELLED",
                "cancel_reason": reason or ALL_ITEMS_REASON,
            })
        return sale

    sale = _in_unit_of_work(identifier, _cancel_items)
    if sale.status == "CANCELLED":
        return sale
    return _in_unit_of_work(identifier, _close_if_emptied, gate=False)


def cancel_full(identifier: str, reason: str | None = None) -> Sale:
    """Cancel every ACTIVE item and the sale itself, atomically."""
    def _cancel_all(sale):
        item_reason = f"Full sale cancellation. Reason: {reason or 'Not specified'}"
        mutations = [ItemMutation(item.id, "CANCELLED", item_reason) for item in sale.active_items]

        sale_repository.transactional_update(sale, mutations, {
            "status": "CANCELLED",
            "cancel_reason": reason or "No reason specified",
        })
        logger.info("Sale %s cancelled (%d items)", sale.secure_id, len(mutations))
        return sale

    return _in_unit_of_work(identifier, _cancel_all)
