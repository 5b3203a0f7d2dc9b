# Overview: Transactional persistence for Sale and its CartItems.

"""
Sale Repository

GUARANTEES:
- A sale and its cart items are created in one transaction: all rows or none
- id_sale_provider and secure_id are unique (DB constraints, checked again here)
- Item mutations and the parent sale update commit together

Lock contention and optimistic-lock conflicts are re-raised untouched so
the lifecycle service can re-run its unit of work; any other database
failure becomes StorageError.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import DuplicateSaleError, StorageError
from ..extensions import db
from ..models import Sale, CartItem
from ..time_utils import utcnow


@dataclass(frozen=True)
class ItemMutation:
    item_id: int
    status: str
    cancel_reason: str | None = None


def _coerce_columns(fields: dict) -> dict:
    values = dict(fields)
    service_date = values.get("service_date")
    if isinstance(service_date, str):
        values["service_date"] = date.fromisoformat(service_date)
    snapshot = values.get("ozytrip_response")
    if snapshot is not None and not isinstance(snapshot, str):
        values["ozytrip_response"] = json.dumps(snapshot, default=str)
    return values


# =============================================================================
# Lookups
# =============================================================================


def find_by_provider_id(id_sale_provider: str) -> Sale | None:
    return db.session.query(Sale).filter_by(id_sale_provider=id_sale_provider).first()


def find_by_secure_id(secure_id: str) -> Sale | None:
    return db.session.query(Sale).filter_by(secure_id=secure_id).first()


def find_by_either_id(identifier: str, *, for_update: bool = False) -> Sale | None:
    """
    Match on id_sale_provider OR secure_id. Both columns are unique, so the
    first match is the only match.
    """
    query = db.session.query(Sale).filter(
        or_(Sale.id_sale_provider == identifier, Sale.secure_id == identifier)
    )
    if for_update:
        # No-op on SQLite; Sale.version_id still catches a concurrent writer there
        query = query.with_for_update()
    return query.first()


def secure_id_exists(secure_id: str) -> bool:
    return db.session.query(Sale.id).filter_by(secure_id=secure_id).first() is not None


# =============================================================================
# Writes
# =============================================================================


def create_with_items(fields: dict, item_ids: Iterable[str]) -> Sale:
    """Insert a sale and one ACTIVE cart item per e-commerce item id."""
    values = _coerce_columns(fields)
    sale = Sale(**values)
    for item_id in item_ids:
        sale.cart_items.append(CartItem(id_item_ecommerce=item_id, status="ACTIVE"))

    db.session.add(sale)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        existing = find_by_provider_id(values.get("id_sale_provider"))
        if existing is not None:
            raise DuplicateSaleError(existing.id_sale_provider, existing.secure_id) from exc
        raise StorageError("Could not store the sale") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError("Could not store the sale") from exc
    return sale


def update_fields(sale: Sale, fields: dict) -> Sale:
    for key, value in _coerce_columns(fields).items():
        setattr(sale, key, value)
    sale.updated_at = utcnow()
    try:
        db.session.commit()
    except (OperationalError, StaleDataError):
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError("Could not update the sale") from exc
    return sale


def transactional_update(sale: Sale, item_mutations: Iterable[ItemMutation], sale_fields: dict | None = None) -> Sale:
    """
    Apply item status changes and the parent sale update in one commit.
    Mutations for items that do not belong to ``sale`` are an error.
    """
    now = utcnow()
    items_by_id = {item.id: item for item in sale.cart_items}

    try:
        for mutation in item_mutations:
            item = items_by_id.get(mutation.item_id)
            if item is None:
                raise StorageError(
                    "Cart item does not belong to this sale",
                    details={"item_id": mutation.item_id},
                )
            item.status = mutation.status
            item.cancel_reason = mutation.cancel_reason
            item.updated_at = now

        for key, value in _coerce_columns(sale_fields or {}).items():
            setattr(sale, key, value)
        sale.updated_at = now

        db.session.commit()
    except StorageError:
        db.session.rollback()
        raise
    except (OperationalError, StaleDataError):
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError("Could not update the sale") from exc
    return sale
