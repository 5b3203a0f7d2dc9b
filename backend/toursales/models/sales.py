from __future__ import annotations

import json

from ..extensions import db
from toursales.time_utils import to_utc_z, to_iso_date, utcnow


SALE_STATUSES = ("PROCESSING", "CONFIRMED", "CANCELLED", "REFUNDED")
# Terminal states: no update, pax adjustment or cancellation allowed
TERMINAL_SALE_STATUSES = frozenset({"CANCELLED", "REFUNDED"})

CART_ITEM_STATUSES = ("ACTIVE", "CANCELLED")


class Sale(db.Model):
    """
    One tour purchase, mirrored against the provider booking.

    IDENTIFIERS:
    - id: internal primary key, never leaves the service
    - id_sale_provider: caller supplied, unique, immutable
    - secure_id: generated (TUR-YYYYMMDD-XXXX), unique, exposed as the public id

    LIFECYCLE:
        PROCESSING -> CONFIRMED -> CANCELLED
        PROCESSING -> CANCELLED
        REFUNDED is set outside this service.
    CANCELLED and REFUNDED are terminal.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("id_sale_provider", name="uq_sales_id_sale_provider"),
        db.UniqueConstraint("secure_id", name="uq_sales_secure_id"),
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    id_sale_provider = db.Column(db.String(100), nullable=False)
    secure_id = db.Column(db.String(32), nullable=False)

    provider_name = db.Column(db.String(120), nullable=False)

    # Customer
    name = db.Column(db.String(120), nullable=False)
    last_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone_number = db.Column(db.String(40), nullable=False)
    country = db.Column(db.String(2), nullable=False)
    city = db.Column(db.String(120), nullable=False)
    language = db.Column(db.String(40), nullable=False)
    service_date = db.Column(db.Date, nullable=False)
    service_time = db.Column(db.String(8), nullable=False, default="00:00:00")  # HH:MM:SS
    qty_pax = db.Column(db.Integer, nullable=False)
    opt = db.Column(db.String(255), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    # Provider linkage
    ozytrip_booking_id = db.Column(db.String(64), nullable=True, index=True)
    ozytrip_sales_code = db.Column(db.String(64), nullable=True)
    ozytrip_balance = db.Column(db.Numeric(12, 2), nullable=True)
    ozytrip_has_advance_payment = db.Column(db.Boolean, nullable=True)
    ozytrip_response = db.Column(db.Text, nullable=True)  # JSON snapshot of the last provider interaction

    status = db.Column(db.String(16), nullable=False, default="PROCESSING", index=True)
    cancel_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    cart_items = db.relationship(
        "CartItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="CartItem.id",
        lazy="selectin",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_SALE_STATUSES

    @property
    def active_items(self) -> list["CartItem"]:
        return [item for item in self.cart_items if item.status == "ACTIVE"]

    @property
    def provider_snapshot(self) -> dict | None:
        if not self.ozytrip_response:
            return None
        try:
            return json.loads(self.ozytrip_response)
        except ValueError:
            return {"raw": self.ozytrip_response}

    def to_dict(self) -> dict:
        """
        Public representation. The internal primary key is never exposed:
        ``id`` is the secure id.
        """
        return {
            "id": self.secure_id,
            "idSaleProvider": self.id_sale_provider,
            "providerName": self.provider_name,
            "name": self.name,
            "lastName": self.last_name,
            "email": self.email,
            "phoneNumber": self.phone_number,
            "country": self.country,
            "city": self.city,
            "idioma": self.language,
            "date": to_iso_date(self.service_date),
            "time": self.service_time,
            "qtypax": self.qty_pax,
            "opt": self.opt,
            "total": float(self.total) if self.total is not None else None,
            "status": self.status,
            "cancelReason": self.cancel_reason,
            "ozyTripBookingId": self.ozytrip_booking_id,
            "ozyTripSalesCode": self.ozytrip_sales_code,
            "ozyTripBalance": float(self.ozytrip_balance) if self.ozytrip_balance is not None else None,
            "ozyTripHasAdvancePayment": self.ozytrip_has_advance_payment,
            "ozyTripResponse": self.provider_snapshot,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
            "cartItems": [item.to_dict() for item in self.cart_items],
        }


class CartItem(db.Model):
    """
    One purchased line of a Sale. Owned exclusively by its Sale and removed only
    through the Sale's cascade. The number of ACTIVE items is the passenger
    capacity still honoured.
    """
    __tablename__ = "cart_items"
    __table_args__ = (
        db.Index("ix_cart_items_sale_status", "sale_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    id_item_ecommerce = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="ACTIVE")
    cancel_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    sale = db.relationship("Sale", back_populates="cart_items")

    def to_dict(self) -> dict:
        # No internal id / sale_id in the public shape
        return {
            "idItemEcommerce": self.id_item_ecommerce,
            "status": self.status,
            "cancelReason": self.cancel_reason,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
