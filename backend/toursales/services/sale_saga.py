# Overview: End-to-end sale creation against the tour provider, with the partial-failure policy.

"""
Sale Saga

Creates a Sale by walking an ordered list of fallible steps:

    STARTED -> TOKEN_OK -> TOUR_FETCHED -> AVAILABILITY_OK -> CART_ADDED
            -> PASSENGERS_ADDED -> RATED -> PAID -> PERSISTED

Each step either advances the state or stops the walk with a StepFailure
tagged with its stage. The failure stage decides what happens next:

    stage                    outcome
    -----------------------  ----------------------------------------------
    AVAILABILITY, CART       abort, 400-class error, no Sale
    TOKEN, TOUR              abort if the error is caller input or mentions
                             availability/quota/cart; otherwise persist
                             PROCESSING with snapshot status ERROR
    PASSENGERS               persist PROCESSING, snapshot PARTIAL_SUCCESS
                             (re-raise if no booking id was obtained)
    RATER, PAYMENT           persist PROCESSING, snapshot PARTIAL_SUCCESS
    (none)                   persist CONFIRMED

The remote cart is never rolled back: once a booking exists, local
bookkeeping always proceeds. The charged amount is always the rater's
totalAmount, never the caller's total.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable

from ..errors import (
    AvailabilityError,
    DuplicateSaleError,
    SaleRejectedError,
    TourSalesError,
    ValidationError,
)
from ..models import Sale
from ..time_utils import to_provider_datetime, to_utc_z, utcnow
from ..validation import SaleRequest
from . import availability_service, identifier_service, sale_repository
from .provider_gateway import ProviderGateway
from .provider_token_cache import ProviderTokenCache


logger = logging.getLogger(__name__)

# States
STARTED = "STARTED"
TOKEN_OK = "TOKEN_OK"
TOUR_FETCHED = "TOUR_FETCHED"
AVAILABILITY_OK = "AVAILABILITY_OK"
CART_ADDED = "CART_ADDED"
PASSENGERS_ADDED = "PASSENGERS_ADDED"
RATED = "RATED"
PAID = "PAID"
PERSISTED = "PERSISTED"

# Failure stages
TOKEN = "TOKEN"
TOUR = "TOUR"
AVAILABILITY = "AVAILABILITY"
CART = "CART"
PASSENGERS = "PASSENGERS"
RATER = "RATER"
PAYMENT = "PAYMENT"

PRE_BOOKING_STAGES = (TOKEN, TOUR, AVAILABILITY, CART)
ABORT_STAGES = (AVAILABILITY, CART)
CLIENT_ERROR_KEYWORDS = ("availability", "quota", "cart")

# Snapshot markers
SNAPSHOT_SUCCESS = "SUCCESS"
SNAPSHOT_PARTIAL = "PARTIAL_SUCCESS"
SNAPSHOT_ERROR = "ERROR"

NOTIFICATION_TYPE = "EMAIL"


@dataclass(frozen=True)
class StepFailure:
    stage: str
    error: TourSalesError

    @property
    def message(self) -> str:
        return self.error.message


@dataclass
class SagaContext:
    request: SaleRequest
    state: str = STARTED
    tour_info: dict | None = None
    quota: dict | None = None
    age_groups: list[dict] = field(default_factory=list)
    cart: dict | None = None
    passengers: dict | None = None
    rater: dict | None = None
    payment: dict | None = None
    failure: StepFailure | None = None

    @property
    def booking_id(self) -> str | None:
        return (self.cart or {}).get("idBooking")


def _mentions_client_problem(message: str) -> bool:
    lowered = (message or "").lower()
    return any(keyword in lowered for keyword in CLIENT_ERROR_KEYWORDS)


def _decimal_or_none(value) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except ArithmeticError:
        return None


def _trim_tour_info(tour_info: dict | None, quota: dict | None) -> dict | None:
    if not tour_info:
        return None
    return {
        "tourCode": tour_info.get("tourCode"),
        "tourName": tour_info.get("tourName"),
        "startTime": tour_info.get("startTime"),
        "encounterType": tour_info.get("encounterType"),
        "quota": quota,
    }


class SaleSaga:
    def __init__(
        self,
        gateway: ProviderGateway,
        token_cache: ProviderTokenCache,
        *,
        payment_method: str = "W",
        currency: str = "CLP",
        clock: Callable[[], Any] = utcnow,
    ):
        self.gateway = gateway
        self.token_cache = token_cache
        self.payment_method = payment_method
        self.currency = currency
        self._clock = clock

    @classmethod
    def from_app(cls, app) -> "SaleSaga":
        provider = app.extensions["tour_provider"]
        return cls(
            provider.gateway,
            provider.token_cache,
            payment_method=app.config["PROVIDER_PAYMENT_METHOD"],
            currency=app.config["PROVIDER_CURRENCY"],
        )

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    def run(self, request: SaleRequest) -> Sale:
        existing = sale_repository.find_by_provider_id(request.id_sale_provider)
        if existing is not None:
            raise DuplicateSaleError(request.id_sale_provider, existing.secure_id)

        ctx = SagaContext(request=request)
        steps = (
            (TOKEN, TOKEN_OK, self._acquire_token),
            (TOUR, TOUR_FETCHED, self._fetch_tour),
            (AVAILABILITY, AVAILABILITY_OK, self._check_availability),
            (CART, CART_ADDED, self._add_to_cart),
            (PASSENGERS, PASSENGERS_ADDED, self._add_passengers),
            (RATER, RATED, self._get_rater),
            (PAYMENT, PAID, self._pay),
        )

        for stage, next_state, step in steps:
            logger.info("Sale %s: %s step started", request.id_sale_provider, stage)
            try:
                step(ctx)
            except TourSalesError as exc:
                ctx.failure = StepFailure(stage, exc)
                logger.warning(
                    "Sale %s: %s step failed (%s): %s",
                    request.id_sale_provider, stage, exc.code, exc.message,
                )
                break
            ctx.state = next_state

        return self._finish(ctx)

    def _finish(self, ctx: SagaContext) -> Sale:
        failure = ctx.failure
        if failure is None:
            return self._persist(ctx, status="CONFIRMED", snapshot_status=SNAPSHOT_SUCCESS)

        if failure.stage in PRE_BOOKING_STAGES:
            if (
                failure.stage in ABORT_STAGES
                or isinstance(failure.error, ValidationError)
                or _mentions_client_problem(failure.message)
            ):
                self._abort(failure)
            return self._persist(ctx, status="PROCESSING", snapshot_status=SNAPSHOT_ERROR)

        if failure.stage == PASSENGERS and not ctx.booking_id:
            raise failure.error

        return self._persist(ctx, status="PROCESSING", snapshot_status=SNAPSHOT_PARTIAL)

    @staticmethod
    def _abort(failure: StepFailure) -> None:
        error = failure.error
        if isinstance(error, (AvailabilityError, ValidationError)):
            raise error
        raise SaleRejectedError(
            error.message,
            details={"stage": failure.stage, "cause": error.code},
        ) from error

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _acquire_token(self, ctx: SagaContext) -> None:
        self.token_cache.get_token()

    def _fetch_tour(self, ctx: SagaContext) -> None:
        ctx.tour_info = self.gateway.get_tour_information(
            ctx.request.tour_code, ctx.request.service_date, 1, self.currency,
        )

    def _check_availability(self, ctx: SagaContext) -> None:
        ctx.quota = availability_service.check_availability(
            ctx.tour_info,
            ctx.request.service_date,
            ctx.request.service_time,
            ctx.request.qtypax,
        )

    def _add_to_cart(self, ctx: SagaContext) -> None:
        request = ctx.request
        meeting_point_id, pickup_location_id = availability_service.select_encounter(ctx.tour_info)
        ctx.age_groups = availability_service.build_age_groups(ctx.tour_info, request.tour_code, request.qtypax)
        ctx.cart = self.gateway.add_to_cart(
            request.tour_code,
            f"{request.service_date}T{request.service_time}",
            request.service_time,
            ctx.age_groups,
            meeting_point_id=meeting_point_id,
            pickup_location_id=pickup_location_id,
        )

    def _add_passengers(self, ctx: SagaContext) -> None:
        request = ctx.request
        # Anonymous passengers: no named list is transmitted
        ctx.passengers = self.gateway.add_passengers(
            ctx.booking_id,
            request.name,
            request.last_name,
            request.email,
            request.phone_number,
            request.country,
            notification_type=NOTIFICATION_TYPE,
            anonymous_passengers=True,
            passengers=[],
            items_cart=[],
        )

    def _get_rater(self, ctx: SagaContext) -> None:
        ctx.rater = self.gateway.get_rater(ctx.booking_id)

    def _pay(self, ctx: SagaContext) -> None:
        request = ctx.request
        ctx.payment = self.gateway.pay(
            ctx.booking_id,
            ctx.rater["totalAmount"],
            has_advance_payment=False,
            payment_date=to_provider_datetime(self._clock()),
            authorization_transaction_id=request.id_sale_provider,
            payment_method=self.payment_method,
            id_order_number=request.id_sale_provider,
            currency=self.currency,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _snapshot(self, ctx: SagaContext, snapshot_status: str) -> dict:
        snapshot = {
            "status": snapshot_status,
            "timestamp": to_utc_z(self._clock()),
            "lastState": ctx.state,
            "tourInfo": _trim_tour_info(ctx.tour_info, ctx.quota),
            "cartResponse": ctx.cart,
            "passengersResponse": ctx.passengers,
            "raterResponse": ctx.rater,
            "paymentResponse": ctx.payment,
        }
        if ctx.failure is not None:
            snapshot["error"] = {
                "stage": ctx.failure.stage,
                "code": ctx.failure.error.code,
                "message": ctx.failure.message,
            }
        return snapshot

    def _persist(self, ctx: SagaContext, *, status: str, snapshot_status: str) -> Sale:
        request = ctx.request
        payment = ctx.payment or {}
        created_at = self._clock()

        fields = {
            "provider_name": request.provider_name,
            "id_sale_provider": request.id_sale_provider,
            "secure_id": identifier_service.new_secure_id(created_at),
            "name": request.name,
            "last_name": request.last_name,
            "email": request.email,
            "phone_number": request.phone_number,
            "country": request.country,
            "city": request.city,
            "language": request.language,
            "service_date": request.service_date,
            "service_time": request.service_time,
            "qty_pax": request.qtypax,
            "opt": request.opt,
            "total": request.total,
            "status": status,
            "ozytrip_booking_id": ctx.booking_id,
            "ozytrip_sales_code": payment.get("salesCode"),
            "ozytrip_balance": _decimal_or_none(payment.get("balance")),
            "ozytrip_has_advance_payment": payment.get("hasAdvancePayment"),
            "ozytrip_response": self._snapshot(ctx, snapshot_status),
            "created_at": created_at,
            "updated_at": created_at,
        }
        sale = sale_repository.create_with_items(fields, request.item_ids)
        ctx.state = PERSISTED
        logger.info(
            "Sale %s persisted as %s (%s, secure id %s)",
            request.id_sale_provider, status, snapshot_status, sale.secure_id,
        )
        return sale
