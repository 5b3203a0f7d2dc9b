# Overview: Typed client for the tour provider booking API (tour lookup, cart, passengers, rater, payment).

"""
Provider Gateway

Wraps the remote tour provider. Every operation:
1. Validates its arguments locally (ValidationError, before any network I/O)
2. Acquires a bearer token from the injected ProviderTokenCache
3. Performs exactly one HTTP call (no retries)
4. Normalizes failures into the ProviderError family

REMOTE STATUS MAPPING (all operations):
- 401 -> AuthError
- 404 -> ProviderNotFoundError (TourNotFoundError for tour lookup)
- 5xx -> ProviderInternalError
- 400 with a field-keyed "errors" payload -> ProviderValidationError
- anything else non-2xx -> ProviderError carrying the remote message
- no response at all -> ProviderUnreachableError
- 2xx with an unusable body -> ProviderResponseError

An empty 200 body is only accepted for addPassengers and pay, where the
provider legitimately answers that way; a minimal success result is
synthesized instead.
"""

from __future__ import annotations

import logging
from numbers import Number
from typing import Any

import httpx

from ..errors import (
    AuthError,
    ValidationError,
    ProviderError,
    ProviderNotFoundError,
    TourNotFoundError,
    ProviderInternalError,
    ProviderUnreachableError,
    ProviderValidationError,
    ProviderResponseError,
)
from ..validation import DATE_RE, PROVIDER_DATETIME_RE, TIME_RE, is_valid_email
from .provider_token_cache import ProviderTokenCache


logger = logging.getLogger(__name__)

MAX_TOUR_DAYS = 150
NOTIFICATION_TYPES = ("EMAIL", "WHATSAPP")


def _missing(fields: dict) -> list[str]:
    return [name for name, value in fields.items() if value is None or value == "" or value == []]


def _remote_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "title", "error_description", "error"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    text = response.text.strip()
    return text[:200] if text else (response.reason_phrase or f"HTTP {response.status_code}")


def _combined_field_errors(response: httpx.Response) -> str | None:
    """'{"errors": {"StartTime": ["bad"]}}' -> 'StartTime: bad'"""
    try:
        body = response.json()
    except ValueError:
        return None
    errors = body.get("errors") if isinstance(body, dict) else None
    if not errors:
        return None
    if isinstance(errors, dict):
        parts = []
        for field, messages in errors.items():
            if isinstance(messages, (list, tuple)):
                messages = ", ".join(str(m) for m in messages)
            parts.append(f"{field}: {messages}")
        return "; ".join(parts)
    if isinstance(errors, (list, tuple)):
        return "; ".join(str(e) for e in errors)
    return str(errors)


class ProviderGateway:
    def __init__(
        self,
        api_url: str,
        token_cache: ProviderTokenCache,
        *,
        currency: str = "CLP",
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.currency = currency
        self._tokens = token_cache
        self._client = httpx.Client(base_url=self.api_url, timeout=timeout, transport=transport)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        json: dict | None = None,
        not_found: type[ProviderNotFoundError] = ProviderNotFoundError,
        not_found_message: str | None = None,
        empty_result: dict | None = None,
    ) -> Any:
        token = self._tokens.get_token()
        logger.info("Provider %s %s", method, path)
        try:
            response = self._client.request(
                method,
                path,
                json=json,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            )
        except httpx.RequestError as exc:
            logger.error("%s: provider unreachable (%s)", operation, type(exc).__name__)
            raise ProviderUnreachableError(f"{operation}: no response from the provider") from exc

        status = response.status_code
        if status == 401:
            self._tokens.invalidate()
            raise AuthError(f"{operation}: provider rejected the access token")
        if status == 404:
            raise not_found(not_found_message or f"{operation}: resource not found", remote_status=status)
        if status >= 500:
            raise ProviderInternalError(f"{operation}: provider internal error", remote_status=status)
        if status == 400:
            combined = _combined_field_errors(response)
            if combined:
                raise ProviderValidationError(f"{operation}: {combined}", remote_status=status)
        if status >= 300:
            raise ProviderError(f"{operation}: {_remote_message(response)}", remote_status=status)

        if not response.content or not response.content.strip():
            if empty_result is not None:
                logger.info("%s: empty success body, using synthesized result", operation)
                return dict(empty_result)
            raise ProviderResponseError(f"{operation}: empty response from the provider", remote_status=status)

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderResponseError(f"{operation}: response is not valid JSON", remote_status=status) from exc

    @staticmethod
    def _expect_object(body: Any, operation: str) -> dict:
        if not isinstance(body, dict):
            raise ProviderResponseError(f"{operation}: unexpected response shape")
        return body

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get_tour_information(self, tour_code: str, date: str, number_days: int = 1, currency: str | None = None) -> dict:
        """
        Tour availability and pricing for ``number_days`` days from ``date``.

        Returns the provider's TourInfo object (dates -> quotas, priceHeaders,
        encounterType, meetingPoints, pickupLocations, ...).
        """
        if not tour_code:
            raise ValidationError("Tour code is required")
        if not date:
            raise ValidationError("Date is required")
        if not isinstance(number_days, int) or isinstance(number_days, bool) or not 1 <= number_days <= MAX_TOUR_DAYS:
            raise ValidationError(f"numberDays must be between 1 and {MAX_TOUR_DAYS}")
        if not DATE_RE.match(date):
            raise ValidationError("Date must be in YYYY-MM-DD format")

        currency = currency or self.currency
        body = self._request(
            "GET",
            f"/api/v1/tourInformation/{tour_code}/{date}/{number_days}/{currency}",
            operation="Error fetching tour information",
            not_found=TourNotFoundError,
            not_found_message=f"Tour not found: {tour_code}",
        )
        return self._expect_object(body, "Error fetching tour information")

    def add_to_cart(
        self,
        tour_code: str,
        service_date: str,
        start_time: str,
        age_groups: list[dict],
        *,
        meeting_point_id: int | None = None,
        pickup_location_id: str | None = None,
        id_booking: str | None = None,
    ) -> dict:
        """Reserve the tour. Returns {idBooking, bookingExpirationDate, waitTime}."""
        missing = _missing({
            "tourCode": tour_code,
            "serviceDate": service_date,
            "startTime": start_time,
            "ageGroups": age_groups,
        })
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if not isinstance(age_groups, (list, tuple)) or not age_groups:
            raise ValidationError("At least one age group is required")

        for index, group in enumerate(age_groups, start=1):
            group_missing = _missing({
                "idItemEcommerce": group.get("idItemEcommerce"),
                "ageGroupCode": group.get("ageGroupCode"),
                "quantity": group.get("quantity"),
            })
            if group_missing:
                raise ValidationError(f"Age group {index}: missing required fields: {', '.join(group_missing)}")
            quantity = group["quantity"]
            if isinstance(quantity, bool) or not isinstance(quantity, Number) or quantity <= 0:
                raise ValidationError(f"Age group {index}: quantity must be greater than zero")

        if not PROVIDER_DATETIME_RE.match(service_date):
            raise ValidationError("serviceDate must be in yyyy-MM-ddTHH:mm:ss format")
        if not TIME_RE.match(start_time):
            raise ValidationError("startTime must be in HH:mm:ss format")
        if service_date.split("T", 1)[1] != start_time:
            raise ValidationError("The time in serviceDate must match startTime")

        payload = {
            "idBooking": id_booking,
            "tourCode": tour_code,
            "serviceDate": service_date,
            "startTime": start_time,
            "meetingPointId": meeting_point_id,
            "pickupLocationId": pickup_location_id,
            "ageGroups": [dict(group) for group in age_groups],
        }
        body = self._expect_object(
            self._request("POST", "/api/v1/addToCart", operation="Error adding to cart", json=payload),
            "Error adding to cart",
        )
        if not body.get("idBooking"):
            raise ProviderResponseError("Error adding to cart: response did not include a booking id")
        return body

    def add_passengers(
        self,
        id_booking: str,
        name: str,
        last_name: str,
        email: str,
        phone_number: str,
        country: str,
        *,
        notification_type: str = "EMAIL",
        anonymous_passengers: bool = True,
        passengers: list[dict] | None = None,
        items_cart: list[dict] | None = None,
    ) -> dict:
        missing = _missing({
            "idBooking": id_booking,
            "name": name,
            "lastName": last_name,
            "email": email,
            "phoneNumber": phone_number,
            "country": country,
            "notificationType": notification_type,
        })
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if not is_valid_email(email):
            raise ValidationError("Invalid email format")
        if notification_type not in NOTIFICATION_TYPES:
            raise ValidationError("notificationType must be EMAIL or WHATSAPP")

        payload = {
            "idBooking": id_booking,
            "name": name,
            "lastName": last_name,
            "email": email,
            "phoneNumber": phone_number,
            "country": country,
            "notificationType": notification_type,
            "anonymousPassengers": anonymous_passengers,
            "passengers": list(passengers or []),
            "itemsCart": list(items_cart or []),
        }
        body = self._request(
            "POST",
            "/api/v2/addPassengers",
            operation="Error adding passengers",
            json=payload,
            empty_result={"idBooking": id_booking, "status": "success"},
        )
        return self._expect_object(body, "Error adding passengers")

    def get_rater(self, id_booking: str) -> dict:
        """Authoritative amount to charge for a booking: {totalAmount, ...}."""
        if not id_booking:
            raise ValidationError("idBooking is required")
        body = self._expect_object(
            self._request("GET", f"/api/v1/rater/{id_booking}", operation="Error fetching rater"),
            "Error fetching rater",
        )
        amount = body.get("totalAmount")
        if isinstance(amount, bool) or not isinstance(amount, Number):
            raise ProviderResponseError("Error fetching rater: response did not include a numeric totalAmount")
        return body

    def pay(
        self,
        id_booking: str,
        total_amount,
        *,
        has_advance_payment: bool,
        payment_date: str,
        authorization_transaction_id: str,
        payment_method: str,
        id_order_number: str,
        currency: str | None = None,
        coupon_code: str | None = None,
        card_type: str | None = None,
        card_number: str | None = None,
    ) -> dict:
        """Register the payment. Returns {idBooking, salesCode, balance, hasAdvancePayment, ...}."""
        missing = _missing({
            "idBooking": id_booking,
            "totalAmount": total_amount,
            "paymentDate": payment_date,
            "authorizationTransactionId": authorization_transaction_id,
            "paymentMethod": payment_method,
            "idOrderNumber": id_order_number,
        })
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if not PROVIDER_DATETIME_RE.match(payment_date):
            raise ValidationError("paymentDate must be in yyyy-MM-ddTHH:mm:ss format")
        if isinstance(total_amount, bool) or not isinstance(total_amount, Number) or total_amount <= 0:
            raise ValidationError("totalAmount must be a positive number")

        payload = {
            "idBooking": id_booking,
            "totalAmount": total_amount,
            "hasAdvancePayment": has_advance_payment,
            "paymentDate": payment_date,
            "authorizationTransactionId": authorization_transaction_id,
            "paymentMethod": payment_method,
            "idOrderNumber": id_order_number,
            "currency": currency or self.currency,
        }
        optional = {"couponCode": coupon_code, "cardType": card_type, "cardNumber": card_number}
        payload.update({key: value for key, value in optional.items() if value is not None})

        body = self._request(
            "POST",
            "/api/v1/pay",
            operation="Error processing payment",
            json=payload,
            empty_result={
                "idBooking": id_booking,
                "status": "success",
                "paymentDate": payment_date,
                "totalAmount": total_amount,
            },
        )
        return self._expect_object(body, "Error processing payment")

    def close(self) -> None:
        self._client.close()
