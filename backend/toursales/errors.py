# Overview: Domain error taxonomy shared by services and routes.

"""
Errors raised by the sale services and the provider clients.

Every error carries a stable machine-readable ``code`` and the HTTP status the
routes answer with. Routes never inspect messages to pick a status; services
never build HTTP responses.
"""

from __future__ import annotations


class TourSalesError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict | None = None, *, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        body = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


# ---------------------------------------------------------------------------
# Input / business rules (4xx)
# ---------------------------------------------------------------------------

class ValidationError(TourSalesError, ValueError):
    """400-level input problem."""
    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidTimeFormatError(ValidationError):
    code = "INVALID_TIME_FORMAT"


class InvalidPaxQuantityError(ValidationError):
    code = "INVALID_PAX_QUANTITY"


class InvalidPaxOperationError(TourSalesError):
    """Attempt to cancel more passengers than the sale holds."""
    status_code = 400
    code = "INVALID_PAX_OPERATION"


class InvalidStatusError(TourSalesError):
    """Mutation of a sale that is CANCELLED or REFUNDED."""
    status_code = 400
    code = "INVALID_SALE_STATUS"


class AvailabilityError(TourSalesError):
    """
    Requested date/time/pax cannot be served by the tour.

    ``code`` is one of NO_AVAILABILITY, DATE_NOT_AVAILABLE, TIME_NOT_AVAILABLE,
    EXCEEDS_AVAILABLE_QUOTA. Callers must branch on the code, never on the text.
    """
    status_code = 400
    code = "NO_AVAILABILITY"


class SaleRejectedError(TourSalesError):
    """The saga aborted before persisting because of a client-side problem."""
    status_code = 400
    code = "SALE_REJECTED"


class SaleNotFoundError(TourSalesError):
    status_code = 404
    code = "SALE_NOT_FOUND"


class DuplicateSaleError(TourSalesError):
    status_code = 409
    code = "DUPLICATE_PROVIDER_SALE_ID"

    def __init__(self, id_sale_provider: str, existing_public_id: str | None):
        super().__init__(
            "A sale is already registered with this provider sale id",
            details={"idSaleProvider": id_sale_provider},
        )
        self.existing_public_id = existing_public_id

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["saleId"] = self.existing_public_id
        return body


class AuthError(TourSalesError):
    """Credentials rejected (provider token endpoint, identity service or basic auth)."""
    status_code = 401
    code = "AUTH_ERROR"


# ---------------------------------------------------------------------------
# Remote provider
# ---------------------------------------------------------------------------

class ProviderError(TourSalesError):
    """Generic remote provider failure; carries the remote message when there is one."""
    status_code = 502
    code = "PROVIDER_ERROR"

    def __init__(self, message: str, details: dict | None = None, *, remote_status: int | None = None):
        super().__init__(message, details)
        self.remote_status = remote_status


class ProviderNotFoundError(ProviderError):
    status_code = 404
    code = "PROVIDER_NOT_FOUND"


class TourNotFoundError(ProviderNotFoundError):
    code = "TOUR_NOT_FOUND"


class ProviderInternalError(ProviderError):
    code = "PROVIDER_INTERNAL_ERROR"


class ProviderUnreachableError(ProviderError):
    code = "PROVIDER_UNREACHABLE"


class ProviderValidationError(ProviderError):
    """Remote 400 with a field-keyed validation payload."""
    status_code = 400
    code = "PROVIDER_VALIDATION_ERROR"


class ProviderResponseError(ProviderError):
    """Remote answered 2xx with a body we cannot use."""
    code = "PROVIDER_MALFORMED_RESPONSE"


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

class StorageError(TourSalesError):
    status_code = 500
    code = "STORAGE_ERROR"
