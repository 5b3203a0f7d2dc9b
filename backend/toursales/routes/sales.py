# Overview: Flask API routes for tour sales; parses input and returns JSON responses.

# backend/toursales/routes/sales.py
"""
Sales API routes (HTTP Basic auth on every endpoint)

<sale_id> matches either the caller's idSaleProvider or the public secure id.
Responses never include the internal primary key.
"""

from flask import Blueprint, jsonify, current_app

from ..decorators import require_basic_auth
from ..errors import TourSalesError
from ..responses import json_body, error_response, internal_error_response
from ..services import sale_lifecycle_service
from ..services.sale_saga import SaleSaga
from ..validation import (
    parse_create_sale_payload,
    parse_update_payload,
    parse_pax_payload,
    parse_cancel_payload,
)


sales_bp = Blueprint("sales", __name__, url_prefix="/api/v1/sales")


@sales_bp.post("")
@require_basic_auth
def create_sale_route():
    """
    Create a sale through the provider saga.

    Returns:
    - 201: sale persisted (CONFIRMED, or PROCESSING when the provider
      round-trip degraded after the availability gate)
    - 400: validation, availability or cart rejection
    - 409: idSaleProvider already registered (body includes saleId)
    """
    try:
        sale_request = parse_create_sale_payload(json_body())
        sale = SaleSaga.from_app(current_app).run(sale_request)

        message = "Sale created successfully"
        if sale.status != "CONFIRMED":
            message = "Sale registered; provider confirmation is pending"
        return jsonify({"message": message, "data": sale.to_dict()}), 201

    except TourSalesError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to create sale")


@sales_bp.get("/<sale_id>")
@require_basic_auth
def get_sale_route(sale_id: str):
    try:
        sale = sale_lifecycle_service.get_sale(sale_id)
        return jsonify({"data": sale.to_dict()}), 200
    except TourSalesError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to fetch sale")


@sales_bp.put("/<sale_id>")
@require_basic_auth
def update_sale_route(sale_id: str):
    """Update customer, locale, date and time fields of a live sale."""
    try:
        patch = parse_update_payload(json_body(required=False))
        sale = sale_lifecycle_service.update_details(sale_id, patch)
        return jsonify({"message": "Sale updated successfully", "data": sale.to_dict()}), 200
    except TourSalesError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to update sale")


@sales_bp.put("/<sale_id>/pax")
@require_basic_auth
def cancel_pax_route(sale_id: str):
    """Cancel some passengers: body {qtypax, reason?}."""
    try:
        qtypax, reason = parse_pax_payload(json_body())
        sale = sale_lifecycle_service.cancel_partial(sale_id, qtypax, reason)
        return jsonify({
            "message": f"Cancelled {qtypax} passengers. {sale.qty_pax} passengers remain active.",
            "data": sale.to_dict(),
        }), 200
    except TourSalesError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to cancel passengers")


@sales_bp.post("/<sale_id>/cancel")
@require_basic_auth
def cancel_sale_route(sale_id: str):
    """Cancel the whole sale: body {reason?}."""
    try:
        reason = parse_cancel_payload(json_body(required=False))
        sale = sale_lifecycle_service.cancel_full(sale_id, reason)
        return jsonify({"message": "Sale cancelled successfully", "data": sale.to_dict()}), 200
    except TourSalesError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to cancel sale")
