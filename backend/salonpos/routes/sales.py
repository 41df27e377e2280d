# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/salonpos/routes/sales.py
"""Sale checkout, edit and deletion routes (thin wrappers over sales_service)."""

from flask import Blueprint, current_app, jsonify, request

from ..services import sales_service
from ..services.sales_service import SaleError
from ..validation import ValidationError
from .errors import not_found_response, validation_error_response


sales_bp = Blueprint("sales", __name__, url_prefix="/api/shops/<int:shop_id>/sales")


@sales_bp.get("")
def list_sales_route(shop_id: int):
    """
    List the sales of one day.

    Query params:
    - date: YYYY-MM-DD (optional, defaults to today)
    - q: search on customer name or receipt number (optional)
    """
    try:
        sales = sales_service.list_sales(
            shop_id,
            day=request.args.get("date"),
            q=request.args.get("q"),
        )
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400
    return jsonify({"sales": sales}), 200


@sales_bp.get("/customers")
def customer_suggestions_route(shop_id: int):
    """Recent distinct customers for the checkout autocomplete."""
    suggestions = sales_service.customer_suggestions(
        shop_id,
        q=request.args.get("q"),
        limit=request.args.get("limit", type=int),
    )
    return jsonify(suggestions), 200


@sales_bp.post("")
def create_sale_route(shop_id: int):
    """
    Check out a new sale.

    Returns 201 with the sale, 422 with {"errors": {field: message}} when the
    payload, stock or promotion is rejected.
    """
    try:
        sale = sales_service.create_sale(shop_id, request.get_json(silent=True))
        return jsonify({"sale": sale.to_dict()}), 201

    except ValidationError as e:
        return validation_error_response(e)
    except SaleError as e:
        return not_found_response(str(e))
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(shop_id: int, sale_id: int):
    try:
        sale = sales_service.get_sale(shop_id, sale_id)
    except SaleError as e:
        return not_found_response(str(e))
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.patch("/<int:sale_id>")
def update_sale_route(shop_id: int, sale_id: int):
    """Edit a sale; only the fields sent are changed."""
    try:
        sale = sales_service.update_sale(shop_id, sale_id, request.get_json(silent=True))
        return jsonify({"sale": sale.to_dict()}), 200

    except ValidationError as e:
        return validation_error_response(e)
    except SaleError as e:
        return not_found_response(str(e))
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
def delete_sale_route(shop_id: int, sale_id: int):
    """Delete a sale and restore its product stock."""
    try:
        sales_service.delete_sale(shop_id, sale_id)
        return jsonify({"deleted": True, "sale_id": sale_id}), 200

    except SaleError as e:
        return not_found_response(str(e))
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
