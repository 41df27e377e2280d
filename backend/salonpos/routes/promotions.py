from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..services import promotions_service
from ..services.promotions_service import PromotionError
from ..validation import ValidationError
from .errors import not_found_response, validation_error_response

promotions_bp = Blueprint("promotions", __name__, url_prefix="/api/shops/<int:shop_id>/promotions")


@promotions_bp.route("", methods=["GET"])
def list_promotions(shop_id: int):
    active_only = request.args.get("active_only", "false").lower() == "true"
    result = promotions_service.list_promotions(shop_id, active_only)
    return jsonify(result)


@promotions_bp.route("", methods=["POST"])
def create_promotion(shop_id: int):
    try:
        result = promotions_service.create_promotion(shop_id, request.get_json(silent=True) or {})
    except ValidationError as e:
        return validation_error_response(e)
    return jsonify(result), 201


@promotions_bp.route("/<int:promo_id>", methods=["PATCH"])
def update_promotion(shop_id: int, promo_id: int):
    try:
        result = promotions_service.update_promotion(shop_id, promo_id, request.get_json(silent=True) or {})
    except PromotionError:
        return not_found_response()
    except ValidationError as e:
        return validation_error_response(e)
    return jsonify(result)


@promotions_bp.route("/active", methods=["GET"])
def get_active_promotions(shop_id: int):
    """Promotions running on ?date=YYYY-MM-DD (default today)."""
    try:
        result = promotions_service.active_promotions_for_date(shop_id, request.args.get("date"))
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400
    return jsonify(result)
