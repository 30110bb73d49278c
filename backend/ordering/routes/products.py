# Overview: Flask API routes for the product catalog and admin stock adjustments.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import OrderingError
from ..services import products_service, stock_service
from ..validation import MAX_QUANTITY, coerce_int, parse_pagination
from ..decorators import require_actor, require_role


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("/")
@require_actor
def list_products_route():
    """Retailers only see active products."""
    try:
        limit, offset = parse_pagination(
            request.args,
            default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
            max_limit=current_app.config["MAX_PAGE_SIZE"],
        )
        result = products_service.list_products(
            active_only=(g.actor_role != "admin"),
            search=request.args.get("search"),
            limit=limit,
            offset=offset,
        )
        return jsonify(result), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/")
@require_actor
@require_role("admin")
def create_product_route():
    try:
        data = request.get_json() or {}
        product = products_service.create_product(
            sku=data.get("sku"),
            name=data.get("name"),
            base_price_cents=data.get("base_price_cents"),
            stock_quantity=data.get("stock_quantity", 0),
            tax_rate_bps=data.get("tax_rate_bps", 0),
            unit=data.get("unit"),
            is_active=data.get("is_active", True),
            actor_id=g.actor_id,
        )
        return jsonify({"product": product.to_dict()}), 201

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<product_id>")
@require_actor
def get_product_route(product_id: str):
    try:
        product = products_service.get_product(product_id)
        return jsonify({"product": product.to_dict()}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<product_id>/adjust-stock")
@require_actor
@require_role("admin")
def adjust_stock_route(product_id: str):
    """
    Direct stock correction.

    Body: {"delta": int (non-zero), "reason": str}
    A negative delta can never take stock below zero.
    """
    try:
        data = request.get_json() or {}
        delta = coerce_int(data.get("delta"), "delta", minimum=-MAX_QUANTITY, maximum=MAX_QUANTITY)
        product = stock_service.adjust_stock(product_id, delta, reason=data.get("reason"), actor_id=g.actor_id)
        return jsonify({"product": product.to_dict()}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500
