# Overview: Flask API routes for the retailer cart and checkout.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import OrderingError
from ..services import cart_service
from ..decorators import require_actor, require_role


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


@cart_bp.get("/")
@require_actor
@require_role("retailer")
def get_cart_route():
    try:
        return jsonify(cart_service.get_cart(g.retailer_id)), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load cart")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.get("/summary")
@require_actor
@require_role("retailer")
def cart_summary_route():
    try:
        return jsonify(cart_service.get_cart_summary(g.retailer_id)), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load cart summary")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.post("/items")
@require_actor
@require_role("retailer")
def add_to_cart_route():
    try:
        data = request.get_json() or {}
        product_id = data.get("product_id")
        if not product_id:
            return jsonify({"error": "product_id required"}), 400

        line = cart_service.add_to_cart(g.retailer_id, product_id, data.get("quantity"))
        return jsonify({"item": line.to_dict()}), 201

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add item to cart")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.put("/items/<product_id>")
@require_actor
@require_role("retailer")
def update_cart_item_route(product_id: str):
    """Set the quantity of a cart line; quantity 0 removes it."""
    try:
        data = request.get_json() or {}
        line = cart_service.update_quantity(g.retailer_id, product_id, data.get("quantity"))
        return jsonify({"item": line.to_dict() if line is not None else None}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("/items/<product_id>")
@require_actor
@require_role("retailer")
def remove_cart_item_route(product_id: str):
    try:
        cart_service.remove_from_cart(g.retailer_id, product_id)
        return jsonify({"success": True}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to remove cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("/")
@require_actor
@require_role("retailer")
def clear_cart_route():
    try:
        removed = cart_service.clear_cart(g.retailer_id)
        return jsonify({"removed": removed}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to clear cart")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.post("/checkout")
@require_actor
@require_role("retailer")
def checkout_route():
    try:
        data = request.get_json() or {}
        order = cart_service.checkout(
            g.retailer_id,
            data.get("delivery_address"),
            data.get("payment_method", "cash"),
            notes=data.get("notes"),
            delivery_date=data.get("delivery_date"),
            delivery_time_slot=data.get("delivery_time_slot"),
            actor_id=g.actor_id,
        )
        return jsonify({"order": order.to_dict()}), 201

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to check out cart")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.post("/reorder/<order_id>")
@require_actor
@require_role("retailer")
def reorder_route(order_id: str):
    try:
        data = request.get_json(silent=True) or {}
        result = cart_service.reorder_from_order(
            g.retailer_id,
            order_id,
            exclude_out_of_stock=data.get("exclude_out_of_stock", True),
        )
        return jsonify(result), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reorder from order")
        return jsonify({"error": "Internal server error"}), 500
