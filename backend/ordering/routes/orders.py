# Overview: Flask API routes for the order engine; parses input and returns JSON responses.

# backend/ordering/routes/orders.py
"""Order API routes with role enforcement"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import OrderingError
from ..services import audit_service, order_service, order_stats_service
from ..validation import parse_pagination
from ..decorators import require_actor, require_role, current_retailer_scope


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("/")
@require_actor
@require_role("admin", "retailer")
def create_order_route():
    """
    Place an order.

    Retailers always order for themselves; admins pass retailer_id.
    """
    try:
        data = request.get_json() or {}
        retailer_id = current_retailer_scope() or data.get("retailer_id")
        if not retailer_id:
            return jsonify({"error": "retailer_id required"}), 400

        order = order_service.create_order(
            retailer_id,
            data.get("items"),
            data.get("delivery_address"),
            data.get("payment_method", "cash"),
            actor_id=g.actor_id,
            delivery_date=data.get("delivery_date"),
            delivery_time_slot=data.get("delivery_time_slot"),
            notes=data.get("notes"),
            metadata=data.get("metadata"),
        )
        return jsonify({"order": order.to_dict()}), 201

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/")
@require_actor
@require_role("admin", "retailer")
def list_orders_route():
    try:
        limit, offset = parse_pagination(
            request.args,
            default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
            max_limit=current_app.config["MAX_PAGE_SIZE"],
        )
        result = order_service.list_orders(
            status=request.args.get("status"),
            retailer_id=current_retailer_scope() or request.args.get("retailer_id"),
            payment_method=request.args.get("payment_method"),
            date_from=request.args.get("date_from"),
            date_to=request.args.get("date_to"),
            search=request.args.get("search"),
            sort=request.args.get("sort", "-created_at"),
            limit=limit,
            offset=offset,
        )
        return jsonify(result), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/stats")
@require_actor
@require_role("admin", "retailer")
def order_stats_route():
    try:
        stats = order_stats_service.get_order_stats(
            date_from=request.args.get("date_from"),
            date_to=request.args.get("date_to"),
            retailer_id=current_retailer_scope() or request.args.get("retailer_id"),
        )
        return jsonify(stats), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute order stats")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/bulk-status")
@require_actor
@require_role("admin")
def bulk_status_route():
    """
    Change the status of many orders at once.

    All-or-nothing: one invalid transition rejects the whole batch.
    """
    try:
        data = request.get_json() or {}
        orders = order_service.bulk_update_status(
            data.get("order_ids"),
            data.get("status"),
            notes=data.get("notes"),
            actor_id=g.actor_id,
        )
        return jsonify({
            "updated_count": len(orders),
            "updated_orders": [o.to_dict(include_items=False) for o in orders],
        }), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to bulk update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<order_id>")
@require_actor
@require_role("admin", "retailer")
def get_order_route(order_id: str):
    try:
        detail = order_service.get_order_detail(order_id, retailer_id=current_retailer_scope())
        return jsonify({"order": detail}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<order_id>")
@require_actor
@require_role("admin")
def update_order_route(order_id: str):
    """Edit a pending order (items, address, delivery slot, payment method, notes, metadata)."""
    try:
        data = request.get_json() or {}
        order = order_service.update_order(
            order_id,
            items=data.get("items"),
            delivery_address=data.get("delivery_address"),
            delivery_date=data.get("delivery_date"),
            delivery_time_slot=data.get("delivery_time_slot"),
            payment_method=data.get("payment_method"),
            notes=data.get("notes"),
            metadata=data.get("metadata"),
            actor_id=g.actor_id,
        )
        return jsonify({"order": order.to_dict()}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<order_id>/status")
@require_actor
@require_role("admin")
def update_status_route(order_id: str):
    try:
        data = request.get_json() or {}
        status = data.get("status")
        if not status:
            return jsonify({"error": "status required"}), 400

        order = order_service.update_status(order_id, status, notes=data.get("notes"), actor_id=g.actor_id)
        return jsonify({"order": order.to_dict()}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<order_id>/cancel")
@require_actor
@require_role("admin", "retailer")
def cancel_order_route(order_id: str):
    """
    Cancel an order, restoring stock and credit.

    Retailers can only cancel their own orders, and only while pending.
    Admins can cancel any order that has not shipped.
    """
    try:
        data = request.get_json() or {}
        order = order_service.cancel_order(
            order_id,
            data.get("reason"),
            notes=data.get("notes"),
            actor_id=g.actor_id,
            retailer_id=current_retailer_scope(),
        )
        return jsonify({"order": order.to_dict()}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<order_id>/audit")
@require_actor
@require_role("admin")
def order_audit_route(order_id: str):
    try:
        entries = audit_service.list_entries(resource_type="order", resource_id=order_id)
        return jsonify({"entries": [entry.to_dict() for entry in entries]}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load order audit log")
        return jsonify({"error": "Internal server error"}), 500
