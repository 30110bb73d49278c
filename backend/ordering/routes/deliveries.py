# Overview: Flask API routes for delivery tracking.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import OrderingError
from ..services import delivery_service
from ..validation import parse_pagination
from ..decorators import require_actor, require_role


deliveries_bp = Blueprint("deliveries", __name__, url_prefix="/api/deliveries")


@deliveries_bp.get("/")
@require_actor
@require_role("admin", "driver")
def list_deliveries_route():
    try:
        limit, offset = parse_pagination(
            request.args,
            default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
            max_limit=current_app.config["MAX_PAGE_SIZE"],
        )
        result = delivery_service.list_deliveries(status=request.args.get("status"), limit=limit, offset=offset)
        return jsonify(result), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list deliveries")
        return jsonify({"error": "Internal server error"}), 500


@deliveries_bp.get("/<delivery_id>")
@require_actor
@require_role("admin", "driver")
def get_delivery_route(delivery_id: str):
    try:
        delivery = delivery_service.get_delivery(delivery_id)
        return jsonify({"delivery": delivery.to_dict()}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load delivery")
        return jsonify({"error": "Internal server error"}), 500


@deliveries_bp.post("/<delivery_id>/status")
@require_actor
@require_role("admin", "driver")
def update_delivery_status_route(delivery_id: str):
    """
    Move a delivery along its state machine.

    'delivered' also completes the order.
    """
    try:
        data = request.get_json() or {}
        status = data.get("status")
        if not status:
            return jsonify({"error": "status required"}), 400

        delivery = delivery_service.update_delivery_status(
            delivery_id,
            status,
            notes=data.get("notes"),
            location=data.get("location"),
            cash_collected_cents=data.get("cash_collected_cents"),
            failure_reason=data.get("failure_reason"),
            actor_id=g.actor_id,
        )
        return jsonify({"delivery": delivery.to_dict()}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update delivery status")
        return jsonify({"error": "Internal server error"}), 500
