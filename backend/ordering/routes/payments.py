# Overview: Flask API routes for payments and admin balance adjustments.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import OrderingError
from ..services import payment_service
from ..validation import parse_pagination
from ..decorators import require_actor, require_role, current_retailer_scope


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("/")
@require_actor
@require_role("admin", "driver")
def record_payment_route():
    """
    Record money received from a retailer.

    Drivers record cash collected on delivery; admins record everything else.
    """
    try:
        data = request.get_json() or {}
        retailer_id = data.get("retailer_id")
        if not retailer_id:
            return jsonify({"error": "retailer_id required"}), 400

        payment = payment_service.record_payment(
            retailer_id,
            data.get("amount_cents"),
            payment_type=data.get("payment_type"),
            payment_method=data.get("payment_method"),
            order_id=data.get("order_id"),
            reference_number=data.get("reference_number"),
            notes=data.get("notes"),
            metadata=data.get("metadata"),
            actor_id=g.actor_id,
        )
        return jsonify({"payment": payment.to_dict()}), 201

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/")
@require_actor
@require_role("admin", "retailer")
def list_payments_route():
    try:
        limit, offset = parse_pagination(
            request.args,
            default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
            max_limit=current_app.config["MAX_PAGE_SIZE"],
        )
        result = payment_service.list_payments(
            retailer_id=current_retailer_scope() or request.args.get("retailer_id"),
            order_id=request.args.get("order_id"),
            payment_type=request.args.get("payment_type"),
            payment_method=request.args.get("payment_method"),
            date_from=request.args.get("date_from"),
            date_to=request.args.get("date_to"),
            limit=limit,
            offset=offset,
        )
        return jsonify(result), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/retailers/<retailer_id>/adjust-balance")
@require_actor
@require_role("admin")
def adjust_balance_route(retailer_id: str):
    """
    Corrective balance or credit-limit change.

    Skips the credit-limit check on purpose; every call is audited.
    """
    try:
        data = request.get_json() or {}
        result = payment_service.update_retailer_balance(
            retailer_id,
            data.get("adjustment_type"),
            data.get("amount_cents"),
            reason=data.get("reason"),
            notes=data.get("notes"),
            actor_id=g.actor_id,
        )
        return jsonify(result), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust retailer balance")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/retailers/<retailer_id>/financials")
@require_actor
@require_role("admin", "retailer")
def retailer_financials_route(retailer_id: str):
    try:
        scope = current_retailer_scope()
        if scope is not None and scope != retailer_id:
            return jsonify({"error": "Retailer not found"}), 404

        result = payment_service.get_retailer_financials(retailer_id)
        return jsonify(result), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load retailer financials")
        return jsonify({"error": "Internal server error"}), 500
