# Overview: Flask API routes for retailer accounts (admin).

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import OrderingError
from ..services import credit_service, retailer_service
from ..decorators import require_actor, require_role


retailers_bp = Blueprint("retailers", __name__, url_prefix="/api/retailers")


@retailers_bp.get("/")
@require_actor
@require_role("admin")
def list_retailers_route():
    try:
        retailers = retailer_service.list_retailers(status=request.args.get("status"))
        return jsonify({"items": [r.to_dict() for r in retailers], "count": len(retailers)}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list retailers")
        return jsonify({"error": "Internal server error"}), 500


@retailers_bp.post("/")
@require_actor
@require_role("admin")
def create_retailer_route():
    try:
        data = request.get_json() or {}
        retailer = retailer_service.create_retailer(
            data.get("business_name"),
            phone=data.get("phone"),
            email=data.get("email"),
            credit_limit_cents=data.get("credit_limit_cents", 0),
            actor_id=g.actor_id,
        )
        return jsonify({"retailer": retailer.to_dict()}), 201

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create retailer")
        return jsonify({"error": "Internal server error"}), 500


@retailers_bp.get("/<retailer_id>")
@require_actor
@require_role("admin")
def get_retailer_route(retailer_id: str):
    try:
        retailer = retailer_service.get_retailer(retailer_id)
        return jsonify({"retailer": retailer.to_dict()}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load retailer")
        return jsonify({"error": "Internal server error"}), 500


@retailers_bp.post("/<retailer_id>/status")
@require_actor
@require_role("admin")
def set_retailer_status_route(retailer_id: str):
    try:
        data = request.get_json() or {}
        retailer = retailer_service.set_retailer_status(retailer_id, data.get("status"), actor_id=g.actor_id)
        return jsonify({"retailer": retailer.to_dict()}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update retailer status")
        return jsonify({"error": "Internal server error"}), 500


@retailers_bp.put("/<retailer_id>/credit-limit")
@require_actor
@require_role("admin")
def set_credit_limit_route(retailer_id: str):
    try:
        data = request.get_json() or {}
        limit = data.get("credit_limit_cents")
        if limit is None:
            return jsonify({"error": "credit_limit_cents required"}), 400

        retailer = credit_service.set_credit_limit(retailer_id, limit, actor_id=g.actor_id)
        return jsonify({"retailer": retailer.to_dict()}), 200

    except OrderingError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update credit limit")
        return jsonify({"error": "Internal server error"}), 500
