# Overview: Request decorators that load the caller identity forwarded by the gateway.

from functools import wraps
from flask import request, jsonify, g


ACTOR_ROLES = ("admin", "retailer", "driver")


def _has_actor() -> bool:
    return hasattr(g, 'actor_id') and hasattr(g, 'actor_role')


def require_actor(f):
    """
    Require an authenticated caller.

    Authentication happens upstream; the gateway forwards the identity in
    headers. Sets on Flask g:
    - g.actor_id: X-Actor-Id
    - g.actor_role: X-Actor-Role (admin, retailer, driver)
    - g.retailer_id: X-Retailer-Id (retailers only, None otherwise)

    Returns 401 when the identity is missing or malformed, 403 when a
    retailer caller carries no retailer id.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_id = (request.headers.get("X-Actor-Id") or "").strip()
        role = (request.headers.get("X-Actor-Role") or "").strip().lower()

        if not actor_id or role not in ACTOR_ROLES:
            return jsonify({"error": "Authentication required"}), 401

        retailer_id = (request.headers.get("X-Retailer-Id") or "").strip() or None
        if role == "retailer" and not retailer_id:
            return jsonify({"error": "Retailer access required"}), 403

        g.actor_id = actor_id
        g.actor_role = role
        g.retailer_id = retailer_id if role == "retailer" else None

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Restrict a route to the given actor roles. Use after @require_actor."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _has_actor():
                return jsonify({"error": "Authentication required"}), 401

            if g.actor_role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator


def current_retailer_scope():
    """Retailer id to scope queries by; None for admins and drivers."""
    return g.retailer_id if g.actor_role == "retailer" else None
