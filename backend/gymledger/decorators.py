# Overview: Request decorators and JSON error responses for API routes.

from functools import wraps
from flask import request, jsonify, g

from .logging_config import LogContext


def require_tenant(f):
    """
    Establish tenant context from the trusted gateway headers.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.tenant_id: The tenant (gym business) ID - REQUIRED
    - g.actor_id: The acting user ID - REQUIRED

    SECURITY: Authentication happens upstream. Returns 401 if either
    header is missing, so no route ever runs without a tenant scope.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        tenant_id = (request.headers.get("X-Tenant-ID") or "").strip()
        actor_id = (request.headers.get("X-User-ID") or "").strip()

        if not tenant_id or not actor_id:
            return jsonify({
                "error": {
                    "code": "TENANT_CONTEXT_MISSING",
                    "message": "Authentication required",
                }
            }), 401

        g.tenant_id = tenant_id
        g.actor_id = actor_id
        LogContext.set(tenant_id=tenant_id, actor_id=actor_id)

        return f(*args, **kwargs)

    return decorated_function


def error_response(exc):
    """Render a LedgerError as {"error": {code, message}} with its HTTP status."""
    return jsonify({"error": exc.to_dict()}), exc.status_code


def internal_error_response():
    return jsonify({
        "error": {
            "code": "INTERNAL_ERROR",
            "message": "Internal server error",
        }
    }), 500
