# Overview: Request decorators that establish the authenticated store context.

from functools import wraps
from flask import request, jsonify, g

from .services import auth_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip()


def _set_context(context: auth_service.AuthContext | None) -> None:
    g.store = context.store if context else None
    g.business_id = context.business_id if context else None
    g.actor = context.actor if context else None


def require_auth(f):
    """
    Require a staff API key and establish the store context.

    Sets on Flask g:
    - g.store: The Store the key belongs to
    - g.business_id: The store's business (tenant scope for every query)
    - g.actor: The key label, recorded on timeline entries and refunds

    Returns 401 for a missing, unknown or revoked key.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"success": False, "error": "AuthenticationError", "message": "Authentication required"}), 401

        context = auth_service.authenticate_api_key(token)
        if not context:
            return jsonify({"success": False, "error": "AuthenticationError", "message": "Invalid or revoked API key"}), 401

        _set_context(context)
        return f(*args, **kwargs)

    return decorated_function


def optional_auth(f):
    """
    Like require_auth, but anonymous requests pass through with an empty context.

    A header carrying an invalid key is still rejected.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            _set_context(None)
            return f(*args, **kwargs)

        context = auth_service.authenticate_api_key(token)
        if not context:
            return jsonify({"success": False, "error": "AuthenticationError", "message": "Invalid or revoked API key"}), 401

        _set_context(context)
        return f(*args, **kwargs)

    return decorated_function
