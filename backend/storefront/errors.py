# Overview: Error taxonomy shared by services and routes.

from __future__ import annotations

from flask import jsonify


class StorefrontError(Exception):
    """
    Base class for business-rule and input failures.

    Every subclass maps to an HTTP status and a stable machine code so routes
    can turn it into a structured JSON body without inspecting messages.
    """
    status_code = 400
    code = "StorefrontError"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(StorefrontError):
    """400-level input problem."""
    code = "ValidationError"


class NotFoundError(StorefrontError):
    status_code = 404
    code = "NotFoundError"


class AccessDeniedError(StorefrontError):
    status_code = 403
    code = "AccessDeniedError"


class AuthenticationError(StorefrontError):
    status_code = 401
    code = "AuthenticationError"


class StoreResolutionError(StorefrontError):
    """Neither an authenticated store nor a store header was supplied."""
    code = "StoreResolutionError"


class InsufficientInventory(StorefrontError):
    code = "InsufficientInventory"


class InvalidPricing(StorefrontError):
    code = "InvalidPricing"


class CustomerResolutionError(StorefrontError):
    """Customer could not be created nor located after a uniqueness conflict."""
    code = "CustomerResolutionError"


class InvalidRefundAmount(StorefrontError):
    code = "InvalidRefundAmount"


class RefundNotAllowed(StorefrontError):
    code = "RefundNotAllowed"


class OrderNotCancellable(StorefrontError):
    code = "OrderNotCancellable"


class TransientStoreError(StorefrontError):
    """
    Retryable storage failure (write conflict, lock timeout, expired unit of work).

    Internal: the order and booking builders fall back instead of surfacing it.
    """
    status_code = 503
    code = "TransientStoreError"


def error_response(exc: StorefrontError):
    body = {
        "success": False,
        "error": exc.code,
        "message": exc.message,
    }
    if exc.details:
        body["details"] = exc.details
    return jsonify(body), exc.status_code


def internal_error_response():
    return jsonify({
        "success": False,
        "error": "InternalServerError",
        "message": "Internal server error",
    }), 500
