# Overview: Flask API routes for orders; parses input and returns JSON responses.

"""
Order API Routes

Public checkout (store identified by the `store-id` / `store-url` header)
and the staff order-management surface (bearer API key, scoped to the
key's business).
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, optional_auth
from ..errors import StorefrontError, error_response, internal_error_response
from ..services import lifecycle_service, order_service, refund_service
from ..services.document_service import invoice_url
from ..services.media_service import check_payment_proof, save_payment_proof
from ..services.tenant_service import resolve_request_store
from .payloads import read_checkout_payload, read_json_body, list_filters


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


# =============================================================================
# CHECKOUT
# =============================================================================

@orders_bp.post("")
@optional_auth
def create_order_route():
    """
    Create an order.

    Request body (JSON, or multipart with `orderData` + optional `paymentProof`):
    {
        "customer": {"email": "...", "name": "...", "phone": "...", "address": "..."},
        "items": [{"product_id": 1, "variant_id": 2, "quantity": 2, "options": {}}],
        "delivery": {"method": "delivery", "fee_cents": 200, "location": {...}},
        "payment": {"method": "bank_transfer"},
        "discount": {"code": "...", "applied_amount_cents": 0},
        "subtotal_cents": 2500, "total_cents": 2700,
        "notes": "...", "is_guest_order": true
    }

    Returns:
        201: {success, order: {id, order_number, total_cents, status, invoice_url}}
        400: Validation, inventory or pricing failure
        404: Store or product not found
    """
    try:
        data, proof = read_checkout_payload("orderData")
        store = resolve_request_store(request.headers, g.store)
        check_payment_proof(proof)

        order = order_service.get_order_builder().create_order(store, data, actor=g.actor)

        # The proof is stored only once the order exists
        proof_url = save_payment_proof(proof)
        if proof_url:
            order = lifecycle_service.attach_payment_proof(order, proof_url)

        return jsonify({
            "success": True,
            "message": "Order created successfully",
            "order": {
                "id": order.id,
                "order_number": order.order_number,
                "total_cents": order.total_cents,
                "status": order.status,
                "invoice_url": invoice_url(current_app.config["CLIENT_URL"], order),
            },
        }), 201

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return internal_error_response()


@orders_bp.get("/invoice/<int:order_id>/<token>")
def get_public_invoice_route(order_id: int, token: str):
    """Public invoice view; the token must match exactly."""
    try:
        order = order_service.get_public_invoice(order_id, token)
        return jsonify({"success": True, "order": order_service.invoice_view(order)}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load invoice")
        return internal_error_response()


# =============================================================================
# STAFF VIEWS
# =============================================================================

@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    List orders for the key's business.

    Query params: status, search, start_date, end_date, page, limit, sort (asc|desc)
    """
    try:
        result = order_service.list_orders(g.business_id, **list_filters())
        return jsonify({"success": True, **result}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return internal_error_response()


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(g.business_id, order_id)
        return jsonify({"success": True, "order": order.to_dict()}), 200
    except StorefrontError as e:
        return error_response(e)


# =============================================================================
# LIFECYCLE
# =============================================================================

@orders_bp.patch("/<int:order_id>/status")
@require_auth
def update_order_status_route(order_id: int):
    """
    Set the order status.

    Request body: {"status": "shipped", "note": "...", "notify_customer": true}
    """
    try:
        data = read_json_body()
        order = order_service.get_order(g.business_id, order_id)
        order = lifecycle_service.update_status(
            order,
            data.get("status"),
            note=data.get("note"),
            actor=g.actor,
            notify_customer=bool(data.get("notify_customer", True)),
        )
        return jsonify({"success": True, "order": order.to_dict()}), 200

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return internal_error_response()


@orders_bp.patch("/<int:order_id>/payment")
@require_auth
def update_order_payment_route(order_id: int):
    """
    Set the payment status.

    Request body: {"payment_status": "completed", "transaction_id": "...", "gateway_response": {...}}
    """
    try:
        data = read_json_body()
        order = order_service.get_order(g.business_id, order_id)
        order = lifecycle_service.update_payment_status(
            order,
            data.get("payment_status"),
            transaction_id=data.get("transaction_id"),
            gateway_response=data.get("gateway_response"),
            actor=g.actor,
        )
        return jsonify({
            "success": True,
            "order": order.to_dict(),
            "message": f"Payment status updated to {order.payment_status}",
        }), 200

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update payment status")
        return internal_error_response()


@orders_bp.post("/<int:order_id>/notes")
@require_auth
def add_order_note_route(order_id: int):
    """Request body: {"note": "...", "is_internal": false}"""
    try:
        data = read_json_body()
        order = order_service.get_order(g.business_id, order_id)
        order = lifecycle_service.add_note(order, data.get("note"), internal=bool(data.get("is_internal", False)))
        return jsonify({"success": True, "order": order.to_dict(), "message": "Note added successfully"}), 200

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add order note")
        return internal_error_response()


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
def cancel_order_route(order_id: int):
    """
    Cancel a pending or confirmed order and restore its stock.

    Request body: {"reason": "...", "refund_amount_cents": 2700}
    """
    try:
        data = read_json_body()
        order = order_service.get_order(g.business_id, order_id)
        order = lifecycle_service.cancel_order(
            order,
            reason=data.get("reason"),
            refund_amount_cents=data.get("refund_amount_cents"),
            actor=g.actor,
        )
        return jsonify({"success": True, "order": order.to_dict(), "message": "Order cancelled successfully"}), 200

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return internal_error_response()


@orders_bp.post("/<int:order_id>/refund")
@require_auth
def refund_order_route(order_id: int):
    """
    Refund part or all of the order's payment.

    Request body: {"amount_cents": 1000, "reason": "...", "method": "original"}
    """
    try:
        data = read_json_body()
        order = order_service.get_order(g.business_id, order_id)
        result = refund_service.process_refund(
            order,
            data.get("amount_cents"),
            reason=data.get("reason"),
            method=data.get("method"),
            actor=g.actor,
        )
        return jsonify({
            "success": True,
            "order": result.document.to_dict(),
            "refund": result.refund.to_dict(),
            "remaining_cents": result.remaining_cents,
        }), 200

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to process refund")
        return internal_error_response()
