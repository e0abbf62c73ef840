# Overview: Flask API routes for bookings; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import StorefrontError, error_response, internal_error_response
from ..services import booking_service, lifecycle_service, refund_service
from ..services.media_service import check_payment_proof, save_payment_proof
from ..services.tenant_service import resolve_request_store
from .payloads import read_checkout_payload, read_json_body, list_filters


bookings_bp = Blueprint("bookings", __name__, url_prefix="/api/bookings")


def _create_booking(store, actor):
    data, proof = read_checkout_payload("bookingData")
    check_payment_proof(proof)
    booking = booking_service.get_booking_builder().create_booking(store, data, actor=actor)

    proof_url = save_payment_proof(proof)
    if proof_url:
        booking = lifecycle_service.attach_payment_proof(booking, proof_url)

    return jsonify({
        "success": True,
        "message": "Booking created successfully",
        "booking": booking.to_dict(),
    }), 201


@bookings_bp.post("/public")
def create_public_booking_route():
    """
    Storefront booking; the store comes from the `store-id` / `store-url` header.

    Request body (JSON, or multipart with `bookingData` + optional `paymentProof`):
    {
        "customer": {"email": "...", "name": "...", "phone": "..."},
        "slot_id": 3,
        "start_date": "2026-11-02", "end_date": "2026-11-04",
        "start_time": "10:00", "end_time": "18:00",
        "quantity": 1,
        "metadata": {"guests": 2, "pickup_location": "..."},
        "payment": {"method": "bank_transfer"}
    }
    """
    try:
        store = resolve_request_store(request.headers)
        return _create_booking(store, None)
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create booking")
        return internal_error_response()


@bookings_bp.post("")
@require_auth
def create_booking_route():
    """Staff-entered booking for the key's store."""
    try:
        return _create_booking(g.store, g.actor)
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create booking")
        return internal_error_response()


@bookings_bp.get("")
@require_auth
def list_bookings_route():
    try:
        result = booking_service.list_bookings(g.business_id, **list_filters())
        return jsonify({"success": True, **result}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list bookings")
        return internal_error_response()


@bookings_bp.get("/<int:booking_id>")
@require_auth
def get_booking_route(booking_id: int):
    try:
        booking = booking_service.get_booking(g.business_id, booking_id)
        return jsonify({"success": True, "booking": booking.to_dict()}), 200
    except StorefrontError as e:
        return error_response(e)


@bookings_bp.get("/<int:booking_id>/summary")
def get_booking_summary_route(booking_id: int):
    """Public confirmation-page summary."""
    try:
        return jsonify({"success": True, "booking": booking_service.booking_summary(booking_id)}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load booking summary")
        return internal_error_response()


@bookings_bp.patch("/<int:booking_id>/status")
@require_auth
def update_booking_status_route(booking_id: int):
    try:
        data = read_json_body()
        booking = booking_service.get_booking(g.business_id, booking_id)
        booking = lifecycle_service.update_status(
            booking,
            data.get("status"),
            note=data.get("note"),
            actor=g.actor,
            notify_customer=bool(data.get("notify_customer", True)),
        )
        return jsonify({"success": True, "booking": booking.to_dict()}), 200

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update booking status")
        return internal_error_response()


@bookings_bp.patch("/<int:booking_id>/payment")
@require_auth
def update_booking_payment_route(booking_id: int):
    try:
        data = read_json_body()
        booking = booking_service.get_booking(g.business_id, booking_id)
        booking = lifecycle_service.update_payment_status(
            booking,
            data.get("payment_status"),
            transaction_id=data.get("transaction_id"),
            gateway_response=data.get("gateway_response"),
            actor=g.actor,
        )
        return jsonify({"success": True, "booking": booking.to_dict()}), 200

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update booking payment")
        return internal_error_response()


@bookings_bp.post("/<int:booking_id>/cancel")
@require_auth
def cancel_booking_route(booking_id: int):
    try:
        data = read_json_body()
        booking = booking_service.get_booking(g.business_id, booking_id)
        booking = lifecycle_service.cancel_booking(booking, reason=data.get("reason"), actor=g.actor)
        return jsonify({"success": True, "booking": booking.to_dict()}), 200

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel booking")
        return internal_error_response()


@bookings_bp.post("/<int:booking_id>/refund")
@require_auth
def refund_booking_route(booking_id: int):
    """Request body: {"amount_cents": 1000, "reason": "...", "method": "original"}"""
    try:
        data = read_json_body()
        booking = booking_service.get_booking(g.business_id, booking_id)
        result = refund_service.process_refund(
            booking,
            data.get("amount_cents"),
            reason=data.get("reason"),
            method=data.get("method"),
            actor=g.actor,
        )
        return jsonify({
            "success": True,
            "booking": result.document.to_dict(),
            "refund": result.refund.to_dict(),
            "remaining_cents": result.remaining_cents,
        }), 200

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to process booking refund")
        return internal_error_response()
