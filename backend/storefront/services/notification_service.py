# Overview: Outbound customer/staff notifications; best-effort, never fails a request.

from __future__ import annotations

from flask import current_app


class NotificationDispatcher:
    """
    Default dispatcher: records each notification in the application log.

    Email/WhatsApp delivery plugs in by subclassing and overriding the
    ``send_*`` methods. Callers always go through :meth:`dispatch`.
    """

    def dispatch(self, event: str, *args, **kwargs) -> bool:
        """
        Call ``send_<event>`` and swallow any failure.

        Returns True when the handler ran without raising.
        """
        handler = getattr(self, f"send_{event}", None)
        if handler is None:
            current_app.logger.error("Unknown notification event %s", event)
            return False
        try:
            handler(*args, **kwargs)
            return True
        except Exception:
            current_app.logger.exception("Notification %s failed", event)
            return False

    def _log(self, event: str, document, **extra) -> None:
        number = getattr(document, "order_number", None) or getattr(document, "booking_number", None)
        current_app.logger.info(
            "Notification %s for %s to %s %s",
            event, number, document.customer_email, extra or "",
        )

    def send_order_confirmation(self, order) -> None:
        self._log("order_confirmation", order)

    def send_order_notification(self, order) -> None:
        """Internal new-order alert for the store owner."""
        self._log("order_notification", order, store_id=order.store_id)

    def send_order_status_update(self, order, previous_status: str) -> None:
        self._log("order_status_update", order, previous=previous_status, current=order.status)

    def send_order_cancellation(self, order, reason: str | None = None) -> None:
        self._log("order_cancellation", order, reason=reason)

    def send_refund_confirmation(self, document, refund) -> None:
        self._log("refund_confirmation", document, amount_cents=refund.amount_cents)

    def send_booking_confirmation(self, booking) -> None:
        self._log("booking_confirmation", booking)

    def send_booking_status_update(self, booking, previous_status: str) -> None:
        self._log("booking_status_update", booking, previous=previous_status, current=booking.status)


def get_notifier() -> NotificationDispatcher:
    return current_app.extensions["notifier"]
