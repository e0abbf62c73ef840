# Overview: Pytest coverage for booking creation, slot validation and the public summary.

from datetime import date

import pytest

from storefront.errors import AccessDeniedError, InvalidPricing, NotFoundError, ValidationError
from storefront.models import Booking, BookingSlot, Customer
from storefront.services.booking_service import (
    SequentialBookingBuilder,
    TransactionalBookingBuilder,
    booking_summary,
    is_date_available,
    list_bookings,
)

from conftest import booking_payload


class TestAvailability:
    def test_always_and_missing_config_allow_every_day(self):
        assert is_date_available({"type": "always"}, date(2026, 11, 2))
        assert is_date_available(None, date(2026, 11, 2))

    def test_scheduled_checks_weekday(self):
        availability = {"type": "scheduled", "schedule": [
            {"day": "Monday", "available": True},
            {"day": "tuesday", "available": False},
        ]}
        assert is_date_available(availability, date(2026, 11, 2))       # Monday
        assert not is_date_available(availability, date(2026, 11, 3))   # Tuesday
        assert not is_date_available(availability, date(2026, 11, 4))   # not listed

    def test_custom_checks_exact_date(self):
        availability = {"type": "custom", "custom_dates": [{"date": "2026-12-24", "available": True}]}
        assert is_date_available(availability, date(2026, 12, 24))
        assert not is_date_available(availability, date(2026, 12, 25))


class TestCreateBooking:
    def test_creates_pending_booking_with_slot_snapshot(self, db_session, store, slot, notifier):
        booking = TransactionalBookingBuilder().create_booking(store, booking_payload(slot.id))

        assert booking.booking_number.startswith("BKA1B")
        assert booking.status == "pending"
        assert booking.payment_status == "pending"
        assert booking.slot_name == "Toyota Camry"
        assert booking.slot_price_cents == 5000
        assert booking.subtotal_cents == 5000
        assert booking.total_cents == 5000
        assert booking.meta == {"guests": 2, "pickup_location": "Ikeja"}
        assert [t.status for t in booking.timeline] == ["pending"]
        assert notifier.events == ["booking_confirmation"]

    def test_subtotal_is_slot_price_regardless_of_quantity(self, db_session, store, slot):
        booking = TransactionalBookingBuilder().create_booking(store, booking_payload(slot.id, quantity=3))
        assert booking.quantity == 3
        assert booking.subtotal_cents == 5000

    def test_snapshot_survives_slot_changes(self, db_session, store, slot):
        booking = TransactionalBookingBuilder().create_booking(store, booking_payload(slot.id))
        slot.name = "Renamed"
        slot.price_cents = 9000
        db_session.commit()

        stored = db_session.get(Booking, booking.id)
        assert stored.slot_name == "Toyota Camry"
        assert stored.slot_price_cents == 5000

    def test_bookings_disabled_for_store(self, db_session, store, slot):
        store.booking_enabled = False
        db_session.commit()

        with pytest.raises(ValidationError):
            TransactionalBookingBuilder().create_booking(store, booking_payload(slot.id))

    def test_unknown_slot(self, db_session, store):
        with pytest.raises(NotFoundError):
            TransactionalBookingBuilder().create_booking(store, booking_payload(999))

    def test_slot_of_another_store_is_denied(self, db_session, store, other_store):
        foreign = BookingSlot(store_id=other_store.id, name="Van", duration="1 day", price_cents=100, status="active", images=[])
        db_session.add(foreign)
        db_session.commit()

        with pytest.raises(AccessDeniedError):
            TransactionalBookingBuilder().create_booking(store, booking_payload(foreign.id))

    def test_inactive_slot(self, db_session, store, slot):
        slot.status = "draft"
        db_session.commit()
        with pytest.raises(ValidationError):
            TransactionalBookingBuilder().create_booking(store, booking_payload(slot.id))

    def test_quantity_over_capacity(self, db_session, store, slot):
        with pytest.raises(ValidationError) as exc_info:
            TransactionalBookingBuilder().create_booking(store, booking_payload(slot.id, quantity=5))
        assert exc_info.value.details == {"quantity": 5, "capacity": 4}

    def test_unavailable_date(self, db_session, store, slot):
        slot.availability = {"type": "scheduled", "schedule": [{"day": "saturday", "available": True}]}
        db_session.commit()
        with pytest.raises(ValidationError):
            TransactionalBookingBuilder().create_booking(store, booking_payload(slot.id))

    def test_end_before_start(self, db_session, store, slot):
        data = booking_payload(slot.id, start_date="2026-11-05", end_date="2026-11-04")
        with pytest.raises(ValidationError):
            TransactionalBookingBuilder().create_booking(store, data)

    def test_known_metadata_keys_are_type_checked(self, db_session, store, slot):
        data = booking_payload(slot.id, metadata={"guests": "two", "color": "blue"})
        with pytest.raises(ValidationError):
            TransactionalBookingBuilder().create_booking(store, data)

    def test_unknown_metadata_keys_pass_through(self, db_session, store, slot):
        data = booking_payload(slot.id, metadata={"flight_number": "BA075", "child_seat": True})
        booking = TransactionalBookingBuilder().create_booking(store, data)
        assert booking.meta["child_seat"] is True

    def test_discount_above_price(self, db_session, store, slot):
        data = booking_payload(slot.id, discount={"code": "BIG", "applied_amount_cents": 6000})
        with pytest.raises(InvalidPricing):
            TransactionalBookingBuilder().create_booking(store, data)
        assert db_session.query(Booking).count() == 0
        assert db_session.query(Customer).count() == 0

    def test_sequential_builder(self, db_session, store, slot):
        booking = SequentialBookingBuilder().create_booking(store, booking_payload(slot.id))
        assert booking.id is not None
        assert booking.customer_id is not None


class TestBookingQueries:
    def test_summary_formats_schedule(self, db_session, store, slot):
        booking = TransactionalBookingBuilder().create_booking(store, booking_payload(slot.id))

        summary = booking_summary(booking.id)

        assert summary["booking_number"] == booking.booking_number
        assert summary["schedule"]["start_date"] == "November 2, 2026"
        assert summary["schedule"]["start_date_time"] == "November 2, 2026 at 09:00"
        assert summary["slot"]["name"] == "Toyota Camry"
        assert summary["customer"]["email"] == "ada@example.com"
        assert summary["created_at"].endswith("Z")

    def test_summary_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            booking_summary(12345)

    def test_list_bookings(self, db_session, store, slot):
        TransactionalBookingBuilder().create_booking(store, booking_payload(slot.id))
        assert list_bookings(store.business_id)["count"] == 1
        assert list_bookings(store.business_id + 100)["count"] == 0
