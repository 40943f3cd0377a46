import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pydantic import ValidationError

from booking_core.models.bookings import ActorRole, BookingStatus
from booking_core.schemas.bookings import BookingRequest, TransitionRequest


def _payload(**overrides):
    payload = {
        "service_id": "s1",
        "provider_id": "p1",
        "categories": [
            {"category_id": "cat1", "name": "Cleaning", "price": "40"},
            {"category_id": "cat2", "name": "Windows", "price": "15.50"},
        ],
        "start_time": "2030-06-01T14:00:00+02:00",
        "end_time": "2030-06-01T16:00:00+02:00",
    }
    payload.update(overrides)
    return payload


class TestBookingRequest(unittest.TestCase):

    def test_times_normalized_to_utc_and_total_computed(self):
        req = BookingRequest.model_validate(_payload())

        self.assertEqual(req.start_time, datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc))
        self.assertEqual(req.end_time.tzinfo, timezone.utc)
        self.assertEqual(req.total_price, Decimal("55.50"))
        snapshots = req.category_snapshots()
        self.assertEqual([c.category_id for c in snapshots], ["cat1", "cat2"])

    def test_matching_total_is_accepted(self):
        req = BookingRequest.model_validate(_payload(total_price="55.5"))
        self.assertEqual(req.total_price, Decimal("55.5"))

    def test_mismatched_total_rejected(self):
        with self.assertRaises(ValidationError):
            BookingRequest.model_validate(_payload(total_price="10"))

    def test_naive_times_rejected(self):
        with self.assertRaises(ValidationError):
            BookingRequest.model_validate(
                _payload(start_time="2030-06-01T14:00:00", end_time="2030-06-01T16:00:00")
            )

    def test_end_must_follow_start(self):
        with self.assertRaises(ValidationError):
            BookingRequest.model_validate(_payload(end_time="2030-06-01T14:00:00+02:00"))

    def test_start_in_past_rejected(self):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        with self.assertRaises(ValidationError):
            BookingRequest.model_validate(
                _payload(
                    start_time=past.isoformat(),
                    end_time=(past + timedelta(hours=2)).isoformat(),
                )
            )

    def test_longer_than_a_day_rejected(self):
        with self.assertRaises(ValidationError):
            BookingRequest.model_validate(_payload(end_time="2030-06-02T14:00:01+02:00"))

    def test_exactly_a_day_accepted(self):
        req = BookingRequest.model_validate(_payload(end_time="2030-06-02T14:00:00+02:00"))
        self.assertEqual(req.end_time - req.start_time, timedelta(hours=24))

    def test_categories_required(self):
        with self.assertRaises(ValidationError):
            BookingRequest.model_validate(_payload(categories=[]))

    def test_negative_price_rejected(self):
        with self.assertRaises(ValidationError):
            BookingRequest.model_validate(
                _payload(categories=[{"category_id": "c", "name": "n", "price": "-1"}])
            )


class TestTransitionRequest(unittest.TestCase):

    def test_parses_enums(self):
        req = TransitionRequest.model_validate({"status": "cancelled", "actor_role": "consumer"})
        self.assertEqual(req.status, BookingStatus.CANCELLED)
        self.assertEqual(req.actor_role, ActorRole.CONSUMER)

    def test_unknown_role_rejected(self):
        with self.assertRaises(ValidationError):
            TransitionRequest.model_validate({"status": "accepted", "actor_role": "admin"})


if __name__ == "__main__":
    unittest.main()
