"""
Unit Tests for Responses

Tests for context-aware answers and quick message status updates.
"""

from datetime import timedelta

import pytest

from courier_assist.app.responses import (
    build_status_update,
    delivery_status_prompt_from_location,
    generate_context_aware_response,
    get_delivery_by_order_id,
    get_delivery_stats,
    get_estimated_completion_time,
    get_next_delivery,
    get_route_suggestions,
    is_location_nearby,
    is_within_working_hours,
)
from courier_assist.core.entities import (
    DeliveryStatus,
    GeoLocation,
    Intent,
    IntentType,
    TimeRange,
)


def intent(action, intent_type=IntentType.DELIVERY_STATUS, **parameters):
    return Intent(intent_type, action, parameters, 0.8)


class TestContextAwareResponse:
    """Tests for generate_context_aware_response."""

    def test_without_context(self):
        """Tests answers without a delivery context."""
        response = generate_context_aware_response(intent("get_next_delivery"), None)

        assert response == "I don't have access to your delivery context right now."

    def test_next_delivery(self, delivery_context):
        """Tests the next delivery answer."""
        response = generate_context_aware_response(intent("get_next_delivery"), delivery_context)

        assert response == (
            "Your next delivery is order ORD-1001 to 48 Oak Avenue, Springfield. "
            "Status: picked_up."
        )

    def test_next_delivery_skips_closed(self, delivery_context):
        """Tests that closed deliveries are skipped."""
        delivery_context.current_deliveries[0].status = DeliveryStatus.DELIVERED

        response = generate_context_aware_response(intent("get_next_delivery"), delivery_context)

        assert "order ORD-1002" in response

    def test_no_pending_deliveries(self, empty_delivery_context):
        """Tests the answer with nothing pending."""
        response = generate_context_aware_response(intent("get_next_delivery"), empty_delivery_context)

        assert response == "You don't have any pending deliveries."

    def test_overview(self, delivery_context):
        """Tests the delivery overview."""
        delivery_context.current_deliveries[1].status = DeliveryStatus.FAILED

        response = generate_context_aware_response(intent("get_delivery_overview"), delivery_context)

        assert response == "You have 1 active deliveries. 2 total deliveries in your route."

    def test_order_status(self, delivery_context):
        """Tests the order status answer."""
        response = generate_context_aware_response(
            intent("get_order_status", orderId="ord-1002"), delivery_context
        )

        assert response == "Order ord-1002 status: pending. Ready for pickup."

    def test_order_status_completed(self, delivery_context):
        """Tests the status of a delivered order."""
        delivery_context.current_deliveries[0].status = DeliveryStatus.DELIVERED

        response = generate_context_aware_response(
            intent("get_order_status", orderId="ORD-1001"), delivery_context
        )

        assert response == "Order ORD-1001 status: delivered. Completed."

    def test_unknown_order(self, delivery_context):
        """Tests an order that is not in the context."""
        response = generate_context_aware_response(
            intent("get_order_status", orderId="999"), delivery_context
        )

        assert response == "I couldn't find order 999 in your current deliveries."

    def test_order_status_without_id(self, delivery_context):
        """Tests a status question without an order id."""
        response = generate_context_aware_response(intent("get_order_status"), delivery_context)

        assert response == "Please specify an order ID to check status."

    def test_navigate_to_next_stop(self, delivery_context):
        """Tests navigation to the next stop."""
        response = generate_context_aware_response(
            intent("navigate_to_next_stop", IntentType.NAVIGATION), delivery_context
        )

        assert response == "Navigate to 48 Oak Avenue, Springfield, IL 62704"

    def test_navigate_to_pickup_of_pending_order(self, delivery_context):
        """Tests navigation to a pending pickup."""
        delivery_context.current_deliveries.pop(0)

        response = generate_context_aware_response(
            intent("get_directions", IntentType.NAVIGATION), delivery_context
        )

        assert response == "Navigate to 5 Station Road, Springfield, IL 62702"

    def test_navigate_to_location(self, delivery_context):
        """Tests navigation to a named place."""
        response = generate_context_aware_response(
            intent("navigate_to_location", IntentType.NAVIGATION, location="Baker Street"),
            delivery_context,
        )

        assert response == "Navigate to Baker Street"

    def test_call_current_customer(self, delivery_context):
        """Tests calling the current customer."""
        response = generate_context_aware_response(
            intent("call_customer", IntentType.COMMUNICATION), delivery_context
        )

        assert response == "Calling Alex Morgan."

    def test_message_named_customer(self, delivery_context):
        """Tests messaging a named customer."""
        response = generate_context_aware_response(
            intent("message_customer", IntentType.COMMUNICATION, customerName="Jane"),
            delivery_context,
        )

        assert response == "Messaging Jane."

    def test_quick_message(self, delivery_context):
        """Tests the quick message confirmation."""
        response = generate_context_aware_response(
            intent("send_reached_pickup", IntentType.QUICK_MESSAGE), delivery_context
        )

        assert response == "Sent: Reached pickup location for order ORD-1001."

    def test_fallback(self, delivery_context):
        """Tests the fallback answer."""
        response = generate_context_aware_response(intent("something_else"), delivery_context)

        assert response == "I can help you with delivery status, navigation, and communication tasks."


class TestStatusUpdates:
    """Tests for build_status_update."""

    def test_reached_delivery(self, delivery_context, clock):
        """Tests the reached delivery update."""
        update = build_status_update(
            intent("send_reached_delivery", IntentType.QUICK_MESSAGE, orderId="ORD-1002"),
            delivery_context,
            clock(),
        )

        assert update.delivery_id == "ORD-1002"
        assert update.status == "reached_delivery"
        assert update.notes == "Reached delivery location for order ORD-1002"
        assert update.timestamp == clock()
        assert update.location == delivery_context.location

    def test_current_order_from_context_parameters(self, delivery_context):
        """Tests the order taken from the intent parameters."""
        update = build_status_update(
            intent("send_customer_unavailable", IntentType.QUICK_MESSAGE, currentOrderId="ORD-1002"),
            delivery_context,
        )

        assert update.delivery_id == "ORD-1002"
        assert update.status == "customer_unavailable"

    @pytest.mark.parametrize("time,notes", [
        ("15 minutes", "Delayed due to traffic, estimated 15 minutes late"),
        ("1 hour", "Delayed due to traffic, estimated 60 minutes late"),
        (None, "Delayed due to traffic"),
    ])
    def test_traffic_delay(self, delivery_context, time, notes):
        """Tests the traffic delay update."""
        parameters = {"time": time} if time else {}
        update = build_status_update(
            Intent(IntentType.QUICK_MESSAGE, "send_traffic_delay", parameters, 0.8),
            delivery_context,
        )

        assert update.status == "delayed"
        assert update.notes == notes

    def test_not_a_quick_message(self, delivery_context):
        """Tests that other intents build no update."""
        assert build_status_update(intent("get_next_delivery"), delivery_context) is None

    def test_no_known_delivery(self, empty_delivery_context):
        """Tests an update with no known delivery."""
        update = build_status_update(
            intent("send_status_update", IntentType.QUICK_MESSAGE), empty_delivery_context
        )

        assert update is None


class TestDeliveryHelpers:
    """Tests for delivery context lookups."""

    def test_lookups(self, delivery_context):
        """Tests the delivery lookups."""
        assert get_next_delivery(delivery_context).id == "ORD-1001"
        assert get_next_delivery(None) is None
        assert get_delivery_by_order_id(delivery_context, "ord-1002").id == "ORD-1002"
        assert get_delivery_by_order_id(delivery_context, "nope") is None

    def test_delivery_stats(self, delivery_context):
        """Tests the delivery statistics."""
        stats = get_delivery_stats(delivery_context)

        assert stats["total"] == 2
        assert stats["picked_up"] == 1
        assert stats["pending"] == 1
        assert stats["delivered"] == 0

    def test_is_location_nearby(self, delivery_context):
        """Tests the proximity check."""
        assert is_location_nearby(delivery_context, GeoLocation(39.7995, -89.6445))
        assert not is_location_nearby(delivery_context, GeoLocation(39.8200, -89.6440))
        assert not is_location_nearby(None, GeoLocation(0.0, 0.0))

    def test_working_hours(self, delivery_context, clock):
        """Tests the working hours check."""
        assert is_within_working_hours(delivery_context, clock())

        delivery_context.working_hours = TimeRange(
            start=clock() + timedelta(hours=1),
            end=clock() + timedelta(hours=9),
        )
        assert not is_within_working_hours(delivery_context, clock())
        assert is_within_working_hours(delivery_context, clock() + timedelta(hours=2))

    def test_estimated_completion_time(self, delivery_context, empty_delivery_context, clock):
        """Tests the completion estimate."""
        assert get_estimated_completion_time(delivery_context, clock()) == clock() + timedelta(minutes=30)
        assert get_estimated_completion_time(empty_delivery_context, clock()) is None

    def test_status_prompt_near_pickup(self, delivery_context):
        """Tests the prompt near a pickup."""
        delivery_context.location = GeoLocation(39.8017, -89.6436)

        prompt = delivery_status_prompt_from_location(delivery_context)

        assert prompt == (
            "You're near the pickup location for order ORD-1002. "
            "Would you like to mark it as picked up?"
        )

    def test_status_prompt_away_from_stops(self, delivery_context):
        """Tests the prompt away from every stop."""
        assert delivery_status_prompt_from_location(delivery_context) is None

    def test_route_suggestions(self, delivery_context):
        """Tests the route suggestions."""
        assert get_route_suggestions(delivery_context) == [
            "Navigate to next stop: Springfield",
            "Call customer for order ORD-1001",
        ]

        delivery_context.vehicle_status.is_moving = True
        delivery_context.vehicle_status.speed = 4
        assert get_route_suggestions(delivery_context)[-1] == "Send traffic delay notification"
