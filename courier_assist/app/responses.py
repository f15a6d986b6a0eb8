"""
Courier Assist Responses

Context-aware answers for accepted intents and the status updates that
quick messages turn into. Everything here reads the delivery context; it
never modifies it.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from courier_assist.core.entities import (
    Delivery,
    DeliveryContext,
    DeliveryStatus,
    GeoLocation,
    Intent,
    StatusUpdate,
    utc_now,
)

NEARBY_THRESHOLD = 0.01
ARRIVAL_THRESHOLD = 0.001
SLOW_SPEED = 10

_OPEN_STATUSES = (DeliveryStatus.PENDING, DeliveryStatus.PICKED_UP, DeliveryStatus.IN_TRANSIT)

_ORDER_STATUS_NOTES: Dict[DeliveryStatus, str] = {
    DeliveryStatus.PENDING: "Ready for pickup",
    DeliveryStatus.PICKED_UP: "In transit to delivery location",
    DeliveryStatus.IN_TRANSIT: "In transit to delivery location",
}

# action -> (status, message template)
QUICK_MESSAGE_TEMPLATES: Dict[str, tuple] = {
    "send_reached_pickup": ("reached_pickup", "Reached pickup location for order {order_id}"),
    "send_reached_delivery": ("reached_delivery", "Reached delivery location for order {order_id}"),
    "send_traffic_delay": ("delayed", "Delayed due to traffic, estimated {minutes} minutes late"),
    "send_customer_unavailable": ("customer_unavailable", "Unable to contact customer for order {order_id}"),
    "send_status_update": ("status_update", "Status update for order {order_id}"),
}


# ============================================
# Delivery Lookup
# ============================================

def get_next_delivery(context: Optional[DeliveryContext]) -> Optional[Delivery]:
    """First delivery that is not delivered or failed."""
    if context is None:
        return None
    for delivery in context.current_deliveries:
        if delivery.status in _OPEN_STATUSES:
            return delivery
    return None


def get_delivery_by_order_id(context: Optional[DeliveryContext], order_id: str) -> Optional[Delivery]:
    if context is None:
        return None
    for delivery in context.current_deliveries:
        if delivery.id.lower() == order_id.lower():
            return delivery
    return None


def is_location_nearby(
    context: Optional[DeliveryContext],
    target: GeoLocation,
    threshold: float = NEARBY_THRESHOLD,
) -> bool:
    """Coarse proximity check on raw coordinate deltas."""
    if context is None or context.location is None:
        return False
    current = context.location
    return (
        abs(current.latitude - target.latitude) < threshold
        and abs(current.longitude - target.longitude) < threshold
    )


def get_delivery_stats(context: Optional[DeliveryContext]) -> Dict[str, int]:
    stats = {"total": 0}
    for status in DeliveryStatus:
        stats[status.value] = 0
    if context is None:
        return stats

    stats["total"] = len(context.current_deliveries)
    for delivery in context.current_deliveries:
        stats[DeliveryStatus(delivery.status).value] += 1
    return stats


def get_current_customer_info(context: Optional[DeliveryContext]) -> Optional[Dict[str, Optional[str]]]:
    delivery = get_next_delivery(context)
    if delivery is None:
        return None
    return {
        "name": delivery.customer_info.name,
        "phone": delivery.customer_info.phone,
        "notes": delivery.customer_info.notes,
    }


def is_within_working_hours(context: Optional[DeliveryContext], now: Optional[datetime] = None) -> bool:
    """True when no working hours are known."""
    if context is None or context.working_hours is None:
        return True
    now = now or utc_now()
    return context.working_hours.start <= now <= context.working_hours.end


def get_estimated_completion_time(
    context: Optional[DeliveryContext],
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    if context is None or context.active_route is None:
        return None
    now = now or utc_now()
    return now + timedelta(seconds=context.active_route.estimated_duration)


# ============================================
# Responses
# ============================================

def generate_context_aware_response(intent: Intent, context: Optional[DeliveryContext]) -> str:
    """
    Builds the answer for an accepted intent.

    Args:
        intent: Accepted intent
        context: Current delivery context

    Returns:
        Sentence for the courier
    """
    if context is None:
        return "I don't have access to your delivery context right now."

    action = intent.action

    if action == "get_next_delivery":
        delivery = get_next_delivery(context)
        if delivery is None:
            return "You don't have any pending deliveries."
        location = delivery.delivery_location
        return (
            f"Your next delivery is order {delivery.id} to {location.street}, {location.city}. "
            f"Status: {DeliveryStatus(delivery.status).value}."
        )

    if action in ("get_current_status", "get_delivery_overview"):
        if not context.current_deliveries:
            return "You don't have any active deliveries."
        active = sum(1 for d in context.current_deliveries if d.status in _OPEN_STATUSES)
        return (
            f"You have {active} active deliveries. "
            f"{len(context.current_deliveries)} total deliveries in your route."
        )

    if action == "get_order_status":
        order_id = intent.get_parameter("orderId")
        if not order_id:
            return "Please specify an order ID to check status."
        delivery = get_delivery_by_order_id(context, order_id)
        if delivery is None:
            return f"I couldn't find order {order_id} in your current deliveries."
        status = DeliveryStatus(delivery.status)
        note = _ORDER_STATUS_NOTES.get(status, "Completed")
        return f"Order {order_id} status: {status.value}. {note}."

    if action in ("navigate_to_next_stop", "get_directions"):
        delivery = get_next_delivery(context)
        if delivery is None:
            return "No more stops in your route."
        if delivery.status == DeliveryStatus.PENDING:
            location = delivery.pickup_location
        else:
            location = delivery.delivery_location
        return f"Navigate to {location.street}, {location.city}, {location.state} {location.zip_code}".strip()

    if action == "navigate_to_location":
        target = intent.get_parameter("location")
        if not target:
            return "Please specify a location to navigate to."
        return f"Navigate to {target}"

    if action in ("call_customer", "message_customer", "contact_customer"):
        customer = get_current_customer_info(context)
        name = intent.get_parameter("customerName") or (customer or {}).get("name")
        if not name:
            return "I couldn't find a customer for your current delivery."
        verb = "Calling" if action == "call_customer" else "Messaging"
        return f"{verb} {name}."

    update = build_status_update(intent, context)
    if update is not None:
        return f"Sent: {update.notes}."

    return "I can help you with delivery status, navigation, and communication tasks."


def delivery_status_prompt_from_location(context: Optional[DeliveryContext]) -> Optional[str]:
    """Suggests a status change when the courier is at a pickup or drop-off."""
    if context is None or context.location is None:
        return None

    for delivery in context.current_deliveries:
        if delivery.status == DeliveryStatus.PENDING and is_location_nearby(
            context, delivery.pickup_location.coordinates, ARRIVAL_THRESHOLD
        ):
            return (
                f"You're near the pickup location for order {delivery.id}. "
                "Would you like to mark it as picked up?"
            )
        if delivery.status == DeliveryStatus.PICKED_UP and is_location_nearby(
            context, delivery.delivery_location.coordinates, ARRIVAL_THRESHOLD
        ):
            return (
                f"You're near the delivery location for order {delivery.id}. "
                "Would you like to mark it as delivered?"
            )

    return None


def get_route_suggestions(context: Optional[DeliveryContext]) -> List[str]:
    if context is None or context.active_route is None:
        return []

    suggestions: List[str] = []
    delivery = get_next_delivery(context)
    if delivery is not None:
        suggestions.append(f"Navigate to next stop: {delivery.delivery_location.city}")
        if delivery.customer_info.phone:
            suggestions.append(f"Call customer for order {delivery.id}")
        if delivery.special_instructions:
            suggestions.append(f"Review special instructions for order {delivery.id}")

    vehicle = context.vehicle_status
    if vehicle.is_moving and vehicle.speed < SLOW_SPEED:
        suggestions.append("Send traffic delay notification")

    return suggestions


# ============================================
# Status Updates
# ============================================

def build_status_update(
    intent: Intent,
    context: Optional[DeliveryContext],
    now: Optional[datetime] = None,
) -> Optional[StatusUpdate]:
    """
    Turns an accepted quick message into a StatusUpdate for the host system.

    Returns:
        None if the action is not a quick message or no delivery is known
    """
    template = QUICK_MESSAGE_TEMPLATES.get(intent.action)
    if template is None:
        return None

    order_id = intent.get_parameter("orderId") or intent.get_parameter("currentOrderId")
    if not order_id:
        delivery = get_next_delivery(context)
        order_id = delivery.id if delivery is not None else None
    if not order_id:
        return None

    status, message = template
    minutes = _minutes_from(intent.get_parameter("time"))
    if "{minutes}" in message and minutes is None:
        notes = "Delayed due to traffic"
    else:
        notes = message.format(order_id=order_id, minutes=minutes)

    return StatusUpdate(
        delivery_id=order_id,
        status=status,
        timestamp=now or utc_now(),
        location=context.location if context is not None else None,
        notes=notes,
    )


def _minutes_from(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    match = re.search(r"(\d+)\s*(minutes?|mins?|hours?|hrs?)", value)
    if match is None:
        return None
    amount = int(match.group(1))
    return amount * 60 if match.group(2).startswith("h") else amount
