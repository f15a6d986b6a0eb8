"""
Pytest Configuration

Configuration and fixtures for tests.
"""

import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Adds the root directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from courier_assist.core.entities import (  # noqa: E402
    Address,
    CustomerInfo,
    Delivery,
    DeliveryContext,
    DeliveryStatus,
    GeoLocation,
    Route,
    VehicleStatus,
)


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    """Fixed clock starting at 2024-05-01 09:00 UTC."""
    return FakeClock()


@pytest.fixture
def delivery_context():
    """Courier with two open deliveries and an active route."""
    first = Delivery(
        id="ORD-1001",
        status=DeliveryStatus.PICKED_UP,
        pickup_location=Address("12 Market Street", "Springfield", "IL", "62701", GeoLocation(39.7990, -89.6440)),
        delivery_location=Address("48 Oak Avenue", "Springfield", "IL", "62704", GeoLocation(39.7817, -89.6501)),
        customer_info=CustomerInfo(name="Alex Morgan", phone="+1-555-0100"),
    )
    second = Delivery(
        id="ORD-1002",
        status=DeliveryStatus.PENDING,
        pickup_location=Address("5 Station Road", "Springfield", "IL", "62702", GeoLocation(39.8017, -89.6436)),
        delivery_location=Address("201 Lake Drive", "Springfield", "IL", "62703", GeoLocation(39.7700, -89.6300)),
        customer_info=CustomerInfo(name="Sam Lee", phone="+1-555-0101"),
        special_instructions="Leave at the front desk",
    )
    return DeliveryContext(
        partner_id="partner-42",
        current_deliveries=[first, second],
        active_route=Route(
            id="RT-1",
            stops=[first.delivery_location, second.pickup_location],
            estimated_duration=1800,
            distance=9.5,
        ),
        vehicle_status=VehicleStatus(id="VAN-7"),
        location=GeoLocation(39.7990, -89.6440, accuracy=5.0),
    )


@pytest.fixture
def empty_delivery_context():
    """Courier with no deliveries."""
    return DeliveryContext(partner_id="partner-42")
