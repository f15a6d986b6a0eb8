"""
Unit Tests for Domain Entities

Tests for the value objects shared by the core components.
"""

import pytest

from courier_assist.core.entities import (
    AuditEvent,
    Intent,
    IntentType,
    SafetySituation,
    Severity,
    SituationType,
    ValidationResult,
)


class TestIntent:
    """Tests for Intent."""

    def test_defaults(self):
        """An intent without parameters gets an empty dict and full confidence."""
        intent = Intent(intent_type=IntentType.NAVIGATION, action="get_directions")

        assert intent.parameters == {}
        assert intent.confidence == 1.0

    def test_confidence_out_of_range(self):
        """Confidence outside [0, 1] is rejected at construction."""
        with pytest.raises(ValueError):
            Intent(intent_type=IntentType.NAVIGATION, confidence=1.5)

        with pytest.raises(ValueError):
            Intent(intent_type=IntentType.NAVIGATION, confidence=-0.1)

    def test_type_value_for_enum_and_string(self):
        """type_value works for enum members and foreign strings."""
        assert Intent(intent_type=IntentType.QUICK_MESSAGE).type_value == "quick_message"
        assert Intent(intent_type="weather").type_value == "weather"

    def test_get_parameter(self):
        """Missing parameters fall back to the default."""
        intent = Intent(intent_type=IntentType.DELIVERY_STATUS, parameters={"orderId": "42"})

        assert intent.get_parameter("orderId") == "42"
        assert intent.get_parameter("location", "none") == "none"

    def test_immutable(self):
        """Intents are frozen."""
        intent = Intent(intent_type=IntentType.NAVIGATION)

        with pytest.raises(AttributeError):
            intent.action = "other"


class TestIntentType:
    """Tests for IntentType."""

    def test_values(self):
        """The four delivery domain types."""
        assert IntentType.values() == [
            "delivery_status",
            "navigation",
            "communication",
            "quick_message",
        ]


class TestValidationResult:
    """Tests for ValidationResult."""

    def test_accept(self):
        """Tests the accepted result."""
        result = ValidationResult.accept()

        assert result.is_valid
        assert result.reason is None
        assert result.suggested_action is None

    def test_reject(self):
        """Tests the rejected result."""
        result = ValidationResult.reject("Intent confidence too low: 0.1", "Please rephrase")

        assert not result.is_valid
        assert "confidence too low" in result.reason
        assert result.suggested_action == "Please rephrase"


class TestSeverity:
    """Tests for Severity ordering."""

    def test_ordering(self):
        """Severity is ordered low < medium < high."""
        assert Severity.LOW < Severity.MEDIUM < Severity.HIGH
        assert Severity.HIGH > Severity.LOW
        assert Severity.MEDIUM >= Severity.MEDIUM
        assert max([Severity.MEDIUM, Severity.HIGH, Severity.LOW]) == Severity.HIGH

    def test_same_classification(self):
        """Situations compare by type and severity, not timestamp."""
        first = SafetySituation(SituationType.HIGH_SPEED, Severity.MEDIUM)
        second = SafetySituation(SituationType.HIGH_SPEED, Severity.MEDIUM)
        other = SafetySituation(SituationType.SHARP_TURN, Severity.MEDIUM)

        assert first.same_classification(second)
        assert not first.same_classification(other)


class TestAuditEvent:
    """Tests for AuditEvent."""

    def test_unique_ids(self):
        """Tests that event ids are unique."""
        assert AuditEvent().event_id != AuditEvent().event_id

    def test_hash_depends_on_previous(self):
        """The hash changes when the chain link changes."""
        event = AuditEvent(event_type="intent_rejected", previous_hash="GENESIS")
        relinked = AuditEvent(
            event_type=event.event_type,
            event_id=event.event_id,
            timestamp=event.timestamp,
            previous_hash="other",
        )

        assert len(event.compute_hash()) == 64
        assert event.compute_hash() != relinked.compute_hash()

    def test_hash_covers_payload(self):
        """Tests that the hash depends on the payload."""
        event = AuditEvent(event_type="intent_rejected", previous_hash="GENESIS")

        assert event.compute_hash('{"query": "a"}') != event.compute_hash('{"query": "b"}')
