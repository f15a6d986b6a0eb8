"""
Courier Assist Core Domain Entities

This module contains all domain entities (Data Classes).
Per-call values (Intent, Entity, ValidationResult, SafetySituation) are
immutable. Delivery and conversation contexts are plain mutable records
owned by whoever holds them.

Flow:
    utterance -> Intent -> ValidationResult -> StatusUpdate
    telemetry -> SafetySituation -> SafetyState
    ChatMessage -> ConversationContext -> ContextSnapshot
"""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from functools import total_ordering
from typing import Any, Dict, List, Optional, Union


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================
# Intent Entities
# ============================================

class IntentType(str, Enum):
    """Delivery domain intent types."""
    DELIVERY_STATUS = "delivery_status"
    NAVIGATION = "navigation"
    COMMUNICATION = "communication"
    QUICK_MESSAGE = "quick_message"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


@dataclass(frozen=True)
class Intent:
    """
    Recognized courier intent.

    Attributes:
        intent_type: Type of intent (IntentType, or a raw string from a foreign source)
        action: Action identifier (e.g. get_next_delivery)
        parameters: Entity values and context-derived values
        confidence: Confidence in recognition (0.0-1.0)

    Raises:
        ValueError: If confidence is outside 0.0-1.0. This is the one
            constructor contract in the core; the classifier clamps its
            scores, so only hand-built intents can trip it.
    """
    intent_type: Union[IntentType, str]
    action: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)
    confidence: float = 1.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be between 0.0 and 1.0, got {self.confidence}")

    @property
    def type_value(self) -> str:
        """Intent type as a plain string."""
        if isinstance(self.intent_type, Enum):
            return self.intent_type.value
        return str(self.intent_type)

    def get_parameter(self, key: str, default: Any = None) -> Any:
        """Safely retrieve a parameter."""
        return self.parameters.get(key, default)


@dataclass(frozen=True)
class Entity:
    """
    Substring of the input recognized as a structured value.

    Indices always refer to the original (not normalized) text.
    """
    entity_type: str
    value: str
    confidence: float
    start_index: int
    end_index: int


@dataclass(frozen=True)
class ValidationResult:
    """
    Domain validation outcome.

    reason and suggested_action are set only when is_valid is False.
    """
    is_valid: bool
    reason: Optional[str] = None
    suggested_action: Optional[str] = None

    @staticmethod
    def accept() -> "ValidationResult":
        return ValidationResult(is_valid=True)

    @staticmethod
    def reject(reason: str, suggested_action: str) -> "ValidationResult":
        return ValidationResult(
            is_valid=False,
            reason=reason,
            suggested_action=suggested_action,
        )


@dataclass(frozen=True)
class RejectedQueryLogEntry:
    query: str
    reason: str
    timestamp: datetime = field(default_factory=utc_now)


# ============================================
# Safety Entities
# ============================================

class SituationType(str, Enum):
    EMERGENCY_BRAKING = "emergency_braking"
    SHARP_TURN = "sharp_turn"
    HIGH_SPEED = "high_speed"
    TRAFFIC_CONGESTION = "traffic_congestion"
    NONE = "none"


_SEVERITY_RANK = {"low": 0, "medium": 1, "high": 2}


@total_ordering
class Severity(Enum):
    """Severity of a safety situation, ordered low < medium < high."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self.value]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank


class OperationMode(str, Enum):
    """Interaction posture of the assistant."""
    NORMAL = "normal"                    # Full interface available
    DRIVING = "driving"                  # Voice-priority, minimal visual
    HANDS_FREE = "hands_free"            # Voice-only, no touch required
    SAFETY_CRITICAL = "safety_critical"  # Emergency, voice-only and minimal


@dataclass(frozen=True)
class VehicleData:
    speed: float = 0.0
    acceleration: float = 0.0
    gps_accuracy: float = 0.0


@dataclass(frozen=True)
class SafetySituation:
    """
    Classified vehicle/motion condition derived from telemetry.

    Attributes:
        situation_type: What was detected
        severity: How dangerous it is
        timestamp: Detection time
        vehicle_data: Telemetry the detection was based on
    """
    situation_type: SituationType = SituationType.NONE
    severity: Severity = Severity.LOW
    timestamp: datetime = field(default_factory=utc_now)
    vehicle_data: Optional[VehicleData] = None

    def same_classification(self, other: "SafetySituation") -> bool:
        return (
            self.situation_type == other.situation_type
            and self.severity == other.severity
        )


@dataclass(frozen=True)
class SafetyState:
    """Read-only view over the safety state machine."""
    is_driving_mode: bool
    is_hands_free_mode: bool
    current_situation: SafetySituation
    operation_mode: OperationMode
    distractions_minimized: bool


# ============================================
# Delivery Context Entities
# ============================================

class DeliveryStatus(str, Enum):
    PENDING = "pending"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    FAILED = "failed"


class VehicleType(str, Enum):
    CAR = "car"
    BIKE = "bike"
    TRUCK = "truck"
    VAN = "van"


@dataclass
class GeoLocation:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None


@dataclass
class Address:
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    coordinates: GeoLocation = field(default_factory=lambda: GeoLocation(0.0, 0.0))


@dataclass
class CustomerInfo:
    name: str = ""
    phone: str = ""
    email: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class Delivery:
    id: str
    status: DeliveryStatus = DeliveryStatus.PENDING
    pickup_location: Address = field(default_factory=Address)
    delivery_location: Address = field(default_factory=Address)
    customer_info: CustomerInfo = field(default_factory=CustomerInfo)
    estimated_time: Optional[datetime] = None
    special_instructions: Optional[str] = None


@dataclass
class Route:
    id: str
    stops: List[Address] = field(default_factory=list)
    estimated_duration: float = 0.0  # seconds
    distance: float = 0.0


@dataclass
class VehicleStatus:
    id: str = ""
    vehicle_type: VehicleType = VehicleType.BIKE
    is_moving: bool = False
    speed: float = 0.0
    fuel_level: Optional[float] = None
    battery_level: Optional[float] = None


@dataclass
class TimeRange:
    start: datetime
    end: datetime


@dataclass
class DeliveryContext:
    """
    Courier state synchronized from the host logistics system.

    Only partner_id, location and current_deliveries take part in validity
    checks; the rest is carried through untouched.
    """
    partner_id: str = ""
    current_deliveries: List[Delivery] = field(default_factory=list)
    active_route: Optional[Route] = None
    vehicle_status: VehicleStatus = field(default_factory=VehicleStatus)
    location: Optional[GeoLocation] = None
    working_hours: Optional[TimeRange] = None


@dataclass(frozen=True)
class StatusUpdate:
    """Status change reported to the host system by the caller."""
    delivery_id: str
    status: str
    timestamp: datetime = field(default_factory=utc_now)
    location: Optional[GeoLocation] = None
    notes: Optional[str] = None


# ============================================
# Conversation Entities
# ============================================

class InteractionMode(str, Enum):
    VOICE = "voice"
    CHAT = "chat"


@dataclass(frozen=True)
class ChatMessage:
    text: str
    sender: str = "user"  # user | agent
    timestamp: datetime = field(default_factory=utc_now)
    intent: Optional[Intent] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class ConversationContext:
    messages: List[ChatMessage] = field(default_factory=list)
    delivery_context: Optional[DeliveryContext] = None
    current_topic: Optional[str] = None


@dataclass(frozen=True)
class ContextSnapshot:
    conversation_context: Optional[ConversationContext]
    current_mode: InteractionMode
    last_activity: datetime
    context_version: int
    is_valid: bool


@dataclass(frozen=True)
class ModeTransition:
    from_mode: InteractionMode
    to_mode: InteractionMode
    timestamp: datetime
    context_preserved: bool
    message_count: int
    delivery_context_id: Optional[str] = None


@dataclass(frozen=True)
class ContextIntegrityReport:
    is_valid: bool
    issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ContextExport:
    """Full internal state of the context preservation service."""
    conversation_context: Optional[ConversationContext]
    current_mode: InteractionMode
    last_activity: datetime
    context_version: int
    transition_history: List[ModeTransition] = field(default_factory=list)


# ============================================
# Audit Entities
# ============================================

@dataclass(frozen=True)
class AuditEvent:
    """
    Represents an audit event (append-only).

    Attributes:
        event_type: intent_rejected, intent_accepted, safety_situation_detected, ...
        actor: Who initiated (courier, system)
        metadata: Event payload (JSON-serializable)
        previous_hash: Hash of the previous event (for hash chain)
    """
    event_type: str = "generic"
    actor: str = "system"
    metadata: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=utc_now)
    previous_hash: str = ""

    def compute_hash(self, payload: str = "") -> str:
        """
        Calculates SHA-256 hash of the event for chain integrity.

        Args:
            payload: Serialized metadata as stored by the journal
        """
        content = "|".join([
            self.event_id,
            self.timestamp.isoformat(),
            self.event_type,
            self.actor,
            payload,
            self.previous_hash,
        ])
        return hashlib.sha256(content.encode("utf-8")).hexdigest()
