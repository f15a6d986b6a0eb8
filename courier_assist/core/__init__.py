"""
Courier Assist - Core Domain Package

This package contains pure domain logic without infrastructure dependencies.
All dependencies are inward-facing (towards this package).
"""

from courier_assist.core.context import ContextPreservationService
from courier_assist.core.entities import (
    ConversationContext,
    DeliveryContext,
    Entity,
    Intent,
    IntentType,
    OperationMode,
    SafetySituation,
    Severity,
    SituationType,
    ValidationResult,
)
from courier_assist.core.nlu import DeliveryIntentClassifier
from courier_assist.core.policy import DomainGuard
from courier_assist.core.ports import AuditPort
from courier_assist.core.safety import SafetyStateMachine, SafetyThresholds

__all__ = [
    # Entities
    "IntentType",
    "Intent",
    "Entity",
    "ValidationResult",
    "SituationType",
    "Severity",
    "SafetySituation",
    "OperationMode",
    "DeliveryContext",
    "ConversationContext",
    # Components
    "DeliveryIntentClassifier",
    "DomainGuard",
    "SafetyStateMachine",
    "SafetyThresholds",
    "ContextPreservationService",
    # Ports
    "AuditPort",
]
