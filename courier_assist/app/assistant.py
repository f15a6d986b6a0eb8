"""
Courier Assist Pipeline

Main orchestrator for processing courier commands.
Coordinates all stages: Classify -> Guard -> Respond -> Record

Principles:
- The core components stay independent; only this layer wires them
- Each stage is isolated and testable
- Explicit logging for audit
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from courier_assist.app.responses import build_status_update, generate_context_aware_response
from courier_assist.core import config as env
from courier_assist.core.context import ContextPreservationService
from courier_assist.core.entities import (
    AuditEvent,
    ChatMessage,
    ConversationContext,
    DeliveryContext,
    GeoLocation,
    InteractionMode,
    Intent,
    IntentType,
    SafetySituation,
    StatusUpdate,
    ValidationResult,
    VehicleStatus,
    utc_now,
)
from courier_assist.core.nlu import DeliveryIntentClassifier
from courier_assist.core.policy import DomainGuard
from courier_assist.core.ports import AuditPort
from courier_assist.core.safety import SafetyStateMachine, SafetyThresholds

logger = logging.getLogger(__name__)


@dataclass
class AssistantConfig:
    """Configuration for the assistant."""

    context_expiration_minutes: int = 60
    safety_thresholds: SafetyThresholds = field(default_factory=SafetyThresholds)

    # Domain guard (None = built-in defaults)
    blocked_keywords: Optional[List[str]] = None
    rejection_message: Optional[str] = None

    @classmethod
    def from_env(cls) -> "AssistantConfig":
        return cls(
            context_expiration_minutes=env.get_context_expiration_minutes(),
            safety_thresholds=env.get_safety_thresholds(),
            blocked_keywords=env.get_blocked_keywords(),
            rejection_message=env.get_rejection_message(),
        )


@dataclass
class AssistantResult:
    """Result of command processing."""

    success: bool
    intent: Optional[Intent] = None
    validation: Optional[ValidationResult] = None
    response: str = ""
    voice_only: bool = False
    requires_confirmation: bool = False
    status_update: Optional[StatusUpdate] = None
    error: Optional[str] = None
    duration_ms: float = 0.0


# Types for callbacks
AssistantCallback = Callable[["CourierAssistant", str, Any], None]


class CourierAssistant:
    """
    Main pipeline for processing courier commands.

    Processing sequence:
    1. Intent classification (with the current delivery context)
    2. Domain validation
    3. Context-aware response (voice-only when the safety posture requires it)
    4. Status update for quick messages
    5. Conversation and audit recording

    Example:
    ```python
    assistant = CourierAssistant()
    assistant.update_delivery_context(delivery_context)

    assistant.on("intent_rejected", lambda a, e, d: print(d["reason"]))

    result = assistant.process_text("reached pickup location")
    if result.status_update:
        sync_client.send(result.status_update)
    ```
    """

    def __init__(
        self,
        config: Optional[AssistantConfig] = None,
        classifier: Optional[DeliveryIntentClassifier] = None,
        guard: Optional[DomainGuard] = None,
        safety: Optional[SafetyStateMachine] = None,
        context_service: Optional[ContextPreservationService] = None,
        audit: Optional[AuditPort] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config or AssistantConfig()
        self._clock = clock

        self.classifier = classifier or DeliveryIntentClassifier()
        self.guard = guard or DomainGuard(
            blocked_keywords=self.config.blocked_keywords,
            rejection_message=self.config.rejection_message,
        )
        self.safety = safety or SafetyStateMachine(self.config.safety_thresholds, clock=clock)
        self.context_service = context_service or ContextPreservationService(
            expiration_minutes=self.config.context_expiration_minutes,
            clock=clock,
        )
        self._audit = audit
        self._delivery_context: Optional[DeliveryContext] = None

        # Callbacks for various events
        self._callbacks: Dict[str, List[AssistantCallback]] = {}

        self.safety.on_event(self._on_safety_event)

    # ============================================
    # Public API
    # ============================================

    def process_text(
        self,
        text: str,
        delivery_context: Optional[DeliveryContext] = None,
    ) -> AssistantResult:
        """
        Processes a typed or transcribed command.

        Args:
            text: Command text
            delivery_context: Context to use instead of the stored one

        Returns:
            Processing result
        """
        start_time = self._clock()

        try:
            if not text or not text.strip():
                return AssistantResult(
                    success=False,
                    error="Empty command",
                    duration_ms=self._calc_duration(start_time),
                )

            context = delivery_context or self._delivery_context

            self._emit("command_received", {"text": text})
            self._log_audit("command_received", {"text": text})

            # Classification
            intent = self.classifier.classify(text, context)
            self._emit("intent_recognized", {"intent": intent})

            # Domain validation
            validation = self.guard.validate_intent(intent)

            if not validation.is_valid:
                response = self.guard.generate_rejection_response()
                self._emit("intent_rejected", {"intent": intent, "reason": validation.reason})
                self._log_audit("intent_rejected", {
                    "query": text,
                    "action": intent.action,
                    "reason": validation.reason,
                })
                self._record_exchange(text, response, intent, context)
                return AssistantResult(
                    success=False,
                    intent=intent,
                    validation=validation,
                    response=response,
                    voice_only=self.safety.is_voice_only_mode(),
                    error=validation.reason,
                    duration_ms=self._calc_duration(start_time),
                )

            # Response
            response = generate_context_aware_response(intent, context)
            status_update = None
            if intent.intent_type == IntentType.QUICK_MESSAGE:
                status_update = build_status_update(intent, context, now=self._clock())

            self._emit("intent_accepted", {"intent": intent, "status_update": status_update})
            self._log_audit("intent_accepted", {
                "intent_type": intent.type_value,
                "action": intent.action,
                "confidence": intent.confidence,
            })
            self._record_exchange(text, response, intent, context)

            return AssistantResult(
                success=True,
                intent=intent,
                validation=validation,
                response=response,
                voice_only=self.safety.is_voice_only_mode(),
                requires_confirmation=not self.classifier.validate_intent(intent),
                status_update=status_update,
                duration_ms=self._calc_duration(start_time),
            )

        except Exception as e:
            logger.exception(f"Pipeline error: {e}")
            self._emit("error", {"error": str(e)})
            return AssistantResult(
                success=False,
                error=str(e),
                duration_ms=self._calc_duration(start_time),
            )

    def update_delivery_context(self, delivery_context: DeliveryContext) -> None:
        """
        Stores a private copy of the latest context from the host system.

        Telemetry updates change only this copy, never the caller's object.
        """
        self._delivery_context = copy.deepcopy(delivery_context)
        self.context_service.update_delivery_context(self._delivery_context)

    def update_vehicle_status(self, status: VehicleStatus) -> SafetySituation:
        if self._delivery_context is not None:
            self._delivery_context.vehicle_status = copy.deepcopy(status)
            self.context_service.update_delivery_context(self._delivery_context)
        self.safety.update_vehicle_status(status)
        return self.safety.detect_safety_situation()

    def update_location(self, location: GeoLocation) -> None:
        if self._delivery_context is not None:
            self._delivery_context.location = copy.deepcopy(location)
            self.context_service.update_delivery_context(self._delivery_context)
        self.safety.update_location(location)

    def switch_mode(self, mode: InteractionMode) -> None:
        """Switches between voice and chat, keeping the conversation."""
        self.context_service.switch_mode(self.context_service.current_mode, InteractionMode(mode))

    def get_conversation(self) -> Optional[ConversationContext]:
        return self.context_service.restore_context()

    # ============================================
    # Event System
    # ============================================

    def on(self, event: str, callback: AssistantCallback) -> None:
        """
        Registers a callback for an event.

        Events:
        - command_received: Command received
        - intent_recognized: Intent classified
        - intent_rejected: Domain guard rejected the intent
        - intent_accepted: Intent accepted
        - safety_situation_detected: Safety situation changed
        - error: Error
        """
        if event not in self._callbacks:
            self._callbacks[event] = []
        self._callbacks[event].append(callback)

    def off(self, event: str, callback: AssistantCallback) -> bool:
        """Removes a callback."""
        if event in self._callbacks:
            try:
                self._callbacks[event].remove(callback)
                return True
            except ValueError:
                pass
        return False

    def _emit(self, event: str, data: Dict[str, Any]) -> None:
        """Calls all callbacks for an event."""
        if event in self._callbacks:
            for callback in self._callbacks[event]:
                try:
                    callback(self, event, data)
                except Exception as e:
                    logger.error(f"Callback error for event '{event}': {e}")

    # ============================================
    # Internal Methods
    # ============================================

    def _on_safety_event(self, event: str, data: Any) -> None:
        if event != "safety_situation_detected":
            return
        self._emit(event, {"situation": data})
        self._log_audit(event, {
            "situation_type": data.situation_type.value,
            "severity": data.severity.value,
            "operation_mode": self.safety.get_operation_mode().value,
        }, actor="system")

    def _record_exchange(
        self,
        text: str,
        response: str,
        intent: Intent,
        context: Optional[DeliveryContext],
    ) -> None:
        """Appends the user message and the reply to the preserved conversation."""
        conversation = self.context_service.restore_context()
        if conversation is None:
            conversation = ConversationContext(messages=[], delivery_context=context)
        elif context is not None:
            conversation.delivery_context = context

        now = self._clock()
        conversation.messages.append(ChatMessage(text=text, sender="user", timestamp=now, intent=intent))
        conversation.messages.append(ChatMessage(text=response, sender="agent", timestamp=now))
        conversation.current_topic = intent.type_value

        self.context_service.preserve_context(conversation)

    def _log_audit(self, event_type: str, metadata: Dict[str, Any], actor: str = "courier") -> None:
        """Logs an event to the audit log."""
        if self._audit is None:
            return

        event = AuditEvent(
            event_type=event_type,
            actor=actor,
            metadata=metadata,
            timestamp=self._clock(),
        )

        try:
            self._audit.append_event(event)
        except Exception as e:
            logger.error(f"Failed to log audit event: {e}")

    def _calc_duration(self, start_time: datetime) -> float:
        delta = self._clock() - start_time
        return delta.total_seconds() * 1000
