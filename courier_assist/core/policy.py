"""
Courier Assist Domain Guard

Keeps the assistant inside the delivery domain.
Every intent passes an ordered validation pipeline before it may be acted on;
the first failing check is the one reported.

Pipeline:
1. Type Check: intent type is one of the four delivery types
2. Whitelist Check: action is an approved delivery action
3. Keyword Check: serialized parameters contain no blocked keyword
4. Confidence Check: confidence reaches the domain floor (0.3)

Rejections are written to a bounded in-memory log (oldest entries evicted
first). The detailed reason is for logging only; users always get the same
rejection sentence.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from collections import deque
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Optional

from courier_assist.core.entities import (
    Intent,
    IntentType,
    RejectedQueryLogEntry,
    ValidationResult,
    utc_now,
)
from courier_assist.core.events import EventCallback, EventEmitter

logger = logging.getLogger(__name__)

MIN_DOMAIN_CONFIDENCE = 0.3
QUERY_LOG_CAPACITY = 1000

DEFAULT_REJECTION_MESSAGE = "I can help only with delivery-related tasks"

DEFAULT_APPROVED_INTENTS: List[str] = [
    # Delivery status
    "delivery_status_check",
    "delivery_status_update",
    "delivery_mark_picked_up",
    "delivery_mark_delivered",
    "delivery_mark_failed",
    "delivery_get_next",
    "delivery_get_current",
    "delivery_get_details",
    "get_next_delivery",
    "get_current_status",
    "get_order_status",
    "get_delivery_overview",

    # Navigation
    "navigation_to_pickup",
    "navigation_to_delivery",
    "navigation_to_next_stop",
    "navigation_get_directions",
    "navigation_get_eta",
    "navigation_report_traffic",
    "navigate_to_next_stop",
    "navigate_to_location",
    "get_directions",

    # Communication
    "communication_send_message",
    "communication_call_customer",
    "communication_report_delay",
    "communication_report_issue",
    "communication_contact_support",
    "call_customer",
    "message_customer",
    "contact_customer",

    # Quick messages
    "quick_message_reached_pickup",
    "quick_message_reached_delivery",
    "quick_message_traffic_delay",
    "quick_message_customer_unavailable",
    "quick_message_delivery_complete",
    "quick_message_need_assistance",
    "send_reached_pickup",
    "send_reached_delivery",
    "send_traffic_delay",
    "send_customer_unavailable",
    "send_status_update",

    # Route and location
    "route_get_overview",
    "route_get_remaining_stops",
    "location_get_current",
    "location_share_with_customer",

    # Vehicle and shift
    "vehicle_status_check",
    "vehicle_report_issue",
    "break_start",
    "break_end",
    "shift_start",
    "shift_end",
]

DEFAULT_BLOCKED_KEYWORDS: List[str] = [
    # Entertainment
    "music", "song", "play", "movie", "video", "game", "entertainment",
    # Personal/social
    "personal", "family", "friend", "social", "dating", "relationship",
    # News/politics
    "news", "politics", "election", "government", "president", "vote",
    # Shopping (non-delivery)
    "buy", "purchase", "shop", "store", "mall", "price", "discount",
    # General knowledge
    "wikipedia", "definition", "history", "science", "math", "calculate",
    # Weather
    "weather", "temperature", "rain", "snow", "forecast",
    # Sports
    "sports", "football", "basketball", "baseball", "soccer", "game score",
    # Technology (non-delivery)
    "computer", "software", "programming", "internet", "email", "social media",
]


def _json_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize_parameters(parameters: Dict[str, Any]) -> str:
    """Serializes intent parameters to JSON (dataclasses, enums and datetimes included)."""
    return json.dumps(parameters, default=_json_default, ensure_ascii=False)


class DomainGuard:
    """
    Delivery domain gate.

    The whitelist, blocked keywords and rejection sentence are configuration
    and can be replaced at runtime.

    Example usage:
        guard = DomainGuard()
        result = guard.validate_intent(intent)

        if result.is_valid:
            # Execute the action
            pass
        else:
            # Tell the courier, never the detailed reason
            speak(guard.generate_rejection_response())
    """

    def __init__(
        self,
        approved_intents: Optional[Iterable[str]] = None,
        blocked_keywords: Optional[Iterable[str]] = None,
        rejection_message: Optional[str] = None,
        log_capacity: int = QUERY_LOG_CAPACITY,
    ) -> None:
        self._approved_intents: List[str] = list(
            approved_intents if approved_intents is not None else DEFAULT_APPROVED_INTENTS
        )
        self._blocked_keywords: List[str] = list(
            blocked_keywords if blocked_keywords is not None else DEFAULT_BLOCKED_KEYWORDS
        )
        self._rejection_message = rejection_message or DEFAULT_REJECTION_MESSAGE
        self._query_log: Deque[RejectedQueryLogEntry] = deque(maxlen=log_capacity)
        self._events = EventEmitter(owner="DomainGuard")

    def validate_intent(self, intent: Intent) -> ValidationResult:
        """
        Validates an intent against the delivery domain.

        Args:
            intent: Intent to validate

        Returns:
            ValidationResult; rejections are also logged
        """
        # Stage 1: Type Check
        if intent.type_value not in IntentType.values():
            reason = f"Intent type '{intent.type_value}' is not approved for delivery operations"
            return self._reject(
                intent.action,
                reason,
                "Please ask about delivery status, navigation, or communication tasks",
            )

        # Stage 2: Whitelist Check
        if intent.action not in self._approved_intents:
            reason = f"Intent action '{intent.action}' is not in approved delivery intents"
            return self._reject(
                intent.action,
                reason,
                "Try asking about delivery status, directions, or sending messages",
            )

        # Stage 3: Keyword Check
        try:
            serialized = serialize_parameters(intent.parameters)
        except (TypeError, ValueError) as e:
            return self._reject(
                intent.action,
                f"Validation error: {e}",
                "Please try again with a delivery-related request",
                public_reason="Unable to validate intent due to system error",
            )

        blocked = self._find_blocked_keyword(serialized)
        if blocked is not None:
            return self._reject(
                serialized,
                f"Query contains blocked keyword: {blocked}",
                "Please focus on delivery-related tasks only",
            )

        # Stage 4: Confidence Check
        if intent.confidence < MIN_DOMAIN_CONFIDENCE:
            return self._reject(
                intent.action,
                f"Intent confidence too low: {intent.confidence}",
                "Please rephrase your delivery-related request more clearly",
            )

        return ValidationResult.accept()

    def get_approved_intents(self) -> List[str]:
        """Returns a copy of the approved action whitelist."""
        return list(self._approved_intents)

    def get_blocked_keywords(self) -> List[str]:
        return list(self._blocked_keywords)

    def log_rejected_query(self, query: str, reason: str) -> RejectedQueryLogEntry:
        """Appends a rejection to the bounded log."""
        entry = RejectedQueryLogEntry(query=query, reason=reason, timestamp=utc_now())
        self._query_log.append(entry)
        logger.info(f"Rejected query: {query!r} ({reason})")
        self._events.emit("intent_rejected", {"query": query, "reason": reason, "entry": entry})
        return entry

    def generate_rejection_response(self) -> str:
        """The single user-facing rejection sentence."""
        return self._rejection_message

    def get_query_log(self) -> List[RejectedQueryLogEntry]:
        """Returns a copy of the rejection log, oldest first."""
        return list(self._query_log)

    def clear_query_log(self) -> None:
        self._query_log.clear()

    def update_approved_intents(self, intents: Iterable[str]) -> None:
        self._approved_intents = list(intents)

    def update_blocked_keywords(self, keywords: Iterable[str]) -> None:
        self._blocked_keywords = list(keywords)

    def update_rejection_message(self, message: str) -> None:
        self._rejection_message = message

    def on(self, event: str, callback: EventCallback) -> None:
        """Registers a listener (event: intent_rejected)."""
        self._events.on(event, callback)

    def off(self, event: str, callback: EventCallback) -> bool:
        return self._events.off(event, callback)

    # ============================================
    # Internal Methods
    # ============================================

    def _reject(
        self,
        query: str,
        reason: str,
        suggested_action: str,
        public_reason: Optional[str] = None,
    ) -> ValidationResult:
        self.log_rejected_query(query, reason)
        return ValidationResult.reject(public_reason or reason, suggested_action)

    def _find_blocked_keyword(self, serialized: str) -> Optional[str]:
        haystack = serialized.lower()
        for keyword in self._blocked_keywords:
            if keyword.lower() in haystack:
                return keyword
        return None
