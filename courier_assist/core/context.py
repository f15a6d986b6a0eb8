"""
Courier Assist Context Preservation

Keeps one conversation (messages plus delivery context) alive across
voice <-> chat switches.

The service exclusively owns its stored context: everything going in is
deep-copied and everything coming out is a deep copy, so callers can never
reach the internal state through a returned value.

A context is valid while:
- it exists
- the last activity is not older than the expiration window (60 min default)
- its delivery context has a partner id
"""

from __future__ import annotations

import copy
import logging
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

from courier_assist.core.entities import (
    ChatMessage,
    ContextExport,
    ContextIntegrityReport,
    ContextSnapshot,
    ConversationContext,
    DeliveryContext,
    InteractionMode,
    ModeTransition,
    utc_now,
)
from courier_assist.core.events import EventCallback, EventEmitter

logger = logging.getLogger(__name__)

CONTEXT_UPDATED = "context_updated"

DEFAULT_EXPIRATION_MINUTES = 60
MAX_TRANSITION_HISTORY = 10
STALE_AFTER_MINUTES = 30
TOPIC_WINDOW = 3


class ContextPreservationService:
    """
    Conversation continuity across interaction modes.

    Every mutation emits `context_updated` with an `action` field
    (context_preserved, context_restored, mode_switched, ...).

    Example usage:
        service = ContextPreservationService()
        service.preserve_context(conversation)

        service.switch_mode(InteractionMode.CHAT, InteractionMode.VOICE)
        restored = service.restore_context()  # None once expired
    """

    def __init__(
        self,
        expiration_minutes: int = DEFAULT_EXPIRATION_MINUTES,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._clock = clock
        self._context: Optional[ConversationContext] = None
        self._mode = InteractionMode.CHAT
        self._last_activity = clock()
        self._version = 0
        self._expiration_minutes = max(1, int(expiration_minutes))
        self._transitions: Deque[ModeTransition] = deque(maxlen=MAX_TRANSITION_HISTORY)
        self._events = EventEmitter(owner="ContextPreservationService")

    @property
    def current_mode(self) -> InteractionMode:
        return self._mode

    @property
    def context_version(self) -> int:
        return self._version

    @property
    def last_activity(self) -> datetime:
        return self._last_activity

    # ============================================
    # Preserve / Restore
    # ============================================

    def preserve_context(self, context: ConversationContext) -> None:
        """Stores a deep copy of the context and bumps the version."""
        self._context = copy.deepcopy(context)
        self._last_activity = self._clock()
        self._version += 1

        self._emit(
            "context_preserved",
            message_count=len(context.messages),
            topic=context.current_topic or "none",
            version=self._version,
        )

    def restore_context(self) -> Optional[ConversationContext]:
        """
        Returns a deep copy of the stored context.

        Returns:
            None if the context is missing, expired, or lacks a partner id
        """
        if not self.is_context_valid() or self._context is None:
            return None

        restored = copy.deepcopy(self._context)
        self._emit(
            "context_restored",
            message_count=len(restored.messages),
            topic=restored.current_topic or "none",
            version=self._version,
        )
        return restored

    def switch_mode(self, from_mode: InteractionMode, to_mode: InteractionMode) -> None:
        """Records a voice <-> chat switch. Conversation content is not touched."""
        from_mode = InteractionMode(from_mode)
        to_mode = InteractionMode(to_mode)
        if from_mode == to_mode:
            return

        partner_id = None
        if self._context is not None and self._context.delivery_context is not None:
            partner_id = self._context.delivery_context.partner_id or None

        transition = ModeTransition(
            from_mode=from_mode,
            to_mode=to_mode,
            timestamp=self._clock(),
            context_preserved=self._context is not None,
            message_count=len(self._context.messages) if self._context is not None else 0,
            delivery_context_id=partner_id,
        )
        self._transitions.append(transition)

        self._mode = to_mode
        self._last_activity = self._clock()

        logger.info(f"Interaction mode switched: {from_mode.value} -> {to_mode.value}")
        self._emit(
            "mode_switched",
            from_mode=from_mode.value,
            to_mode=to_mode.value,
            context_preserved=transition.context_preserved,
            message_count=transition.message_count,
        )

    def update_delivery_context(self, delivery_context: DeliveryContext) -> None:
        """Replaces only the delivery part, creating an empty conversation if needed."""
        if self._context is None:
            self._context = ConversationContext(messages=[])
        self._context.delivery_context = copy.deepcopy(delivery_context)

        self._last_activity = self._clock()
        self._version += 1

        self._emit(
            "delivery_context_updated",
            partner_id=delivery_context.partner_id,
            delivery_count=len(delivery_context.current_deliveries),
            version=self._version,
        )

    def merge_contexts(
        self,
        first: Optional[ConversationContext],
        second: Optional[ConversationContext],
    ) -> Optional[ConversationContext]:
        """
        Merges two conversations (e.g. the voice and the chat side).

        Messages are stably sorted by timestamp, so ties keep their original
        order (first's messages before second's). The second delivery context
        wins when both share a partner id; otherwise the first is kept.
        The merged result is preserved.

        Returns:
            The merged context, or None if both sides are None
        """
        if first is None and second is None:
            return None
        if first is None:
            first, second = second, None

        messages: List[ChatMessage] = list(first.messages)
        if second is not None:
            messages.extend(second.messages)
        messages = sorted(messages, key=lambda message: _as_utc(message.timestamp))

        delivery_context = first.delivery_context
        if second is not None and _same_partner(first.delivery_context, second.delivery_context):
            delivery_context = second.delivery_context

        current_topic = None
        for message in messages[-TOPIC_WINDOW:]:
            if message.intent is not None:
                current_topic = message.intent.type_value

        merged = copy.deepcopy(ConversationContext(
            messages=messages,
            delivery_context=delivery_context,
            current_topic=current_topic,
        ))
        self.preserve_context(merged)

        self._emit(
            "contexts_merged",
            message_count=len(merged.messages),
            topic=current_topic,
            version=self._version,
        )
        return merged

    # ============================================
    # Snapshot / Validity
    # ============================================

    def get_context_snapshot(self) -> ContextSnapshot:
        return ContextSnapshot(
            conversation_context=copy.deepcopy(self._context),
            current_mode=self._mode,
            last_activity=self._last_activity,
            context_version=self._version,
            is_valid=self.is_context_valid(),
        )

    def is_context_valid(self) -> bool:
        if self._context is None:
            return False
        if self._age() > timedelta(minutes=self._expiration_minutes):
            return False
        if self._context.delivery_context is None:
            return False
        return bool(self._context.delivery_context.partner_id)

    def clear_context(self) -> None:
        """Drops the context, resets the version and the transition history."""
        self._context = None
        self._version = 0
        self._last_activity = self._clock()
        self._transitions.clear()

        logger.info("Conversation context cleared")
        self._emit("context_cleared", version=self._version)

    def validate_context_integrity(self) -> ContextIntegrityReport:
        """
        Runs every integrity check independently.

        Returns:
            ContextIntegrityReport; valid only when no issue was found
        """
        issues: List[str] = []
        recommendations: List[str] = []

        if self._context is None:
            return ContextIntegrityReport(
                is_valid=False,
                issues=["No conversation context available"],
                recommendations=["Initialize context with delivery data"],
            )

        messages = self._context.messages
        if not messages:
            issues.append("No messages in conversation context")
            recommendations.append("Start a conversation to build context")

        for previous, current in zip(messages, messages[1:]):
            if _as_utc(current.timestamp) < _as_utc(previous.timestamp):
                issues.append("Messages are not in chronological order")
                recommendations.append("Sort messages by timestamp")
                break

        delivery_context = self._context.delivery_context
        if delivery_context is None:
            issues.append("No delivery context available")
            recommendations.append("Update with current delivery information")
        else:
            if not delivery_context.partner_id:
                issues.append("Missing partner ID in delivery context")
                recommendations.append("Ensure partner ID is set")
            if delivery_context.location is None:
                issues.append("Missing location in delivery context")
                recommendations.append("Update with current location")

        if self.needs_refresh():
            issues.append("Context is stale")
            recommendations.append("Refresh context with recent activity")

        return ContextIntegrityReport(
            is_valid=not issues,
            issues=issues,
            recommendations=recommendations,
        )

    # ============================================
    # Export / Import
    # ============================================

    def export_context(self) -> ContextExport:
        return ContextExport(
            conversation_context=copy.deepcopy(self._context),
            current_mode=self._mode,
            last_activity=self._last_activity,
            context_version=self._version,
            transition_history=list(self._transitions),
        )

    def import_context(self, data: ContextExport) -> None:
        """Replaces the whole internal state with an export."""
        self._context = copy.deepcopy(data.conversation_context)
        self._mode = InteractionMode(data.current_mode)
        self._last_activity = data.last_activity
        self._version = data.context_version
        self._transitions = deque(data.transition_history, maxlen=MAX_TRANSITION_HISTORY)

        self._emit(
            "context_imported",
            version=self._version,
            message_count=len(self._context.messages) if self._context is not None else 0,
        )

    # ============================================
    # Housekeeping
    # ============================================

    def get_transition_history(self) -> List[ModeTransition]:
        return list(self._transitions)

    def get_context_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "message_count": len(self._context.messages) if self._context is not None else 0,
            "mode_transitions": len(self._transitions),
            "context_age_seconds": self._age().total_seconds(),
            "is_valid": self.is_context_valid(),
            "current_mode": self._mode.value,
        }
        if self._context is not None and self._context.current_topic:
            stats["last_topic"] = self._context.current_topic
        return stats

    def refresh_activity(self) -> None:
        self._last_activity = self._clock()
        self._emit("activity_refreshed", timestamp=self._last_activity)

    def needs_refresh(self, max_age_minutes: float = STALE_AFTER_MINUTES) -> bool:
        return self._age() > timedelta(minutes=max_age_minutes)

    def cleanup_expired_context(self) -> bool:
        """Clears the context if it is no longer valid. Returns True if cleared."""
        if not self.is_context_valid():
            self.clear_context()
            return True
        return False

    def set_context_expiration(self, minutes: int) -> None:
        self._expiration_minutes = max(1, int(minutes))
        self._emit("expiration_updated", expiration_minutes=self._expiration_minutes)

    def get_context_expiration(self) -> int:
        return self._expiration_minutes

    def force_refresh(self) -> None:
        self._last_activity = self._clock()
        self._version += 1
        self._emit("force_refreshed", version=self._version, timestamp=self._last_activity)

    def add_event_listener(self, event: str, callback: EventCallback) -> None:
        self._events.on(event, callback)

    def remove_event_listener(self, event: str, callback: EventCallback) -> bool:
        return self._events.off(event, callback)

    # ============================================
    # Internal Methods
    # ============================================

    def _age(self) -> timedelta:
        return self._clock() - self._last_activity

    def _emit(self, action: str, **data: Any) -> None:
        data["action"] = action
        self._events.emit(CONTEXT_UPDATED, data)


def _same_partner(
    first: Optional[DeliveryContext],
    second: Optional[DeliveryContext],
) -> bool:
    if first is None or second is None:
        return first is None and second is None
    return first.partner_id == second.partner_id


def _as_utc(timestamp: datetime) -> datetime:
    """Naive timestamps are taken as UTC so they order against aware ones."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp
