"""
Deterministic Delivery NLU

Rule-based intent classification and entity extraction for courier commands.
Every intent type owns an ordered list of trigger patterns and an ordered
list of action rules; entities are extracted independently of the intent.

Advantages:
- Deterministic results (one input -> one output)
- Low latency, no ML models
- Easy to test and debug

Limitations:
- Does not understand paraphrasing
- Requires explicit patterns for each variant
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, Set, Tuple

from courier_assist.core.entities import DeliveryContext, Entity, Intent, IntentType

logger = logging.getLogger(__name__)

# Fixed enumeration order, used to break classification ties
INTENT_ORDER: Tuple[IntentType, ...] = (
    IntentType.DELIVERY_STATUS,
    IntentType.NAVIGATION,
    IntentType.COMMUNICATION,
    IntentType.QUICK_MESSAGE,
)

BASE_CONFIDENCE = 0.5
PATTERN_BOOST = 0.2
ENTITY_BOOST = 0.1
CONTEXT_BOOST = 0.1
AUTO_EXECUTE_THRESHOLD = 0.6

# Classification and entity extraction only look at this many leading characters
MAX_INPUT_LENGTH = 500


@dataclass
class IntentPattern:
    """
    Trigger patterns for one intent type.

    Attributes:
        intent_type: Type of intent for this pattern
        patterns: Regular expressions, matched against the normalized input
        examples: Examples of commands (for documentation/testing)
    """
    intent_type: IntentType
    patterns: List[str]
    examples: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._compiled: List[Pattern[str]] = []
        for pattern in self.patterns:
            try:
                self._compiled.append(re.compile(pattern, re.IGNORECASE))
            except re.error as e:
                raise ValueError(f"Invalid regex pattern '{pattern}': {e}")

    @property
    def compiled(self) -> List[Pattern[str]]:
        return self._compiled


@dataclass(frozen=True)
class ActionRule:
    """
    Selects an action when the normalized input contains all of
    `all_keywords`, any of `any_keywords`, and the `entity` type was extracted.
    """
    action: str
    all_keywords: Tuple[str, ...] = ()
    any_keywords: Tuple[str, ...] = ()
    entity: Optional[str] = None

    def matches(self, text: str, entity_types: Set[str]) -> bool:
        if self.all_keywords and not all(k in text for k in self.all_keywords):
            return False
        if self.any_keywords and not any(k in text for k in self.any_keywords):
            return False
        if self.entity is not None and self.entity not in entity_types:
            return False
        return True


@dataclass(frozen=True)
class EntityPattern:
    entity_type: str
    pattern: Pattern[str]
    confidence: float


# ============================================
# Trigger patterns
# ============================================

DEFAULT_PATTERNS: List[IntentPattern] = [
    IntentPattern(
        intent_type=IntentType.DELIVERY_STATUS,
        patterns=[
            r"what.*status.*order",
            r"where.*my.*delivery",
            r"status.*delivery",
            r"check.*order",
            r"delivery.*update",
            r"next.*delivery",
            r"current.*status",
        ],
        examples=[
            "what is the status of order 12345",
            "where is my next delivery",
            "check order ORD-77",
        ],
    ),
    IntentPattern(
        intent_type=IntentType.NAVIGATION,
        patterns=[
            r"navigate.*to",
            r"directions.*to",
            r"go.*to",
            r"next.*stop",
            r"route.*to",
            r"where.*next",
        ],
        examples=[
            "navigate to the next stop",
            "directions to Baker Street",
        ],
    ),
    IntentPattern(
        intent_type=IntentType.COMMUNICATION,
        patterns=[
            r"call.*customer",
            r"contact.*customer",
            r"message.*customer",
            r"notify.*customer",
            r"send.*message",
        ],
        examples=[
            "call customer John Smith",
            "notify customer about the delay",
        ],
    ),
    IntentPattern(
        intent_type=IntentType.QUICK_MESSAGE,
        patterns=[
            r"reached.*pickup",
            r"reached.*delivery",
            r"delayed.*traffic",
            r"cannot.*contact",
            r"unable.*contact",
            r"traffic.*delay",
            r"running.*late",
            r"stuck.*traffic",
        ],
        examples=[
            "reached pickup location",
            "delayed due to traffic",
            "customer unavailable, unable to contact",
        ],
    ),
]


# ============================================
# Action rules (first matching rule wins)
# ============================================

ACTION_RULES: Dict[IntentType, List[ActionRule]] = {
    IntentType.DELIVERY_STATUS: [
        ActionRule("get_next_delivery", any_keywords=("next",)),
        ActionRule("get_current_status", any_keywords=("current",)),
        ActionRule("get_order_status", entity="orderId"),
    ],
    IntentType.NAVIGATION: [
        ActionRule("navigate_to_next_stop", any_keywords=("next",)),
        ActionRule("navigate_to_location", entity="location"),
    ],
    IntentType.COMMUNICATION: [
        ActionRule("call_customer", any_keywords=("call",)),
        ActionRule("message_customer", any_keywords=("message", "notify")),
    ],
    IntentType.QUICK_MESSAGE: [
        ActionRule("send_reached_pickup", all_keywords=("reached", "pickup")),
        ActionRule("send_reached_delivery", all_keywords=("reached", "delivery")),
        ActionRule("send_traffic_delay", any_keywords=("delay", "traffic")),
        ActionRule("send_customer_unavailable", any_keywords=("cannot", "unable", "unavailable")),
    ],
}

DEFAULT_ACTIONS: Dict[IntentType, str] = {
    IntentType.DELIVERY_STATUS: "get_delivery_overview",
    IntentType.NAVIGATION: "get_directions",
    IntentType.COMMUNICATION: "contact_customer",
    IntentType.QUICK_MESSAGE: "send_status_update",
}


# ============================================
# Entity patterns (matched against the original text)
# ============================================

_STOP_WORDS = r"(?:is|not|about|for|that|to|and|at|in|by|unavailable|now|please)"

ENTITY_PATTERNS: List[EntityPattern] = [
    EntityPattern(
        "orderId",
        re.compile(r"\border\s*(?:id|number|#)?\s*#?\s*([A-Za-z0-9\-_]*\d[A-Za-z0-9\-_]*)", re.IGNORECASE),
        0.9,
    ),
    EntityPattern(
        "location",
        re.compile(
            r"\b(?:to|at|near)\s+([A-Za-z0-9][A-Za-z0-9 ,.\-]*?)"
            r"(?=\s+(?:in|at|by|for|and|please)\b|[?!.,]?\s*$)",
            re.IGNORECASE,
        ),
        0.8,
    ),
    EntityPattern(
        "time",
        re.compile(
            r"\b(?:in|at|by)\s+(\d{1,2}:\d{2}|\d{1,2}\s*(?:am|pm)\b|\d+\s*(?:minutes?|mins?|hours?|hrs?)\b|minutes?\b|hours?\b)",
            re.IGNORECASE,
        ),
        0.85,
    ),
    EntityPattern(
        "customerName",
        re.compile(
            rf"\bcustomer\s+(?:named\s+)?((?!{_STOP_WORDS}\b)[A-Za-z]+(?:\s+(?!{_STOP_WORDS}\b)[A-Za-z]+)?)",
            re.IGNORECASE,
        ),
        0.8,
    ),
]


class DeliveryIntentClassifier:
    """
    Deterministic courier intent classifier.

    Never raises for malformed input: the worst case is a low-confidence
    delivery_status intent with the overview action.

    Example:
    ```
    classifier = DeliveryIntentClassifier()
    intent = classifier.classify("what is the status of order 12345", context)
    # Intent(intent_type=IntentType.DELIVERY_STATUS, action="get_order_status", ...)
    ```
    """

    def __init__(self, patterns: Optional[List[IntentPattern]] = None) -> None:
        source = patterns if patterns is not None else DEFAULT_PATTERNS
        self.patterns: Dict[IntentType, List[IntentPattern]] = {t: [] for t in INTENT_ORDER}
        for pattern in source:
            self.add_pattern(pattern)

    def classify(self, text: str, context: Optional[DeliveryContext] = None) -> Intent:
        """
        Classify an utterance into a scored intent.

        Args:
            text: Raw utterance (typed, or transcribed speech)
            context: Current delivery context

        Returns:
            Recognized Intent
        """
        text = _truncate(text or "")
        normalized = self._normalize(text)

        intent_type, pattern_matched = self._classify_type(normalized)
        entities = self.extract_entities(text)
        action = self._determine_action(intent_type, normalized, entities)
        parameters = self._extract_parameters(entities, context)
        confidence = self._calculate_confidence(intent_type, pattern_matched, entities, context)

        logger.debug(
            f"Classified '{text}' as {intent_type.value}/{action} "
            f"(confidence={confidence}, entities={len(entities)})"
        )

        return Intent(
            intent_type=intent_type,
            action=action,
            parameters=parameters,
            confidence=confidence,
        )

    def validate_intent(self, intent: Intent) -> bool:
        """
        High-precision check for auto-execution.

        Stricter than the domain guard: confidence must reach 0.6.
        """
        if intent.type_value not in IntentType.values():
            return False
        if intent.confidence < AUTO_EXECUTE_THRESHOLD:
            return False
        return bool(intent.action and intent.action.strip())

    def extract_entities(self, text: str) -> List[Entity]:
        """Extract at most one entity per type from the original text."""
        entities: List[Entity] = []
        if not text:
            return entities
        text = _truncate(text)

        for entity_pattern in ENTITY_PATTERNS:
            match = entity_pattern.pattern.search(text)
            if match is None:
                continue
            value = match.group(1).strip()
            if not value or match.end() <= match.start():
                continue
            entities.append(Entity(
                entity_type=entity_pattern.entity_type,
                value=value,
                confidence=entity_pattern.confidence,
                start_index=match.start(),
                end_index=match.end(),
            ))

        return entities

    def add_pattern(self, pattern: IntentPattern) -> None:
        """Add trigger patterns for an intent type."""
        self.patterns.setdefault(pattern.intent_type, []).append(pattern)

    def get_supported_intents(self) -> List[IntentType]:
        return [t for t in INTENT_ORDER if self.patterns.get(t)]

    def get_examples(self, intent_type: IntentType) -> List[str]:
        """Returns example commands for the intent."""
        examples: List[str] = []
        for pattern in self.patterns.get(intent_type, []):
            examples.extend(pattern.examples)
        return examples

    # ============================================
    # Internal Methods
    # ============================================

    def _normalize(self, text: str) -> str:
        return text.strip().lower()

    def _classify_type(self, normalized: str) -> Tuple[IntentType, bool]:
        """Pick the type whose best pattern covers the largest share of the input."""
        best_type = IntentType.DELIVERY_STATUS
        best_score = 0.0

        if not normalized:
            return best_type, False

        for intent_type in INTENT_ORDER:
            for pattern_def in self.patterns.get(intent_type, []):
                for compiled in pattern_def.compiled:
                    match = compiled.search(normalized)
                    if match is None:
                        continue
                    score = len(match.group(0)) / len(normalized)
                    if score > best_score:
                        best_score = score
                        best_type = intent_type

        return best_type, best_score > 0

    def _determine_action(
        self,
        intent_type: IntentType,
        normalized: str,
        entities: List[Entity],
    ) -> str:
        entity_types = {e.entity_type for e in entities}
        for rule in ACTION_RULES.get(intent_type, []):
            if rule.matches(normalized, entity_types):
                return rule.action
        return DEFAULT_ACTIONS[intent_type]

    def _extract_parameters(
        self,
        entities: List[Entity],
        context: Optional[DeliveryContext],
    ) -> Dict[str, object]:
        parameters: Dict[str, object] = {e.entity_type: e.value for e in entities}

        if context is None:
            return parameters

        if context.current_deliveries:
            current = context.current_deliveries[0]
            parameters["currentOrderId"] = current.id
            parameters["currentStatus"] = getattr(current.status, "value", current.status)
            if len(context.current_deliveries) > 1:
                parameters["nextOrderId"] = context.current_deliveries[1].id

        if context.location is not None:
            parameters["currentLocation"] = copy.deepcopy(context.location)

        if context.active_route is not None:
            parameters["routeId"] = context.active_route.id
            parameters["remainingStops"] = len(context.active_route.stops)

        return parameters

    def _calculate_confidence(
        self,
        intent_type: IntentType,
        pattern_matched: bool,
        entities: List[Entity],
        context: Optional[DeliveryContext],
    ) -> float:
        confidence = BASE_CONFIDENCE

        if pattern_matched:
            confidence += PATTERN_BOOST

        confidence += len(entities) * ENTITY_BOOST

        if context is not None:
            if intent_type == IntentType.DELIVERY_STATUS and context.current_deliveries:
                confidence += CONTEXT_BOOST
            if intent_type == IntentType.NAVIGATION and context.active_route is not None:
                confidence += CONTEXT_BOOST

        return round(min(confidence, 1.0), 2)


def _truncate(text: str) -> str:
    if len(text) <= MAX_INPUT_LENGTH:
        return text
    logger.debug(f"Input truncated from {len(text)} to {MAX_INPUT_LENGTH} characters")
    return text[:MAX_INPUT_LENGTH]
