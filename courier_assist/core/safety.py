"""
Courier Assist Safety State Machine

Tracks the courier's interaction posture from manual mode switches and
vehicle telemetry.

Modes:

     --------   enable_driving    ---------
    | NORMAL |------------------>| DRIVING |
     --------                     ---------
        |  enable_hands_free         |
        V                            |  high severity situation
     ------------                    V
    | HANDS_FREE |------------> -----------------
     ------------               | SAFETY_CRITICAL |
                                 -----------------
                                        |
                                  safe reading: back to the
                                  flag-derived mode

Driving and hands-free are independent flags; driving wins the displayed
mode. A high severity situation overrides both until a subsequent reading
is no longer high. While safety critical, distractions are always minimized.

Telemetry is accepted as-is: negative speeds or missing fields produce a
well-typed situation, never an exception.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Deque, List, Optional

import numpy as np

from courier_assist.core.entities import (
    GeoLocation,
    OperationMode,
    SafetySituation,
    SafetyState,
    Severity,
    SituationType,
    VehicleData,
    VehicleStatus,
    utc_now,
)
from courier_assist.core.events import ANY_EVENT, EventCallback, EventEmitter

logger = logging.getLogger(__name__)

# Number of acceleration samples used for the erratic movement check
TURN_WINDOW = 3


@dataclass
class SafetyThresholds:
    """
    Detection thresholds.

    Attributes:
        speed_high: Speed above which high_speed is reported (km/h)
        acceleration: Absolute speed delta above which emergency_braking is reported
        turn_variance: Variance of recent accelerations above which sharp_turn is reported
        history_size: Capacity of the speed and acceleration histories
    """
    speed_high: float = 80.0
    acceleration: float = 5.0
    turn_variance: float = 2.0
    history_size: int = 10


SafetyStateCallback = Callable[[SafetyState], None]


class SafetyStateMachine:
    """
    Safety posture of the assistant.

    Example usage:
        safety = SafetyStateMachine()
        safety.on_safety_state_change(lambda state: print(state.operation_mode))

        safety.enable_driving_mode()
        safety.update_vehicle_status(VehicleStatus(speed=95, is_moving=True))
        # high_speed / medium, mode stays DRIVING
    """

    def __init__(
        self,
        thresholds: Optional[SafetyThresholds] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.thresholds = thresholds or SafetyThresholds()
        self._clock = clock

        self._driving_enabled = False
        self._hands_free_enabled = False
        self._mode = OperationMode.NORMAL
        self._situation = SafetySituation(timestamp=clock())
        self._distractions_minimized = False

        self._last_vehicle_status: Optional[VehicleStatus] = None
        self._last_location: Optional[GeoLocation] = None
        self._speed_history: Deque[float] = deque(maxlen=self.thresholds.history_size)
        self._acceleration_history: Deque[float] = deque(maxlen=self.thresholds.history_size)

        self._state_callbacks: List[SafetyStateCallback] = []
        self._events = EventEmitter(owner="SafetyStateMachine")

    # ============================================
    # Driving / Hands-free
    # ============================================

    def enable_driving_mode(self) -> None:
        """Voice-priority interface. Idempotent."""
        if self._driving_enabled:
            return

        self._driving_enabled = True
        if self._mode != OperationMode.SAFETY_CRITICAL:
            self._mode = OperationMode.DRIVING
            self.minimize_distractions()

        logger.info("Driving mode enabled")
        self._notify_state_change()
        self._events.emit("driving_mode_enabled", {"mode": self._mode.value})

    def disable_driving_mode(self) -> None:
        if not self._driving_enabled:
            return

        self._driving_enabled = False
        if self._mode != OperationMode.SAFETY_CRITICAL:
            self._mode = self._flag_mode()
            self.restore_normal_interface()

        logger.info("Driving mode disabled")
        self._notify_state_change()
        self._events.emit("driving_mode_disabled", {"mode": self._mode.value})

    def is_driving_mode_active(self) -> bool:
        return self._driving_enabled

    def enable_hands_free_mode(self) -> None:
        if self._hands_free_enabled:
            return

        self._hands_free_enabled = True
        if self._mode not in (OperationMode.DRIVING, OperationMode.SAFETY_CRITICAL):
            self._mode = OperationMode.HANDS_FREE

        logger.info("Hands-free mode enabled")
        self._notify_state_change()
        self._events.emit("hands_free_enabled", {"mode": self._mode.value})

    def disable_hands_free_mode(self) -> None:
        if not self._hands_free_enabled:
            return

        self._hands_free_enabled = False
        if self._mode not in (OperationMode.DRIVING, OperationMode.SAFETY_CRITICAL):
            self._mode = OperationMode.NORMAL
            self.restore_normal_interface()

        logger.info("Hands-free mode disabled")
        self._notify_state_change()
        self._events.emit("hands_free_disabled", {"mode": self._mode.value})

    def is_hands_free_mode(self) -> bool:
        return self._hands_free_enabled

    # ============================================
    # Situation Detection
    # ============================================

    def detect_safety_situation(self) -> SafetySituation:
        """
        Classifies the latest telemetry.

        When several checks fire, the highest severity wins; among equal
        severities the later check (high_speed, emergency_braking, sharp_turn)
        wins. Listeners are notified only when (type, severity) changes.

        Returns:
            The current situation (unchanged if no telemetry was received yet)
        """
        if self._last_vehicle_status is None:
            return self._situation

        speed = self._last_vehicle_status.speed
        acceleration = self._current_acceleration()

        candidates: List[SafetySituation] = []
        vehicle_data = VehicleData(
            speed=speed,
            acceleration=acceleration,
            gps_accuracy=self._gps_accuracy(),
        )
        now = self._clock()

        if speed > self.thresholds.speed_high:
            candidates.append(SafetySituation(SituationType.HIGH_SPEED, Severity.MEDIUM, now, vehicle_data))

        if abs(acceleration) > self.thresholds.acceleration:
            candidates.append(SafetySituation(SituationType.EMERGENCY_BRAKING, Severity.HIGH, now, vehicle_data))

        if self._detect_sharp_turn():
            candidates.append(SafetySituation(SituationType.SHARP_TURN, Severity.MEDIUM, now, vehicle_data))

        situation = SafetySituation(SituationType.NONE, Severity.LOW, now, vehicle_data)
        for candidate in candidates:
            if candidate.severity >= situation.severity:
                situation = candidate

        if not situation.same_classification(self._situation):
            self._apply_situation(situation)

        return self._situation

    # ============================================
    # Interface
    # ============================================

    def minimize_distractions(self) -> None:
        if not self._distractions_minimized:
            self._distractions_minimized = True
            logger.debug("Distractions minimized")

    def restore_normal_interface(self) -> None:
        """Restores the full interface unless conditions are still unsafe."""
        if not self._distractions_minimized:
            return
        if self._mode == OperationMode.SAFETY_CRITICAL:
            return
        if self._situation.severity == Severity.HIGH:
            return

        self._distractions_minimized = False
        logger.debug("Normal interface restored")

    def is_voice_only_mode(self) -> bool:
        return (
            self._mode in (OperationMode.HANDS_FREE, OperationMode.SAFETY_CRITICAL)
            or (self._mode == OperationMode.DRIVING and self._situation.severity == Severity.HIGH)
        )

    def should_minimize_visual_interface(self) -> bool:
        return (
            self._mode in (OperationMode.DRIVING, OperationMode.SAFETY_CRITICAL)
            or self._distractions_minimized
        )

    # ============================================
    # Operation Mode
    # ============================================

    def get_operation_mode(self) -> OperationMode:
        return self._mode

    def set_operation_mode(self, mode: OperationMode) -> None:
        """
        Sets the mode directly and brings the flags in line with it.

        normal clears both flags; driving sets the driving flag;
        hands_free sets the hands-free flag and clears driving;
        safety_critical leaves the flags alone.
        """
        mode = OperationMode(mode)
        previous = self._mode
        self._mode = mode

        if mode == OperationMode.NORMAL:
            self._driving_enabled = False
            self._hands_free_enabled = False
            self.restore_normal_interface()
        elif mode == OperationMode.DRIVING:
            self._driving_enabled = True
            self.minimize_distractions()
        elif mode == OperationMode.HANDS_FREE:
            self._driving_enabled = False
            self._hands_free_enabled = True
            self.restore_normal_interface()
        else:
            self.minimize_distractions()

        if previous != mode:
            logger.info(f"Operation mode: {previous.value} -> {mode.value}")
            self._notify_state_change()
            self._events.emit("operation_mode_changed", {"from": previous.value, "to": mode.value})

    # ============================================
    # Telemetry
    # ============================================

    def update_vehicle_status(self, status: VehicleStatus) -> None:
        """Appends a speed sample, derives acceleration and re-runs detection."""
        self._last_vehicle_status = status
        self._speed_history.append(status.speed)
        self._acceleration_history.append(self._current_acceleration())
        self.detect_safety_situation()

    def update_location(self, location: GeoLocation) -> None:
        self._last_location = location
        self.detect_safety_situation()

    def get_speed_history(self) -> List[float]:
        return list(self._speed_history)

    def get_acceleration_history(self) -> List[float]:
        return list(self._acceleration_history)

    # ============================================
    # State / Listeners
    # ============================================

    def get_safety_state(self) -> SafetyState:
        return SafetyState(
            is_driving_mode=self._driving_enabled,
            is_hands_free_mode=self._hands_free_enabled,
            current_situation=self._situation,
            operation_mode=self._mode,
            distractions_minimized=self._distractions_minimized,
        )

    def on_safety_state_change(self, callback: SafetyStateCallback) -> None:
        """Registers a callback receiving the new SafetyState."""
        self._state_callbacks.append(callback)

    def remove_safety_state_callback(self, callback: SafetyStateCallback) -> bool:
        try:
            self._state_callbacks.remove(callback)
            return True
        except ValueError:
            return False

    def on_event(self, callback: EventCallback) -> None:
        """Registers a callback receiving every (event, data) pair."""
        self._events.on(ANY_EVENT, callback)

    def off_event(self, callback: EventCallback) -> bool:
        return self._events.off(ANY_EVENT, callback)

    # ============================================
    # Internal Methods
    # ============================================

    def _flag_mode(self) -> OperationMode:
        if self._driving_enabled:
            return OperationMode.DRIVING
        if self._hands_free_enabled:
            return OperationMode.HANDS_FREE
        return OperationMode.NORMAL

    def _apply_situation(self, situation: SafetySituation) -> None:
        previous_mode = self._mode
        self._situation = situation

        if situation.severity == Severity.HIGH:
            self._mode = OperationMode.SAFETY_CRITICAL
            self.minimize_distractions()
        elif self._mode == OperationMode.SAFETY_CRITICAL:
            self._mode = self._flag_mode()
            if self._mode == OperationMode.DRIVING:
                self.minimize_distractions()
            else:
                self.restore_normal_interface()

        logger.info(
            f"Safety situation: {situation.situation_type.value} "
            f"(severity={situation.severity.value}, mode={self._mode.value})"
        )

        self._notify_state_change()
        self._events.emit("safety_situation_detected", situation)
        if previous_mode != self._mode:
            self._events.emit(
                "operation_mode_changed",
                {"from": previous_mode.value, "to": self._mode.value},
            )

    def _current_acceleration(self) -> float:
        if len(self._speed_history) < 2:
            return 0.0
        return float(self._speed_history[-1] - self._speed_history[-2])

    def _detect_sharp_turn(self) -> bool:
        if len(self._acceleration_history) < TURN_WINDOW:
            return False
        recent = list(self._acceleration_history)[-TURN_WINDOW:]
        return float(np.var(recent)) > self.thresholds.turn_variance

    def _gps_accuracy(self) -> float:
        if self._last_location is None or self._last_location.accuracy is None:
            return 0.0
        return float(self._last_location.accuracy)

    def _notify_state_change(self) -> None:
        state = self.get_safety_state()
        for callback in self._state_callbacks:
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Safety state callback error: {e}")
