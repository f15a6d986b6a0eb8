"""
Courier Assist - Main Entry Point

Text front end for trying the assistant without the mobile app.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from courier_assist.adapters.persistence.audit import SQLiteAuditAdapter
from courier_assist.app.assistant import AssistantConfig, AssistantResult, CourierAssistant
from courier_assist.core.config import get_audit_db_path
from courier_assist.core.entities import (
    Address,
    CustomerInfo,
    Delivery,
    DeliveryContext,
    DeliveryStatus,
    GeoLocation,
    InteractionMode,
    Route,
    VehicleStatus,
)


def setup_logging(verbose: bool = False) -> None:
    """Sets up logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_demo_context(partner_id: str) -> DeliveryContext:
    """Two-stop shift used when no host system is attached."""
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
        partner_id=partner_id,
        current_deliveries=[first, second],
        active_route=Route(
            id="RT-1",
            stops=[first.delivery_location, second.pickup_location, second.delivery_location],
            estimated_duration=2700,
            distance=14.5,
        ),
        vehicle_status=VehicleStatus(id="VAN-7"),
        location=GeoLocation(39.7990, -89.6440, accuracy=5.0),
    )


def print_result(result: AssistantResult) -> None:
    if result.response:
        prefix = "🔊" if result.voice_only else "💬"
        print(f"{prefix} {result.response}")

    if result.intent is not None:
        print(f"   Intent: {result.intent.type_value}/{result.intent.action} "
              f"(confidence {result.intent.confidence:.2f})")

    if result.requires_confirmation:
        print("   Low confidence, please confirm before acting.")

    if result.status_update is not None:
        update = result.status_update
        print(f"   Status update: {update.delivery_id} -> {update.status}")

    if not result.success and result.error:
        print(f"   Reason: {result.error}")


def handle_control_command(assistant: CourierAssistant, command: str) -> bool:
    """
    Handles telemetry and mode commands.

    Returns:
        True if the command was handled here
    """
    parts = command.split()
    keyword = parts[0].lower()

    if keyword == "speed" and len(parts) == 2:
        try:
            speed = float(parts[1])
        except ValueError:
            print("Usage: speed <km/h>")
            return True
        situation = assistant.update_vehicle_status(VehicleStatus(is_moving=speed > 0, speed=speed))
        print(f"Situation: {situation.situation_type.value} ({situation.severity.value}), "
              f"mode: {assistant.safety.get_operation_mode().value}")
        return True

    if keyword == "mode" and len(parts) == 2:
        try:
            assistant.switch_mode(InteractionMode(parts[1].lower()))
        except ValueError:
            print("Usage: mode voice|chat")
            return True
        print(f"Interaction mode: {assistant.context_service.current_mode.value}")
        return True

    if keyword == "driving" and len(parts) == 2 and parts[1].lower() in ("on", "off"):
        if parts[1].lower() == "on":
            assistant.safety.enable_driving_mode()
        else:
            assistant.safety.disable_driving_mode()
        print(f"Operation mode: {assistant.safety.get_operation_mode().value}")
        return True

    if keyword == "state" and len(parts) == 1:
        state = assistant.safety.get_safety_state()
        stats = assistant.context_service.get_context_stats()
        print(f"Operation mode: {state.operation_mode.value}")
        print(f"Situation:      {state.current_situation.situation_type.value} "
              f"({state.current_situation.severity.value})")
        print(f"Distractions:   {'minimized' if state.distractions_minimized else 'normal'}")
        print(f"Conversation:   {stats['message_count']} messages, "
              f"{stats['current_mode']} mode, valid={stats['is_valid']}")
        return True

    return False


def print_help() -> None:
    """Prints a list of example commands."""
    print()
    print("Example commands:")
    print("-" * 40)
    print("  where is my next delivery")
    print("  what is the status of order ORD-1001")
    print("  navigate to the next stop")
    print("  call customer")
    print("  reached pickup location")
    print("  delayed due to traffic in 15 minutes")
    print()
    print("Control commands:")
    print("  speed <km/h>      feed a vehicle speed sample")
    print("  driving on|off    toggle driving mode")
    print("  mode voice|chat   switch interaction mode")
    print("  state             show safety and conversation state")
    print("-" * 40)
    print()


def run_interactive(assistant: CourierAssistant) -> None:
    """Runs the interactive text mode."""
    print("=" * 60)
    print("Courier Assist - Interactive Mode")
    print("=" * 60)
    print()
    print("Type commands to test the assistant.")
    print("Type 'help' for a list of example commands.")
    print("Type 'quit' or 'exit' to stop.")
    print()

    while True:
        try:
            command = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye!")
            break

        if not command:
            continue

        if command.lower() in ("quit", "exit", "q"):
            print("Goodbye!")
            break

        if command.lower() == "help":
            print_help()
            continue

        if handle_control_command(assistant, command):
            print()
            continue

        print()
        print_result(assistant.process_text(command))
        print()


def run_single_command(assistant: CourierAssistant, command: str) -> int:
    """Executes a single command and returns the exit code."""
    result = assistant.process_text(command)
    print_result(result)
    return 0 if result.success else 1


def main(args: Optional[list] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="courier-assist",
        description="Courier Assist - Hands-free assistant for delivery couriers",
    )

    parser.add_argument(
        "-c", "--command",
        type=str,
        help="Process a single command and exit",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    parser.add_argument(
        "--partner-id",
        type=str,
        default="partner-demo",
        help="Courier id for the demo delivery context (default: partner-demo)",
    )

    parser.add_argument(
        "--no-audit",
        action="store_true",
        help="Do not write the audit journal",
    )

    parser.add_argument(
        "--version",
        action="version",
        version="Courier Assist v0.1.0",
    )

    parsed = parser.parse_args(args)

    # Sets up logging
    setup_logging(parsed.verbose)

    audit = None if parsed.no_audit else SQLiteAuditAdapter(str(get_audit_db_path()))

    assistant = CourierAssistant(config=AssistantConfig.from_env(), audit=audit)
    assistant.update_delivery_context(build_demo_context(parsed.partner_id))

    if parsed.command:
        return run_single_command(assistant, parsed.command)

    run_interactive(assistant)
    return 0


if __name__ == "__main__":
    sys.exit(main())
