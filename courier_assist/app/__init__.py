"""
Courier Assist Application Layer Package

Orchestration of the command processing pipeline.
"""

from courier_assist.app.assistant import AssistantConfig, AssistantResult, CourierAssistant

__all__ = [
    "AssistantConfig",
    "AssistantResult",
    "CourierAssistant",
]
