"""
NETRA assistant: orchestration loop, camera capture and spoken responses.
"""

from netra.assistant.core import (
    AnnouncementThrottle,
    AssistantConfig,
    AssistantSnapshot,
    AssistantState,
    AudioChannel,
    Orchestrator,
    SensorFault,
)

__all__ = [
    "AnnouncementThrottle",
    "AssistantConfig",
    "AssistantSnapshot",
    "AssistantState",
    "AudioChannel",
    "Orchestrator",
    "SensorFault",
]
