"""
External service boundaries: vision/language model, narration, speech
recognition and geolocation.
"""

from netra.services.location import (
    IPLocationProvider,
    LocationProvider,
    NullLocationProvider,
    StaticLocationProvider,
)
from netra.services.narration import ConsoleNarrator, Narrator, RemoteTTSNarrator, VoiceSettings
from netra.services.recognition import ConsoleRecognizer, Recognizer
from netra.services.vision import DetectionResult, OpenAIVisionService, VisionService

__all__ = [
    "ConsoleNarrator",
    "ConsoleRecognizer",
    "DetectionResult",
    "IPLocationProvider",
    "LocationProvider",
    "Narrator",
    "NullLocationProvider",
    "OpenAIVisionService",
    "Recognizer",
    "RemoteTTSNarrator",
    "StaticLocationProvider",
    "VisionService",
    "VoiceSettings",
]
