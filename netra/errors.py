"""
Exception hierarchy shared by the services and the orchestrator.
"""


class NetraError(Exception):
    """Base class for assistant errors."""


class ServiceError(NetraError):
    """A remote vision/language or speech service call failed."""


class SensorUnavailableError(NetraError):
    """A sensor (camera or geolocation) is absent or access was denied."""

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class NarrationError(NetraError):
    """Speech synthesis or playback failed."""


class RecognitionError(NetraError):
    """The speech recognizer failed to deliver a transcript."""
