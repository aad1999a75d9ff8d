"""Spoken phrase banks. One phrase is picked at random per use."""

import random
from enum import Enum
from typing import Optional


class Phrase(Enum):
    ACKNOWLEDGE = "acknowledge"
    SCANNING = "scanning"
    AUTO_ON = "auto_on"
    AUTO_OFF = "auto_off"
    STOP = "stop"
    ERROR = "error"


RESPONSES: dict[Phrase, tuple[str, ...]] = {
    Phrase.ACKNOWLEDGE: ("Copy.", "Understood.", "Command received.", "On it.", "Executing."),
    Phrase.SCANNING: (
        "Scanning sector.",
        "Visual sweep initiated.",
        "Sensors active.",
        "Processing visual feed.",
        "Acquiring targets.",
    ),
    Phrase.AUTO_ON: ("Surveillance mode: Engaged.", "Continuous tracking: On.", "Auto-scan active."),
    Phrase.AUTO_OFF: ("Surveillance mode: Disengaged.", "Manual control restored.", "Holding position."),
    Phrase.STOP: ("Aborting.", "Systems reset.", "Command cancelled.", "Standing by."),
    Phrase.ERROR: (
        "Signal lost.",
        "Visual interference detected.",
        "Negative.",
        "System sensor malfunction.",
    ),
}

GREETING = "Agent NETRA online. Audio link established. Ready for command."
HELP_TEXT = (
    "NETRA Systems online. State your command. Options: Scan sector, "
    "Auto surveillance, 'Describe [object]', Report location."
)
NO_TARGETS = "Scan complete. No interactive targets identified in this sector."
LOCATION_UNAVAILABLE = "Location data unavailable."
GPS_NOT_FOUND = "GPS signal not found."
MAX_ANNOUNCED_NAMES = 4


def scan_summary(names: list[str]) -> str:
    """Narration after a manual scan."""
    if not names:
        return NO_TARGETS
    listed = ", ".join(names[:MAX_ANNOUNCED_NAMES])
    return f"Visuals confirmed. I have identified: {listed}. Select a target for detailed analysis."


def contacts_summary(names: list[str]) -> str:
    """Narration for the auto-scan loop."""
    return f"Contacts: {', '.join(names)}."


def acquiring(name: str) -> str:
    return f"Acquiring target: {name}."


def located(description: str) -> str:
    return f"You are currently located in {description}."


class ResponseBank:
    """Random phrase picker with an injectable RNG for reproducible tests."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def pick(self, phrase: Phrase) -> str:
        return self._rng.choice(RESPONSES[phrase])
