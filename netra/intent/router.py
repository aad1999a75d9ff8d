"""
Intent routing for voice transcripts.

A transcript is classified by an ordered cascade; the first rule that fires
wins and later rules never override it:

1. stop / reset        (always first so the user can always interrupt)
2. auto-scan toggle
3. scan
4. location
5. help
6. object reference with an intent verb ("describe the mug")
7. object reference without one ("mug")
8. free-form question
9. noise
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from netra.intent.fuzzy import DEFAULT_THRESHOLD, matches, matches_any, normalize_name
from netra.tracking.tracker import TrackedEntity

logger = logging.getLogger(__name__)


class IntentKind(Enum):
    """Kinds of command a transcript can resolve to."""

    STOP = "stop"
    TOGGLE_AUTO_SCAN = "toggle_auto_scan"
    SCAN = "scan"
    LOCATION = "location"
    HELP = "help"
    OBJECT_REFERENCE = "object_reference"
    FREE_FORM = "free_form"
    NOISE = "noise"


@dataclass(frozen=True)
class CommandIntent:
    """Routing result. ``entity_id`` is set for object references, ``text`` for free-form."""

    kind: IntentKind
    entity_id: Optional[int] = None
    text: Optional[str] = None

    @classmethod
    def of(cls, kind: IntentKind) -> "CommandIntent":
        return cls(kind=kind)

    @classmethod
    def object_reference(cls, entity_id: int) -> "CommandIntent":
        return cls(kind=IntentKind.OBJECT_REFERENCE, entity_id=entity_id)

    @classmethod
    def free_form(cls, text: str) -> "CommandIntent":
        return cls(kind=IntentKind.FREE_FORM, text=text)


@dataclass
class Vocabulary:
    """The spoken command vocabulary."""

    stop: list[str] = field(default_factory=lambda: [
        "stop", "cancel", "reset", "shut down", "exit", "silence", "abort",
    ])
    auto_scan: list[str] = field(default_factory=lambda: [
        "auto scan", "continuous", "surveillance", "tracking mode", "auto mode",
    ])
    scan: list[str] = field(default_factory=lambda: [
        "scan", "look around", "what's around", "analyze scene", "what do you see", "report",
    ])
    location: list[str] = field(default_factory=lambda: [
        "where am i", "report location", "my position", "coordinates", "gps",
    ])
    help: list[str] = field(default_factory=lambda: [
        "help", "status", "commands", "options",
    ])
    intent_prefixes: list[str] = field(default_factory=lambda: [
        "describe", "tell me about", "analyze", "inspect", "what is",
        "look at", "check", "examine", "read",
    ])

    def command_sets(self) -> list[tuple[IntentKind, list[str]]]:
        """Keyword sets in cascade order."""
        return [
            (IntentKind.STOP, self.stop),
            (IntentKind.TOGGLE_AUTO_SCAN, self.auto_scan),
            (IntentKind.SCAN, self.scan),
            (IntentKind.LOCATION, self.location),
            (IntentKind.HELP, self.help),
        ]


_LEADING_ARTICLE = re.compile(r"^(the|a|an|this|that)\s+")


class CommandRouter:
    """
    Turns a transcript plus the currently tracked entities into an intent.

    Routing is pure: it reads the entity snapshot and never mutates
    assistant state. Whether a toggle actually changes anything is decided
    by the orchestrator.
    """

    def __init__(
        self,
        vocabulary: Optional[Vocabulary] = None,
        threshold: float = DEFAULT_THRESHOLD,
    ):
        self.vocabulary = vocabulary or Vocabulary()
        self.threshold = threshold

    def route(self, transcript: str, entities: Sequence[TrackedEntity] = ()) -> CommandIntent:
        """
        Classify a transcript.

        Args:
            transcript: Final transcript from the recognizer
            entities: Currently tracked entities (read-only)

        Returns:
            The first intent of the cascade that matches.
        """
        lower = transcript.lower().strip()

        for kind, keywords in self.vocabulary.command_sets():
            if matches_any(lower, keywords, self.threshold):
                logger.debug("Router: '%s' -> %s", transcript, kind.value)
                return CommandIntent.of(kind)

        entity = self._match_entity(lower, entities)
        if entity is not None:
            logger.debug("Router: '%s' -> entity %d (%s)", transcript, entity.id, entity.name)
            return CommandIntent.object_reference(entity.id)

        if len(transcript.strip()) > 1:
            logger.debug("Router: '%s' -> free-form", transcript)
            return CommandIntent.free_form(transcript.strip())

        logger.debug("Router: '%s' -> noise", transcript)
        return CommandIntent.of(IntentKind.NOISE)

    def strip_intent_prefix(self, lower: str) -> Optional[str]:
        """Return the object phrase after an intent verb, or None without one."""
        for prefix in self.vocabulary.intent_prefixes:
            if lower.startswith(prefix):
                target = lower[len(prefix):].strip()
                return _LEADING_ARTICLE.sub("", target)
        return None

    def _match_entity(
        self, lower: str, entities: Sequence[TrackedEntity]
    ) -> Optional[TrackedEntity]:
        target = self.strip_intent_prefix(lower)

        if target is not None:
            if not target:
                return None
            for entity in entities:
                name = normalize_name(entity.name)
                # "mug" should still pick out "coffee mug"
                if matches(target, name, self.threshold) or matches(name, target, self.threshold):
                    return entity
            return None

        for entity in entities:
            if matches(lower, normalize_name(entity.name), self.threshold):
                return entity
        return None
