"""
Vision/language service client.

Four call shapes are used by the assistant:

- detect_entities(image)             -> list of labelled boxes
- identify_entity(image, focus_name) -> structured description
- query_scene(image, text)           -> free-form spoken answer
- describe_location(lat, lng)        -> place description

The default implementation talks to any OpenAI-compatible chat endpoint
serving a vision-language model (vLLM with Qwen2.5-VL, for example).
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import openai
from pydantic import ValidationError

from netra.config import VisionServiceConfig, get_config
from netra.errors import ServiceError
from netra.services.schemas import DetectedObjectPayload, IdentifyPayload
from netra.tracking.tracker import BoundingBox, Detection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionResult:
    """Detailed analysis of one target, shown on the info card and narrated."""

    object_name: str
    details: str
    spoken_description: str
    safety_warning: Optional[str] = None
    expiry_date: Optional[str] = None
    box: Optional[BoundingBox] = None

    def speech(self) -> str:
        """Spoken form: description followed by the safety alert, if any."""
        parts = [self.spoken_description]
        if self.safety_warning:
            parts.append(f"Alert: {self.safety_warning}.")
        return " ".join(p for p in parts if p)


IDENTIFY_FALLBACK = DetectionResult(
    object_name="Unknown",
    details="Analysis failed.",
    spoken_description="Target acquisition failed. Please realign sensor.",
)
QUERY_FALLBACK = "Visuals unclear. Repeat command."
LOCATION_FALLBACK = "Unknown sector."


class VisionService(ABC):
    """Abstract vision/language service. All calls may raise ServiceError."""

    @abstractmethod
    async def detect_entities(self, image_b64: Optional[str]) -> list[Detection]:
        """List the prominent objects in a frame."""

    @abstractmethod
    async def identify_entity(self, image_b64: Optional[str], focus_name: str) -> DetectionResult:
        """Describe one named object in a frame."""

    @abstractmethod
    async def query_scene(self, image_b64: Optional[str], text: str) -> str:
        """Answer a free-form spoken question about a frame."""

    @abstractmethod
    async def describe_location(self, lat: float, lng: float) -> str:
        """Describe the place at the given coordinates."""

    async def close(self) -> None:
        """Release network resources."""


_FENCE = re.compile(r"```(?:json)?")
_ARRAY = re.compile(r"\[.*\]", re.DOTALL)


def parse_json(text: Optional[str]) -> Any:
    """
    Parse a model answer that should be JSON.

    Strips markdown code fences; if the result still does not parse, tries
    the first ``[...]`` span. Returns None when nothing usable is found.
    """
    if not text:
        return None
    cleaned = _FENCE.sub("", text).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        logger.debug("Vision: answer is not clean JSON: %s", cleaned[:120])

    array_match = _ARRAY.search(text)
    if array_match:
        try:
            return json.loads(array_match.group(0))
        except json.JSONDecodeError:
            pass
    return None


def _clamp(value: float) -> float:
    return max(0.0, min(1000.0, value))


def to_detections(data: Any) -> list[Detection]:
    """Convert a parsed detect-entities answer into Detection objects."""
    if not isinstance(data, list):
        return []
    detections = []
    for item in data:
        try:
            payload = DetectedObjectPayload.model_validate(item)
        except ValidationError as e:
            logger.debug("Vision: skipping malformed object %r: %s", item, e)
            continue
        detections.append(Detection(
            name=payload.name,
            short_details=payload.shortDetails,
            box=BoundingBox(
                ymin=_clamp(payload.ymin),
                xmin=_clamp(payload.xmin),
                ymax=_clamp(payload.ymax),
                xmax=_clamp(payload.xmax),
            ),
        ))
    return detections


def to_detection_result(data: Any) -> DetectionResult:
    """Convert a parsed identify answer, falling back when it is unusable."""
    if not isinstance(data, dict):
        return IDENTIFY_FALLBACK
    try:
        payload = IdentifyPayload.model_validate(data)
    except ValidationError as e:
        logger.debug("Vision: malformed identify answer: %s", e)
        return IDENTIFY_FALLBACK
    return DetectionResult(
        object_name=payload.objectName,
        details=payload.details,
        spoken_description=payload.spokenDescription,
        safety_warning=payload.safetyWarning or None,
        expiry_date=payload.expiryDate or None,
    )


class OpenAIVisionService(VisionService):
    """
    Vision service over an OpenAI-compatible chat completions API.

    Several API keys may be configured; each request uses the next one.

    Usage:
        service = OpenAIVisionService()
        objects = await service.detect_entities(frame_b64)
    """

    DETECT_PROMPT = (
        "List 3-5 distinct, prominent objects. Respond with a JSON array only: "
        '[{"name", "shortDetails", "ymin", "xmin", "ymax", "xmax"}]. '
        "Coordinates on a 0-1000 scale."
    )

    IDENTIFY_PROMPT = (
        'Analyze the target "{name}". You are NETRA, a visual agent for a '
        "visually impaired user. Respond with a JSON object only: "
        '{{"objectName", "details", "spokenDescription", "safetyWarning", "expiryDate"}}. '
        "spokenDescription is at most 40 words."
    )

    QUERY_SYSTEM_PROMPT = (
        "You are NETRA, a tactical visual assistant. Be concise and authoritative. "
        "Read text aloud if asked. Speak in the first person. No markdown."
    )

    LOCATION_PROMPT = (
        "The user is at latitude {lat:.5f}, longitude {lng:.5f}. "
        "Describe the location as city and district in one short sentence. "
        "Do not read out the coordinates."
    )

    def __init__(
        self,
        config: Optional[VisionServiceConfig] = None,
        clients: Optional[Sequence[Any]] = None,
    ):
        """
        Args:
            config: Endpoint settings (defaults to the global config)
            clients: Pre-built async clients, one per API key
        """
        self.config = config or get_config().vision
        if clients:
            self._clients = list(clients)
        else:
            keys = self.config.api_keys or ["not-needed"]
            self._clients = [
                openai.AsyncOpenAI(
                    api_key=key,
                    base_url=self.config.base_url,
                    timeout=self.config.timeout,
                )
                for key in keys
            ]
        self._key_index = 0

    def _next_client(self):
        index = self._key_index
        self._key_index = (index + 1) % len(self._clients)
        logger.debug("Vision: using API key slot %d", index)
        return self._clients[index]

    @staticmethod
    def _build_content(text: str, image_b64: Optional[str] = None) -> list[dict] | str:
        """Build OpenAI-format multimodal content."""
        if not image_b64:
            return text
        return [
            {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{image_b64}"}},
            {"type": "text", "text": text},
        ]

    async def _complete(
        self,
        messages: list[dict],
        max_tokens: int,
        model: Optional[str] = None,
    ) -> str:
        client = self._next_client()
        try:
            response = await client.chat.completions.create(
                model=model or self.config.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=0,
            )
        except openai.OpenAIError as e:
            raise ServiceError(f"Vision request failed: {e}") from e

        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    async def detect_entities(self, image_b64: Optional[str]) -> list[Detection]:
        text = await self._complete(
            [{"role": "user", "content": self._build_content(self.DETECT_PROMPT, image_b64)}],
            max_tokens=self.config.detect_max_tokens,
        )
        detections = to_detections(parse_json(text))
        logger.debug("Vision: detected %s", [d.name for d in detections])
        return detections

    async def identify_entity(self, image_b64: Optional[str], focus_name: str) -> DetectionResult:
        prompt = self.IDENTIFY_PROMPT.format(name=focus_name)
        text = await self._complete(
            [{"role": "user", "content": self._build_content(prompt, image_b64)}],
            max_tokens=self.config.identify_max_tokens,
        )
        return to_detection_result(parse_json(text))

    async def query_scene(self, image_b64: Optional[str], text: str) -> str:
        answer = await self._complete(
            [
                {"role": "system", "content": self.QUERY_SYSTEM_PROMPT},
                {"role": "user", "content": self._build_content(f"COMMAND: {text}", image_b64)},
            ],
            max_tokens=self.config.query_max_tokens,
        )
        return answer or QUERY_FALLBACK

    async def describe_location(self, lat: float, lng: float) -> str:
        answer = await self._complete(
            [{"role": "user", "content": self.LOCATION_PROMPT.format(lat=lat, lng=lng)}],
            max_tokens=self.config.query_max_tokens,
            model=self.config.location_model,
        )
        return answer or LOCATION_FALLBACK

    async def close(self) -> None:
        for client in self._clients:
            close = getattr(client, "close", None)
            if close is not None:
                await close()
