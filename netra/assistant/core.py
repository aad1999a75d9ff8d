"""
NETRA assistant core - the interaction loop and state machine.

This ties together:
- Speech recognition (one transcript per utterance)
- Intent routing against the currently tracked objects
- Vision/language calls (scan, identify, free-form query, location)
- Narration, then re-arming the recognizer

Everything runs on one asyncio event loop. Each action opens a session and
carries its token through every await; a continuation whose token is no
longer current drops its result without touching state.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from netra.assistant import responses
from netra.assistant.camera import FrameSource
from netra.assistant.responses import Phrase, ResponseBank
from netra.errors import NarrationError, RecognitionError, SensorUnavailableError, ServiceError
from netra.intent.router import CommandIntent, CommandRouter, IntentKind
from netra.services.location import LocationProvider, NullLocationProvider
from netra.services.narration import Narrator, VoiceSettings
from netra.services.recognition import Recognizer
from netra.services.vision import DetectionResult, VisionService
from netra.session import SessionController, SessionToken
from netra.tracking.tracker import ObjectTracker, TrackedEntity

logger = logging.getLogger(__name__)


class AssistantState(Enum):
    """Interaction states."""

    IDLE = "idle"  # Waiting for a command
    SCANNING = "scanning"  # Remote analysis in flight
    SPEAKING = "speaking"  # Narrating a result


class AudioChannel(Enum):
    """Who owns the audio path. Listening and speaking never overlap."""

    QUIET = "quiet"
    LISTENING = "listening"
    SPEAKING = "speaking"


@dataclass(frozen=True)
class SensorFault:
    """A sensor that is absent or denied. Persists until cleared."""

    kind: str  # "camera" or "location"
    message: str


@dataclass
class AssistantConfig:
    """Configuration for the NETRA assistant."""

    # Matching and tracking
    fuzzy_threshold: float = 0.35
    match_threshold: float = 250.0  # 0-1000 normalized units
    smoothing_factor: float = 0.6

    # Auto-scan loop timing (seconds)
    auto_scan_interval: float = 0.0  # Delay after a successful cycle
    idle_poll_delay: float = 1.0  # Delay while the loop is suspended
    retry_delay: float = 2.0  # Delay after a failed cycle
    change_throttle: float = 1.0  # Min gap between announcements on change
    announce_interval: float = 8.0  # Max silence while objects are visible

    # Frame capture (JPEG quality, resize scale)
    scan_quality: float = 0.15
    scan_scale: float = 0.15
    detail_quality: float = 0.3
    detail_scale: float = 0.3
    auto_quality: float = 0.2
    auto_scale: float = 0.15

    # Location
    location_timeout: float = 10.0
    announce_location_on_start: bool = True
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    geoip: bool = False

    # Devices
    camera_enabled: bool = True
    camera_device: int = 0
    narrator: str = "console"  # "console" or "remote"

    # Voice
    speech_rate: float = 1.0
    voice_pitch: int = 0  # -400..400
    relisten_delay: float = 0.1

    # Behavior
    verbose: bool = False

    # Callbacks
    on_state_change: Optional[Callable[["AssistantState", "AssistantState"], None]] = None
    on_narration: Optional[Callable[[str], None]] = None
    on_error: Optional[Callable[[Exception], None]] = None

    @classmethod
    def from_yaml(cls, path: str) -> dict:
        """Load config values from a YAML file.

        Returns a dict of config keys → values (not an AssistantConfig instance).
        Caller is responsible for merging with CLI overrides before constructing.
        Only keys that correspond to AssistantConfig fields are returned;
        unknown keys are silently ignored.
        """
        import yaml

        yaml_path = Path(path).expanduser()
        with open(yaml_path) as f:
            raw = yaml.safe_load(f) or {}

        valid_keys = {f.name for f in fields(cls) if f.name not in (
            "on_state_change", "on_narration", "on_error",
        )}
        return {k: v for k, v in raw.items() if k in valid_keys}


@dataclass(frozen=True)
class AssistantSnapshot:
    """Read-only view of the assistant for the rendering layer."""

    state: AssistantState
    entities: tuple[TrackedEntity, ...]
    focused_id: Optional[int]
    result: Optional[DetectionResult]
    recognized_text: Optional[str]
    agent_message: Optional[str]
    auto_scan_enabled: bool
    location_name: Optional[str]
    faults: tuple[SensorFault, ...] = field(default_factory=tuple)


def visible_names(entities: tuple[TrackedEntity, ...]) -> list[str]:
    """Sorted unique lowercase names, the unit of change for announcements."""
    return sorted({e.name.lower() for e in entities})


def unique_names(entities: tuple[TrackedEntity, ...]) -> list[str]:
    """Entity names in detection order without duplicates."""
    return list(dict.fromkeys(e.name for e in entities))


class AnnouncementThrottle:
    """
    Decides when the auto-scan loop narrates the visible objects.

    Announces when the name set changed and more than ``change_throttle``
    seconds passed, or when more than ``announce_interval`` seconds passed.
    """

    def __init__(
        self,
        change_throttle: float = 1.0,
        announce_interval: float = 8.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.change_throttle = change_throttle
        self.announce_interval = announce_interval
        self._clock = clock
        self._last_time: Optional[float] = None
        self._last_names: list[str] = []

    def reset(self) -> None:
        self._last_time = None
        self._last_names = []

    def should_announce(self, names: list[str]) -> bool:
        if not names:
            return False
        now = self._clock()
        since = float("inf") if self._last_time is None else now - self._last_time
        changed = names != self._last_names
        if (changed and since > self.change_throttle) or since > self.announce_interval:
            self._last_time = now
            self._last_names = list(names)
            return True
        return False


class Orchestrator:
    """
    The NETRA interaction loop.

    Owns the interaction state, focus, current result and narration text.
    The tracked-entity set belongs to the ObjectTracker and the session token
    to the SessionController; the orchestrator only reads them.

    Usage:
        orchestrator = Orchestrator(
            vision=OpenAIVisionService(),
            narrator=ConsoleNarrator(),
            recognizer=ConsoleRecognizer(),
            camera=Camera(),
        )
        asyncio.run(orchestrator.run())
    """

    def __init__(
        self,
        vision: VisionService,
        narrator: Narrator,
        recognizer: Recognizer,
        camera: Optional[FrameSource] = None,
        location: Optional[LocationProvider] = None,
        config: Optional[AssistantConfig] = None,
        response_bank: Optional[ResponseBank] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or AssistantConfig()

        self.sessions = SessionController()
        self.tracker = ObjectTracker(
            match_threshold=self.config.match_threshold,
            smoothing_factor=self.config.smoothing_factor,
        )
        self.router = CommandRouter(threshold=self.config.fuzzy_threshold)
        self.responses = response_bank or ResponseBank()

        self._vision = vision
        self._narrator = narrator
        self._recognizer = recognizer
        self._camera = camera
        self._location = location or NullLocationProvider()
        self._throttle = AnnouncementThrottle(
            change_throttle=self.config.change_throttle,
            announce_interval=self.config.announce_interval,
            clock=clock,
        )

        # Interaction state (owned here)
        self.state = AssistantState.IDLE
        self.auto_scan_enabled = False
        self.focused_id: Optional[int] = None
        self.result: Optional[DetectionResult] = None
        self.recognized_text: Optional[str] = None
        self.agent_message: Optional[str] = None
        self.location_name: Optional[str] = None
        self.faults: dict[str, SensorFault] = {}

        self._voice = VoiceSettings(rate=self.config.speech_rate, pitch=self.config.voice_pitch)
        self._channel = AudioChannel.QUIET
        self._utterance = 0
        self._listening_enabled = False
        self._listen_task: Optional[asyncio.Task] = None
        self._auto_scan_task: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()
        self._shutdown_event: Optional[asyncio.Event] = None

        if self.config.verbose:
            logger.setLevel(logging.DEBUG)

    # ── Lifecycle ──

    async def run(self) -> None:
        """Start the assistant and serve commands until ``request_shutdown()``."""
        self._shutdown_event = asyncio.Event()
        await self.start()
        try:
            await self._shutdown_event.wait()
        finally:
            await self.shutdown()

    async def start(self) -> None:
        """Open the camera, greet the user, optionally report location, listen."""
        camera_ok = False
        if self._camera is not None:
            camera_ok = await asyncio.to_thread(self._camera.open)
        if not camera_ok:
            self._raise_fault(SensorUnavailableError("camera", "Camera sensor offline."))

        self.enable_listening()
        token = self.sessions.current()
        await self._narrate(responses.GREETING, token)
        if self.config.announce_location_on_start and self.sessions.is_current(token):
            await self._report_location(token, acknowledge=False)
        else:
            self._rearm(token)
        logger.info("Assistant ready")

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    async def shutdown(self) -> None:
        """Invalidate in-flight work, stop audio and background loops."""
        logger.info("Stopping assistant...")
        self._listening_enabled = False
        self.sessions.next()
        self._narrator.cancel()
        self._stop_listening()
        self._set_auto_scan(False)

        pending = [t for t in self._tasks if t is not asyncio.current_task()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        if self._camera is not None:
            self._camera.close()

    async def close(self) -> None:
        """Release service clients."""
        await self._vision.close()
        await self._narrator.close()
        await self._recognizer.close()
        await self._location.close()

    def enable_listening(self) -> None:
        self._listening_enabled = True

    # ── Observable state ──

    def snapshot(self) -> AssistantSnapshot:
        return AssistantSnapshot(
            state=self.state,
            entities=self.tracker.entities,
            focused_id=self.focused_id,
            result=self.result,
            recognized_text=self.recognized_text,
            agent_message=self.agent_message,
            auto_scan_enabled=self.auto_scan_enabled,
            location_name=self.location_name,
            faults=tuple(self.faults.values()),
        )

    @property
    def audio_channel(self) -> AudioChannel:
        return self._channel

    @property
    def voice(self) -> VoiceSettings:
        return self._voice

    def update_voice(self, rate: Optional[float] = None, pitch: Optional[int] = None) -> None:
        """Change voice settings; applies from the next utterance on."""
        new_rate = self._voice.rate if rate is None else rate
        new_pitch = self._voice.pitch if pitch is None else max(-400, min(400, pitch))
        self._voice = VoiceSettings(rate=new_rate, pitch=new_pitch)

    def clear_fault(self, kind: Optional[str] = None) -> None:
        """Clear one sensor fault, or all of them."""
        if kind is None:
            self.faults.clear()
        else:
            self.faults.pop(kind, None)
        logger.info("Sensor faults cleared (%s)", kind or "all")

    def _set_state(self, new_state: AssistantState) -> None:
        old_state = self.state
        self.state = new_state
        if old_state != new_state:
            logger.debug("State: %s -> %s", old_state.value, new_state.value)
            if self.config.on_state_change is not None:
                try:
                    self.config.on_state_change(old_state, new_state)
                except Exception:
                    logger.exception("on_state_change callback failed")

    def _notify_error(self, error: BaseException) -> None:
        if self.config.on_error is not None:
            try:
                self.config.on_error(error)
            except Exception:
                logger.exception("on_error callback failed")

    # ── Command dispatch ──

    async def handle_transcript(self, transcript: str) -> CommandIntent:
        """Route one finalized transcript and run the resulting action."""
        self.recognized_text = transcript
        intent = self.router.route(transcript, self.tracker.entities)
        logger.info("You: %s [%s]", transcript, intent.kind.value)
        await self.dispatch(intent)
        return intent

    async def dispatch(self, intent: CommandIntent) -> None:
        """Run the action for ``intent``; unexpected failures degrade to IDLE."""
        try:
            await self._run_action(intent)
        except Exception as e:
            logger.exception("Action %s failed unexpectedly", intent.kind.value)
            await self._fail(self.sessions.current(), e)

    async def _run_action(self, intent: CommandIntent) -> None:
        kind = intent.kind
        if kind is IntentKind.STOP:
            await self.stop()
        elif kind is IntentKind.TOGGLE_AUTO_SCAN:
            await self.enable_auto_scan()
        elif kind is IntentKind.SCAN:
            await self.scan()
        elif kind is IntentKind.LOCATION:
            await self.report_location()
        elif kind is IntentKind.HELP:
            await self.show_help()
        elif kind is IntentKind.OBJECT_REFERENCE:
            await self.select_entity(intent.entity_id)
        elif kind is IntentKind.FREE_FORM:
            await self.query(intent.text)
        else:
            self._rearm(self.sessions.current())

    # ── Actions ──

    async def stop(self) -> None:
        """Cancel everything in flight and return to IDLE."""
        token = self.sessions.next()
        self._narrator.cancel()
        self._set_state(AssistantState.IDLE)
        self.result = None
        self.focused_id = None
        self.agent_message = None

        if self.auto_scan_enabled:
            self._set_auto_scan(False)
            phrase = Phrase.AUTO_OFF
        else:
            phrase = Phrase.STOP

        await self._narrate(self.responses.pick(phrase), token)
        self._rearm(token)

    async def enable_auto_scan(self) -> None:
        """Turn on surveillance mode. A no-op when it is already on."""
        if self.auto_scan_enabled:
            logger.debug("Auto-scan already enabled")
            self._rearm(self.sessions.current())
            return

        token = self.sessions.next()
        self._set_auto_scan(True)
        self.focused_id = None
        await self._narrate(self.responses.pick(Phrase.AUTO_ON), token)
        self._rearm(token)

    async def show_help(self) -> None:
        token = self.sessions.next()
        await self._narrate(responses.HELP_TEXT, token)
        self._rearm(token)

    async def scan(self) -> None:
        """Detect the objects in view and narrate what was found."""
        token = self.sessions.next()
        if await self._refuse_if_faulted("camera", token):
            return

        self._set_state(AssistantState.SCANNING)
        self.result = None
        self.focused_id = None

        try:
            frame = await self._capture(self.config.scan_quality, self.config.scan_scale)
            _, detections = await asyncio.gather(
                self._narrate(self.responses.pick(Phrase.SCANNING), token),
                self._vision.detect_entities(frame),
            )
        except SensorUnavailableError as e:
            await self._handle_fault(token, e)
            return
        except ServiceError as e:
            await self._fail(token, e)
            return

        if not self.sessions.is_current(token):
            logger.debug("Scan result dropped (%s is stale)", token)
            return

        entities = self.tracker.reconcile(detections)
        self._set_state(AssistantState.SPEAKING)
        await self._narrate(responses.scan_summary(unique_names(entities)), token)
        self._finish(token)

    async def select_entity(self, entity_id: int) -> None:
        """Focus one tracked object and narrate a detailed description."""
        entity = self.tracker.get(entity_id)
        if entity is None:
            logger.warning("Select: no tracked entity with id %s", entity_id)
            self._rearm(self.sessions.current())
            return
        if self.focused_id == entity_id and self.state is AssistantState.SPEAKING:
            return

        token = self.sessions.next()
        if await self._refuse_if_faulted("camera", token):
            return

        self.focused_id = entity_id
        self._set_state(AssistantState.SCANNING)
        self.result = None

        try:
            frame = await self._capture(self.config.detail_quality, self.config.detail_scale)
            _, result = await asyncio.gather(
                self._narrate(responses.acquiring(entity.name), token),
                self._vision.identify_entity(frame, entity.name),
            )
        except SensorUnavailableError as e:
            await self._handle_fault(token, e)
            return
        except ServiceError as e:
            await self._fail(token, e)
            return

        if not self.sessions.is_current(token):
            logger.debug("Identify result dropped (%s is stale)", token)
            return

        self.result = replace(result, box=entity.box)
        self._set_state(AssistantState.SPEAKING)
        await self._narrate(self.result.speech(), token)
        self._finish(token)

    async def query(self, text: str) -> None:
        """Ask the vision model a free-form question about the current view."""
        token = self.sessions.next()
        if await self._refuse_if_faulted("camera", token):
            return

        self._set_state(AssistantState.SCANNING)

        try:
            frame = await self._capture(self.config.detail_quality, self.config.detail_scale)
            _, answer = await asyncio.gather(
                self._narrate(self.responses.pick(Phrase.ACKNOWLEDGE), token),
                self._vision.query_scene(frame, text),
            )
        except SensorUnavailableError as e:
            await self._handle_fault(token, e)
            return
        except ServiceError as e:
            await self._fail(token, e)
            return

        if not self.sessions.is_current(token):
            logger.debug("Query answer dropped (%s is stale)", token)
            return

        self._set_state(AssistantState.SPEAKING)
        await self._narrate(answer, token)
        self._finish(token)

    async def report_location(self) -> None:
        """Tell the user where they are."""
        token = self.sessions.next()
        await self._report_location(token, acknowledge=True)

    async def _report_location(self, token: SessionToken, acknowledge: bool) -> None:
        if await self._refuse_if_faulted("location", token):
            return

        if acknowledge:
            await self._narrate(self.responses.pick(Phrase.ACKNOWLEDGE), token)
            if not self.sessions.is_current(token):
                return

        self._set_state(AssistantState.SCANNING)
        try:
            lat, lng = await asyncio.wait_for(
                self._location.current_position(), self.config.location_timeout
            )
        except SensorUnavailableError as e:
            await self._handle_fault(token, e)
            return
        except (asyncio.TimeoutError, ServiceError) as e:
            await self._fail(token, e, phrase=responses.GPS_NOT_FOUND)
            return

        if not self.sessions.is_current(token):
            return

        try:
            description = await self._vision.describe_location(lat, lng)
        except ServiceError as e:
            await self._fail(token, e, phrase=responses.LOCATION_UNAVAILABLE)
            return

        if not self.sessions.is_current(token):
            logger.debug("Location answer dropped (%s is stale)", token)
            return

        self.location_name = description
        self.result = DetectionResult(
            object_name="CURRENT SECTOR",
            details="GPS Triangulation",
            spoken_description=responses.located(description),
            safety_warning="Maintain situational awareness.",
        )
        self._set_state(AssistantState.SPEAKING)
        await self._narrate(self.result.spoken_description, token)
        self._finish(token)

    # ── Continuations ──

    def _finish(self, token: SessionToken) -> None:
        """Narration done: back to IDLE and listening, if still current."""
        if not self.sessions.is_current(token):
            return
        self._set_state(AssistantState.IDLE)
        self._rearm(token)

    async def _fail(
        self, token: SessionToken, error: Exception, phrase: Optional[str] = None
    ) -> None:
        """Degrade a failed action to IDLE with a spoken error."""
        if not self.sessions.is_current(token):
            logger.debug("Failure of stale %s ignored: %s", token, error)
            return
        logger.warning("Action failed: %s", error)
        self._notify_error(error)
        self._set_state(AssistantState.IDLE)
        self.focused_id = None
        await self._narrate(phrase or self.responses.pick(Phrase.ERROR), token)
        self._rearm(token)

    def _raise_fault(self, error: SensorUnavailableError) -> None:
        self.faults[error.kind] = SensorFault(kind=error.kind, message=error.message)
        logger.error("Sensor fault (%s): %s", error.kind, error.message)
        if error.kind == "camera":
            self.focused_id = None
        self._set_state(AssistantState.IDLE)
        self._notify_error(error)

    async def _handle_fault(self, token: SessionToken, error: SensorUnavailableError) -> None:
        if not self.sessions.is_current(token):
            return
        self._raise_fault(error)
        await self._narrate(error.message, token)
        self._rearm(token)

    async def _refuse_if_faulted(self, kind: str, token: SessionToken) -> bool:
        fault = self.faults.get(kind)
        if fault is None:
            return False
        logger.debug("Refusing action: %s fault active", kind)
        self._set_state(AssistantState.IDLE)
        await self._narrate(fault.message, token)
        self._rearm(token)
        return True

    async def _capture(self, quality: float, scale: float) -> str:
        if self._camera is None or not self._camera.is_open:
            raise SensorUnavailableError("camera", "Camera sensor offline.")
        frame = await asyncio.to_thread(self._camera.capture_base64, quality, scale)
        if frame is None:
            raise ServiceError("Camera returned no frame")
        return frame

    # ── Narration / recognition rendezvous ──

    async def _narrate(self, text: str, token: SessionToken) -> bool:
        """
        Speak ``text`` for session ``token``.

        Cancels whatever is playing, stops recognition while speaking and
        returns whether the session is still current afterwards.
        """
        self._narrator.cancel()
        if not self.sessions.is_current(token):
            return False

        self._utterance += 1
        utterance = self._utterance
        self._channel = AudioChannel.SPEAKING
        self.agent_message = text
        self._stop_listening()

        logger.info("Assistant: %s", text)
        if self.config.on_narration is not None:
            self.config.on_narration(text)

        try:
            await self._narrator.speak(text, self._voice)
        except NarrationError as e:
            logger.warning("Narration failed: %s", e)
        finally:
            if self._utterance == utterance:
                self._channel = AudioChannel.QUIET
                self.agent_message = None
                # keep "stop" reachable while a remote call is still pending
                self._rearm(token)

        return self.sessions.is_current(token)

    def _rearm(self, token: SessionToken) -> None:
        if self.sessions.is_current(token):
            self.start_listening()

    def start_listening(self) -> bool:
        """Start one recognition pass unless speaking or already listening."""
        if not self._listening_enabled:
            return False
        if self._channel is AudioChannel.SPEAKING:
            logger.debug("Not listening while speaking")
            return False
        if self._listen_task is not None and not self._listen_task.done():
            return False
        self._channel = AudioChannel.LISTENING
        self._listen_task = self._spawn(self._listen_once(), name="Listen")
        return True

    def _stop_listening(self) -> None:
        self._recognizer.stop()
        task = self._listen_task
        self._listen_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        if self._channel is AudioChannel.LISTENING:
            self._channel = AudioChannel.QUIET

    async def _listen_once(self) -> None:
        try:
            transcript = await self._recognizer.listen()
        except RecognitionError as e:
            logger.warning("Recognition failed: %s", e)
            transcript = None
        finally:
            if self._channel is AudioChannel.LISTENING:
                self._channel = AudioChannel.QUIET

        if self._listen_task is asyncio.current_task():
            self._listen_task = None

        if transcript and transcript.strip():
            self._spawn(self.handle_transcript(transcript), name="Command")
            return

        if self._recognizer.exhausted:
            logger.info("Recognizer input ended")
            self.request_shutdown()
            return

        await asyncio.sleep(self.config.relisten_delay)
        self.start_listening()

    # ── Auto-scan ──

    def _set_auto_scan(self, enabled: bool) -> None:
        self.auto_scan_enabled = enabled
        if enabled:
            self._throttle.reset()
            if self._auto_scan_task is None or self._auto_scan_task.done():
                self._auto_scan_task = self._spawn(self._auto_scan_loop(), name="AutoScan")
            logger.info("Auto-scan enabled")
        elif self._auto_scan_task is not None:
            if self._auto_scan_task is not asyncio.current_task():
                self._auto_scan_task.cancel()
            self._auto_scan_task = None
            logger.info("Auto-scan disabled")

    async def _auto_scan_loop(self) -> None:
        while True:
            try:
                delay = await self.auto_scan_cycle()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Auto-scan cycle failed")
                delay = self.config.retry_delay
            await asyncio.sleep(delay)

    async def auto_scan_cycle(self) -> float:
        """
        Run one background detection cycle.

        Returns:
            Seconds to wait before the next cycle.
        """
        if not self.auto_scan_enabled or self.focused_id is not None or "camera" in self.faults:
            return self.config.idle_poll_delay

        token = self.sessions.current()
        try:
            frame = await self._capture(self.config.auto_quality, self.config.auto_scale)
            detections = await self._vision.detect_entities(frame)
        except SensorUnavailableError as e:
            self._raise_fault(e)
            return self.config.idle_poll_delay
        except ServiceError as e:
            logger.warning("Auto-scan: %s", e)
            return self.config.retry_delay

        if not self.sessions.is_current(token) or self.focused_id is not None:
            logger.debug("Auto-scan result dropped (%s is stale)", token)
            return self.config.idle_poll_delay

        entities = self.tracker.reconcile(detections)
        self._maybe_announce(entities, token)
        return self.config.auto_scan_interval

    def _maybe_announce(self, entities: tuple[TrackedEntity, ...], token: SessionToken) -> None:
        if not self.auto_scan_enabled or self.focused_id is not None:
            return
        if self.state is not AssistantState.IDLE:
            return
        names = visible_names(entities)
        if self._throttle.should_announce(names):
            self._spawn(self._announce(responses.contacts_summary(names), token), name="Announce")

    async def _announce(self, text: str, token: SessionToken) -> None:
        if await self._narrate(text, token):
            self._rearm(token)

    # ── Task bookkeeping ──

    def _spawn(self, coro, name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Task %s failed", task.get_name(), exc_info=exc)
            self._notify_error(exc)
