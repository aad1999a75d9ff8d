"""Tests for the interaction loop: dispatch, staleness, faults and auto-scan."""

import asyncio
import random
from typing import Optional

import httpx
import pytest

from netra.assistant import responses
from netra.assistant.camera import FrameSource
from netra.assistant.core import (
    AnnouncementThrottle,
    AssistantConfig,
    AssistantState,
    AudioChannel,
    Orchestrator,
    visible_names,
)
from netra.assistant.responses import RESPONSES, Phrase, ResponseBank
from netra.config import LocationServiceConfig
from netra.errors import ServiceError
from netra.services.location import (
    IPLocationProvider,
    LocationProvider,
    NullLocationProvider,
    StaticLocationProvider,
)
from netra.services.narration import Narrator, VoiceSettings
from netra.services.recognition import Recognizer
from netra.services.vision import DetectionResult, VisionService
from netra.tracking.tracker import BoundingBox, Detection, TrackedEntity

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


def _box(cx, cy, half=50):
    return BoundingBox(ymin=cy - half, xmin=cx - half, ymax=cy + half, xmax=cx + half)


class FakeVision(VisionService):
    """Scripted vision service. ``gate`` holds every call until it is set."""

    def __init__(self):
        self.detections = []
        self.result = DetectionResult("Mug", "Ceramic", "A white mug.")
        self.answer = "The label says oat milk."
        self.place = "Paris, 7th arrondissement"
        self.errors = {}
        self.calls = []
        self.gate: Optional[asyncio.Event] = None
        self.started = asyncio.Event()

    async def _call(self, name, *args):
        self.calls.append((name, *args))
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if name in self.errors:
            raise self.errors[name]

    async def detect_entities(self, image_b64):
        await self._call("detect", image_b64)
        return list(self.detections)

    async def identify_entity(self, image_b64, focus_name):
        await self._call("identify", focus_name)
        return self.result

    async def query_scene(self, image_b64, text):
        await self._call("query", text)
        return self.answer

    async def describe_location(self, lat, lng):
        await self._call("describe_location", lat, lng)
        return self.place


class FakeNarrator(Narrator):
    """Records utterances. With ``hold=True`` each utterance waits for release()."""

    def __init__(self, hold=False):
        self.spoken = []
        self.voices = []
        self.cancels = 0
        self.hold = hold
        self.speaking = asyncio.Event()
        self._release: Optional[asyncio.Event] = None

    async def speak(self, text, voice):
        self.spoken.append(text)
        self.voices.append(voice)
        if not self.hold:
            await asyncio.sleep(0)
            return
        self._release = asyncio.Event()
        self.speaking.set()
        await self._release.wait()

    def release(self):
        if self._release is not None:
            self._release.set()

    def cancel(self):
        self.cancels += 1
        self.release()


class FakeRecognizer(Recognizer):
    def __init__(self):
        self.queue = asyncio.Queue()
        self.listens = 0
        self.stops = 0
        self.ended = False

    async def listen(self):
        self.listens += 1
        if self.ended:
            return None
        return await self.queue.get()

    def stop(self):
        self.stops += 1

    @property
    def exhausted(self):
        return self.ended


class FakeCamera(FrameSource):
    def __init__(self, available=True):
        self.available = available
        self._open = available
        self.captures = []

    @property
    def is_open(self):
        return self._open

    def open(self):
        self._open = self.available
        return self._open

    def capture_base64(self, quality=0.25, scale=0.35):
        self.captures.append((quality, scale))
        return "ZnJhbWU="

    def close(self):
        self._open = False


class HangingLocation(LocationProvider):
    async def current_position(self):
        await asyncio.Event().wait()


class FakeClock:
    def __init__(self, t=100.0):
        self.t = t

    def __call__(self):
        return self.t


def build(camera="default", location=None, clock=None, **overrides):
    """Orchestrator wired to fakes with fast timings. Call inside a running loop."""
    settings = dict(
        announce_location_on_start=False,
        auto_scan_interval=0.01,
        idle_poll_delay=0.01,
        retry_delay=0.01,
        relisten_delay=0.01,
    )
    settings.update(overrides)
    orchestrator = Orchestrator(
        vision=FakeVision(),
        narrator=FakeNarrator(),
        recognizer=FakeRecognizer(),
        camera=FakeCamera() if camera == "default" else camera,
        location=location,
        config=AssistantConfig(**settings),
        response_bank=ResponseBank(random.Random(7)),
        clock=clock or FakeClock(),
    )
    return orchestrator


async def settle(rounds=5):
    for _ in range(rounds):
        await asyncio.sleep(0.01)


# ---------------------------------------------------------------------------
# Scan
# ---------------------------------------------------------------------------


class TestScan:
    def test_look_around_end_to_end(self):
        """IDLE -> SCANNING -> SPEAKING -> IDLE, naming both objects."""
        transitions = []

        async def scenario():
            orch = build(on_state_change=lambda old, new: transitions.append((old, new)))
            orch._vision.detections = [
                Detection("cup", _box(100, 100)),
                Detection("laptop", _box(600, 500)),
            ]
            await orch.handle_transcript("look around")
            return orch

        orch = asyncio.run(scenario())

        spoken = orch._narrator.spoken
        assert spoken[0] in RESPONSES[Phrase.SCANNING]
        assert spoken[1] == (
            "Visuals confirmed. I have identified: cup, laptop. "
            "Select a target for detailed analysis."
        )
        assert orch.state is AssistantState.IDLE
        assert [e.name for e in orch.tracker.entities] == ["cup", "laptop"]
        assert transitions == [
            (AssistantState.IDLE, AssistantState.SCANNING),
            (AssistantState.SCANNING, AssistantState.SPEAKING),
            (AssistantState.SPEAKING, AssistantState.IDLE),
        ]

    def test_scan_with_no_objects(self):
        async def scenario():
            orch = build()
            await orch.scan()
            return orch

        orch = asyncio.run(scenario())
        assert orch._narrator.spoken[-1] == responses.NO_TARGETS

    def test_scan_uses_small_frames(self):
        async def scenario():
            orch = build()
            await orch.scan()
            return orch

        orch = asyncio.run(scenario())
        assert orch._camera.captures == [(0.15, 0.15)]

    def test_summary_lists_at_most_four_unique_names(self):
        async def scenario():
            orch = build()
            orch._vision.detections = [
                Detection(name, _box(100 * i, 100))
                for i, name in enumerate(["a", "b", "a", "c", "d", "e"], start=1)
            ]
            await orch.scan()
            return orch

        orch = asyncio.run(scenario())
        assert "identified: a, b, c, d." in orch._narrator.spoken[-1]

    def test_service_error_degrades_to_idle(self):
        errors = []

        async def scenario():
            orch = build(on_error=errors.append)
            orch._vision.errors["detect"] = ServiceError("model down")
            await orch.scan()
            return orch

        orch = asyncio.run(scenario())
        assert orch.state is AssistantState.IDLE
        assert orch._narrator.spoken[-1] in RESPONSES[Phrase.ERROR]
        assert isinstance(errors[0], ServiceError)


# ---------------------------------------------------------------------------
# Stop and staleness
# ---------------------------------------------------------------------------


class TestStop:
    def test_stop_discards_in_flight_scan(self):
        """Objects returned after 'stop' never reach the tracker or the speaker."""

        async def scenario():
            orch = build()
            vision = orch._vision
            vision.gate = asyncio.Event()
            vision.detections = [Detection("cup", _box(100, 100))]

            task = asyncio.create_task(orch.scan())
            await vision.started.wait()
            await orch.handle_transcript("stop")
            vision.gate.set()
            await task
            return orch

        orch = asyncio.run(scenario())
        assert orch.tracker.entities == ()
        assert orch.state is AssistantState.IDLE
        spoken = orch._narrator.spoken
        assert len(spoken) == 2
        assert spoken[-1] in RESPONSES[Phrase.STOP]

    def test_spoken_stop_interrupts_pending_scan(self):
        """A 'stop' typed while the model is still working reaches the assistant."""

        async def scenario():
            orch = build()
            vision = orch._vision
            vision.gate = asyncio.Event()
            vision.detections = [Detection("cup", _box(100, 100))]
            orch.enable_listening()
            orch.start_listening()

            orch._recognizer.queue.put_nowait("look around")
            await vision.started.wait()
            await settle(2)
            during = (orch.state, orch.audio_channel)

            orch._recognizer.queue.put_nowait("stop")
            await settle()
            vision.gate.set()
            await settle()
            await orch.shutdown()
            return orch, during

        orch, (state, channel) = asyncio.run(scenario())
        assert state is AssistantState.SCANNING
        assert channel is AudioChannel.LISTENING
        assert orch.tracker.entities == ()
        assert orch.state is AssistantState.IDLE
        spoken = orch._narrator.spoken
        assert spoken[0] in RESPONSES[Phrase.SCANNING]
        assert spoken[-1] in RESPONSES[Phrase.STOP]
        assert len(spoken) == 2

    def test_stop_clears_focus_and_result(self):
        async def scenario():
            orch = build()
            orch.tracker.reconcile([Detection("cup", _box(100, 100))])
            await orch.select_entity(1)
            await orch.stop()
            return orch

        orch = asyncio.run(scenario())
        assert orch.focused_id is None
        assert orch.result is None

    def test_stop_with_auto_scan_disengages(self):
        async def scenario():
            orch = build()
            await orch.enable_auto_scan()
            await orch.stop()
            auto = orch.auto_scan_enabled
            await orch.shutdown()
            return orch, auto

        orch, auto = asyncio.run(scenario())
        assert auto is False
        assert orch._narrator.spoken[-1] in RESPONSES[Phrase.AUTO_OFF]

    def test_stop_cancels_current_narration(self):
        async def scenario():
            orch = build()
            before = orch._narrator.cancels
            await orch.stop()
            return orch, before

        orch, before = asyncio.run(scenario())
        assert orch._narrator.cancels > before


# ---------------------------------------------------------------------------
# Object selection and free-form queries
# ---------------------------------------------------------------------------


class TestSelect:
    def test_describe_tracked_object(self):
        async def scenario():
            orch = build()
            orch._vision.result = DetectionResult(
                "Mug", "Ceramic", "A white mug.", safety_warning="Hot liquid"
            )
            orch.tracker.reconcile([Detection("coffee mug", _box(300, 300))])
            await orch.handle_transcript("describe the mug")
            return orch

        orch = asyncio.run(scenario())
        assert orch._narrator.spoken == ["Acquiring target: coffee mug.", "A white mug. Alert: Hot liquid."]
        assert orch.focused_id == 1
        assert orch.result.box == _box(300, 300)
        assert ("identify", "coffee mug") in orch._vision.calls
        assert orch._camera.captures == [(0.3, 0.3)]
        assert orch.state is AssistantState.IDLE

    def test_unknown_entity_ignored(self):
        async def scenario():
            orch = build()
            await orch.select_entity(42)
            return orch

        orch = asyncio.run(scenario())
        assert orch._narrator.spoken == []
        assert orch._vision.calls == []

    def test_identify_failure_clears_focus(self):
        async def scenario():
            orch = build()
            orch._vision.errors["identify"] = ServiceError("timeout")
            orch.tracker.reconcile([Detection("cup", _box(100, 100))])
            await orch.select_entity(1)
            return orch

        orch = asyncio.run(scenario())
        assert orch.focused_id is None
        assert orch._narrator.spoken[-1] in RESPONSES[Phrase.ERROR]


class TestQuery:
    def test_free_form_question(self):
        async def scenario():
            orch = build()
            await orch.handle_transcript("read the label")
            return orch

        orch = asyncio.run(scenario())
        spoken = orch._narrator.spoken
        assert spoken[0] in RESPONSES[Phrase.ACKNOWLEDGE]
        assert spoken[1] == "The label says oat milk."
        assert ("query", "read the label") in orch._vision.calls

    def test_unexpected_error_degrades_to_idle(self):
        """A failure outside the service error types still ends in a spoken error."""
        errors = []

        async def scenario():
            orch = build(on_error=errors.append)
            orch._vision.errors["query"] = RuntimeError("bad payload")
            await orch.handle_transcript("read the label")
            return orch

        orch = asyncio.run(scenario())
        assert orch.state is AssistantState.IDLE
        assert orch._narrator.spoken[-1] in RESPONSES[Phrase.ERROR]
        assert isinstance(errors[0], RuntimeError)

    def test_failing_error_callback_does_not_block_recovery(self):
        def on_error(error):
            raise ValueError("callback bug")

        async def scenario():
            orch = build(on_error=on_error)
            orch._vision.errors["query"] = ServiceError("model down")
            await orch.query("read the label")
            return orch

        orch = asyncio.run(scenario())
        assert orch.state is AssistantState.IDLE
        assert orch._narrator.spoken[-1] in RESPONSES[Phrase.ERROR]

    def test_noise_does_nothing(self):
        async def scenario():
            orch = build()
            await orch.handle_transcript("a")
            return orch

        orch = asyncio.run(scenario())
        assert orch._narrator.spoken == []
        assert orch.recognized_text == "a"


class TestHelp:
    def test_help_text(self):
        async def scenario():
            orch = build()
            await orch.handle_transcript("help")
            return orch

        orch = asyncio.run(scenario())
        assert orch._narrator.spoken == [responses.HELP_TEXT]


# ---------------------------------------------------------------------------
# Sensor faults
# ---------------------------------------------------------------------------


class TestFaults:
    def test_missing_camera_refuses_scans(self):
        async def scenario():
            orch = build(camera=None)
            await orch.scan()
            await orch.scan()
            return orch

        orch = asyncio.run(scenario())
        assert "camera" in orch.faults
        assert orch._vision.calls == []
        assert orch._narrator.spoken == ["Camera sensor offline.", "Camera sensor offline."]
        assert orch.snapshot().faults[0].kind == "camera"

    def test_camera_fault_on_start(self):
        async def scenario():
            orch = build(camera=FakeCamera(available=False))
            await orch.start()
            await orch.shutdown()
            return orch

        orch = asyncio.run(scenario())
        assert "camera" in orch.faults
        assert orch._narrator.spoken[0] == responses.GREETING

    def test_clear_fault(self):
        async def scenario():
            orch = build(camera=None)
            await orch.scan()
            orch.clear_fault("camera")
            return orch

        orch = asyncio.run(scenario())
        assert orch.faults == {}

    def test_auto_scan_suspended_while_faulted(self):
        async def scenario():
            orch = build(camera=None)
            await orch.scan()
            orch.auto_scan_enabled = True
            return orch, await orch.auto_scan_cycle()

        orch, delay = asyncio.run(scenario())
        assert delay == orch.config.idle_poll_delay
        assert orch._vision.calls == []


# ---------------------------------------------------------------------------
# Location
# ---------------------------------------------------------------------------


class TestLocation:
    def test_reports_place(self):
        async def scenario():
            orch = build(location=StaticLocationProvider(48.8584, 2.2945))
            await orch.handle_transcript("where am i")
            return orch

        orch = asyncio.run(scenario())
        assert orch._narrator.spoken[-1] == (
            "You are currently located in Paris, 7th arrondissement."
        )
        assert orch.location_name == "Paris, 7th arrondissement"
        assert orch.result.object_name == "CURRENT SECTOR"
        assert ("describe_location", 48.8584, 2.2945) in orch._vision.calls

    def test_timeout_says_gps_not_found(self):
        async def scenario():
            orch = build(location=HangingLocation(), location_timeout=0.05)
            await orch.report_location()
            return orch

        orch = asyncio.run(scenario())
        assert orch._narrator.spoken[-1] == responses.GPS_NOT_FOUND
        assert orch.state is AssistantState.IDLE
        assert "location" not in orch.faults

    def test_no_hardware_is_persistent_fault(self):
        async def scenario():
            orch = build(location=NullLocationProvider())
            await orch.report_location()
            await orch.report_location()
            return orch

        orch = asyncio.run(scenario())
        assert "location" in orch.faults
        assert orch._narrator.spoken[-1] == "GPS hardware not detected."
        assert orch._vision.calls == []

    def test_location_fault_does_not_block_scans(self):
        async def scenario():
            orch = build(location=NullLocationProvider())
            await orch.report_location()
            await orch.scan()
            return orch

        orch = asyncio.run(scenario())
        assert ("detect", "ZnJhbWU=") in orch._vision.calls

    def test_describe_failure(self):
        async def scenario():
            orch = build(location=StaticLocationProvider(1.0, 2.0))
            orch._vision.errors["describe_location"] = ServiceError("down")
            await orch.report_location()
            return orch

        orch = asyncio.run(scenario())
        assert orch._narrator.spoken[-1] == responses.LOCATION_UNAVAILABLE

    def test_malformed_geolocation_answer(self):
        def handler(request):
            return httpx.Response(200, json=[])

        async def scenario():
            provider = IPLocationProvider(
                config=LocationServiceConfig(url="http://geo.test/json"),
                client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            )
            orch = build(location=provider)
            await orch.report_location()
            return orch

        orch = asyncio.run(scenario())
        assert orch._narrator.spoken[-1] == responses.GPS_NOT_FOUND
        assert orch.state is AssistantState.IDLE
        assert orch._vision.calls == []

    def test_start_greets_then_reports(self):
        async def scenario():
            orch = build(
                location=StaticLocationProvider(1.0, 2.0),
                announce_location_on_start=True,
            )
            await orch.start()
            await orch.shutdown()
            return orch

        orch = asyncio.run(scenario())
        spoken = orch._narrator.spoken
        assert spoken[0] == responses.GREETING
        assert spoken[-1].startswith("You are currently located in")


# ---------------------------------------------------------------------------
# Auto-scan
# ---------------------------------------------------------------------------


class TestAutoScan:
    def test_toggle_when_already_on_is_noop(self):
        async def scenario():
            orch = build()
            await orch.enable_auto_scan()
            task = orch._auto_scan_task
            await orch.handle_transcript("auto scan")
            same_task = orch._auto_scan_task is task
            await orch.shutdown()
            return orch, same_task

        orch, same_task = asyncio.run(scenario())
        assert same_task
        assert [s for s in orch._narrator.spoken if s in RESPONSES[Phrase.AUTO_ON]] == [
            orch._narrator.spoken[0]
        ]

    def test_cycle_tracks_and_announces(self):
        clock = FakeClock()

        async def scenario():
            orch = build(clock=clock)
            orch.auto_scan_enabled = True
            orch._vision.detections = [Detection("Cup", _box(100, 100))]
            delay = await orch.auto_scan_cycle()
            await settle()
            return orch, delay

        orch, delay = asyncio.run(scenario())
        assert delay == orch.config.auto_scan_interval
        assert orch._narrator.spoken == ["Contacts: cup."]
        assert orch._camera.captures == [(0.2, 0.15)]

    def test_cycle_suspended_while_focused(self):
        async def scenario():
            orch = build()
            orch.auto_scan_enabled = True
            orch.focused_id = 3
            return orch, await orch.auto_scan_cycle()

        orch, delay = asyncio.run(scenario())
        assert delay == orch.config.idle_poll_delay
        assert orch._vision.calls == []

    def test_stale_cycle_dropped(self):
        async def scenario():
            orch = build()
            orch.auto_scan_enabled = True
            vision = orch._vision
            vision.gate = asyncio.Event()
            vision.detections = [Detection("cup", _box(100, 100))]

            task = asyncio.create_task(orch.auto_scan_cycle())
            await vision.started.wait()
            orch.sessions.next()
            vision.gate.set()
            return orch, await task

        orch, delay = asyncio.run(scenario())
        assert delay == orch.config.idle_poll_delay
        assert orch.tracker.entities == ()

    def test_failed_cycle_retries(self):
        async def scenario():
            orch = build(retry_delay=0.5)
            orch.auto_scan_enabled = True
            orch._vision.errors["detect"] = ServiceError("busy")
            return await orch.auto_scan_cycle()

        assert asyncio.run(scenario()) == 0.5

    def test_loop_keeps_tracking_in_background(self):
        async def scenario():
            orch = build()
            orch._vision.detections = [Detection("cup", _box(100, 100))]
            await orch.enable_auto_scan()
            await settle()
            detects = sum(1 for c in orch._vision.calls if c[0] == "detect")
            await orch.shutdown()
            return orch, detects

        orch, detects = asyncio.run(scenario())
        assert detects >= 2
        assert [e.id for e in orch.tracker.entities] == [1]

    def test_loop_survives_unexpected_error(self):
        async def scenario():
            orch = build()
            orch._vision.errors["detect"] = RuntimeError("decoder crashed")
            await orch.enable_auto_scan()
            await settle()
            detects = sum(1 for c in orch._vision.calls if c[0] == "detect")
            running = not orch._auto_scan_task.done()
            await orch.shutdown()
            return detects, running

        detects, running = asyncio.run(scenario())
        assert detects >= 2
        assert running

    def test_no_announcement_during_user_action(self):
        async def scenario():
            orch = build()
            orch.auto_scan_enabled = True
            orch.state = AssistantState.SPEAKING
            orch._vision.detections = [Detection("cup", _box(100, 100))]
            await orch.auto_scan_cycle()
            await settle()
            return orch

        orch = asyncio.run(scenario())
        assert orch._narrator.spoken == []
        assert [e.name for e in orch.tracker.entities] == ["cup"]


class TestAnnouncementThrottle:
    def test_schedule(self):
        clock = FakeClock()
        throttle = AnnouncementThrottle(change_throttle=1.0, announce_interval=8.0, clock=clock)

        assert throttle.should_announce(["cup"])
        assert not throttle.should_announce(["cup"])

        clock.t += 0.5
        assert not throttle.should_announce(["cup", "pen"])  # changed, too soon

        clock.t += 0.6
        assert throttle.should_announce(["cup", "pen"])

        clock.t += 5
        assert not throttle.should_announce(["cup", "pen"])

        clock.t += 3.5
        assert throttle.should_announce(["cup", "pen"])  # 8.5 s of silence

    def test_empty_never_announced(self):
        throttle = AnnouncementThrottle(clock=FakeClock())
        assert not throttle.should_announce([])

    def test_visible_names_sorted_unique_lowercase(self):
        entities = (
            TrackedEntity(1, "Pen", _box(0, 0)),
            TrackedEntity(2, "cup", _box(0, 0)),
            TrackedEntity(3, "pen", _box(0, 0)),
        )
        assert visible_names(entities) == ["cup", "pen"]


# ---------------------------------------------------------------------------
# Audio channel, listening and voice
# ---------------------------------------------------------------------------


class TestAudioChannel:
    def test_narration_rearms_listening(self):
        async def scenario():
            orch = build()
            orch.enable_listening()
            await orch.show_help()
            await settle(1)
            channel = orch.audio_channel
            await orch.shutdown()
            return orch, channel

        orch, channel = asyncio.run(scenario())
        assert channel is AudioChannel.LISTENING
        assert orch._recognizer.listens == 1

    def test_never_listens_while_speaking(self):
        async def scenario():
            orch = build()
            orch._narrator.hold = True
            orch.enable_listening()

            task = asyncio.create_task(orch.show_help())
            await orch._narrator.speaking.wait()
            during = (orch.audio_channel, orch.start_listening(), orch._recognizer.stops)
            orch._narrator.release()
            await task
            after = orch.audio_channel
            await orch.shutdown()
            return during, after

        (channel, started, stops), after = asyncio.run(scenario())
        assert channel is AudioChannel.SPEAKING
        assert started is False
        assert stops >= 1
        assert after is AudioChannel.LISTENING

    def test_transcript_from_recognizer_is_dispatched(self):
        async def scenario():
            orch = build()
            orch.enable_listening()
            orch.start_listening()
            orch._recognizer.queue.put_nowait("help")
            await settle()
            listens = orch._recognizer.listens
            await orch.shutdown()
            return orch, listens

        orch, listens = asyncio.run(scenario())
        assert orch.recognized_text == "help"
        assert orch._narrator.spoken == [responses.HELP_TEXT]
        assert listens == 2

    def test_run_ends_when_input_is_exhausted(self):
        async def scenario():
            orch = build()
            orch._recognizer.ended = True
            await asyncio.wait_for(orch.run(), timeout=2)
            return orch

        orch = asyncio.run(scenario())
        assert orch._narrator.spoken == [responses.GREETING]
        assert orch._camera.is_open is False

    def test_voice_snapshot_per_utterance(self):
        async def scenario():
            orch = build()
            await orch.show_help()
            orch.update_voice(rate=1.5, pitch=999)
            await orch.show_help()
            return orch

        orch = asyncio.run(scenario())
        voices = orch._narrator.voices
        assert voices[0] == VoiceSettings(rate=1.0, pitch=0)
        assert voices[1] == VoiceSettings(rate=1.5, pitch=400)
        assert voices[1].synthesis_pitch == pytest.approx(1.5)


class TestSnapshot:
    def test_snapshot_reflects_state(self):
        async def scenario():
            orch = build()
            orch._vision.detections = [Detection("cup", _box(100, 100))]
            await orch.handle_transcript("scan")
            return orch.snapshot()

        snapshot = asyncio.run(scenario())
        assert snapshot.state is AssistantState.IDLE
        assert [e.name for e in snapshot.entities] == ["cup"]
        assert snapshot.recognized_text == "scan"
        assert snapshot.auto_scan_enabled is False
        assert snapshot.agent_message is None
