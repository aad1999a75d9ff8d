"""
Narration sinks: speak a line of text and resolve when the audio is done.

A narrator must support cancelling the utterance in progress; a cancelled
``speak()`` returns normally so awaiting continuations can run their own
staleness checks.
"""

import asyncio
import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx
import numpy as np
from rich.console import Console

from netra.config import TTSServiceConfig, get_config
from netra.errors import NarrationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoiceSettings:
    """Voice snapshot taken when an utterance starts."""

    rate: float = 1.0
    pitch: int = 0  # -400..400, detune style

    @property
    def synthesis_pitch(self) -> float:
        """Pitch on the 0.5..1.5 scale speech engines expect."""
        return 1 + (self.pitch / 800)


def shift_pitch(audio: np.ndarray, factor: float) -> np.ndarray:
    """Raise (factor > 1) or lower the pitch by resampling; duration scales by 1/factor."""
    if factor == 1.0 or len(audio) == 0:
        return audio

    from scipy import signal

    target_length = max(1, int(len(audio) / factor))
    return signal.resample(audio.astype(np.float32), target_length)


class Narrator(ABC):
    """Abstract narration sink."""

    @abstractmethod
    async def speak(self, text: str, voice: VoiceSettings) -> None:
        """Speak ``text``; returns when playback finishes or is cancelled."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop the utterance in progress, if any."""

    async def close(self) -> None:
        """Release resources."""


class ConsoleNarrator(Narrator):
    """
    Prints narration to the terminal and holds for the time it would take
    to say it. Useful without audio hardware and as a subtitle track.
    """

    WORDS_PER_SECOND = 2.5

    def __init__(self, console: Optional[Console] = None, simulate_duration: bool = True):
        self.console = console or Console()
        self.simulate_duration = simulate_duration
        self._cancel_event: Optional[asyncio.Event] = None

    def estimate_duration(self, text: str, voice: VoiceSettings) -> float:
        words = max(1, len(text.split()))
        return words / (self.WORDS_PER_SECOND * max(voice.rate, 0.1))

    async def speak(self, text: str, voice: VoiceSettings) -> None:
        self.console.print(f"[bold cyan]NETRA:[/bold cyan] {text}")
        if not self.simulate_duration:
            return
        cancel_event = asyncio.Event()
        self._cancel_event = cancel_event
        try:
            await asyncio.wait_for(cancel_event.wait(), self.estimate_duration(text, voice))
        except asyncio.TimeoutError:
            pass
        finally:
            if self._cancel_event is cancel_event:
                self._cancel_event = None

    def cancel(self) -> None:
        if self._cancel_event is not None:
            self._cancel_event.set()


class RemoteTTSNarrator(Narrator):
    """
    Narrator backed by a running speech server.

    Posts the text to ``/tts/synthesize``, decodes the returned WAV and plays
    it on the default output device.

    Requires: sounddevice, scipy
        pip install netra-assistant[audio]
    """

    def __init__(self, config: Optional[TTSServiceConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or get_config().tts
        self._client = client or httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
        )
        self._playing = False
        self._generation = 0

    async def _synthesize(self, text: str, voice: VoiceSettings):
        import scipy.io.wavfile as wavfile

        try:
            resp = await self._client.post(
                "/tts/synthesize",
                json={
                    "text": text,
                    "voice": self.config.voice,
                    "language": self.config.language,
                    "speed": voice.rate,
                },
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise NarrationError(f"TTS request failed: {e}") from e

        try:
            sample_rate, audio = wavfile.read(io.BytesIO(resp.content))
        except (ValueError, EOFError) as e:
            raise NarrationError(f"TTS answer is not a WAV file: {e}") from e
        if audio.dtype == np.int16:
            audio = audio.astype(np.float32) / 32768.0
        return shift_pitch(audio, voice.synthesis_pitch), sample_rate

    async def speak(self, text: str, voice: VoiceSettings) -> None:
        try:
            import sounddevice as sd
        except ImportError as e:
            raise ImportError(
                "sounddevice not installed. Install with: pip install sounddevice"
            ) from e

        generation = self._generation
        audio, sample_rate = await self._synthesize(text, voice)
        if generation != self._generation:
            return  # cancelled while synthesizing
        self._playing = True
        try:
            sd.play(audio, sample_rate)
            # sd.wait() returns early once cancel() calls sd.stop()
            await asyncio.to_thread(sd.wait)
        except sd.PortAudioError as e:
            raise NarrationError(f"Playback failed: {e}") from e
        finally:
            self._playing = False

    def cancel(self) -> None:
        self._generation += 1
        if not self._playing:
            return
        import sounddevice as sd

        sd.stop()

    async def close(self) -> None:
        await self._client.aclose()
