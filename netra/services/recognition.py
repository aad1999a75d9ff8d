"""
Speech recognition boundary.

The assistant consumes one finalized transcript per utterance and restarts
the recognizer after each one. Interim results are never used.
"""

import asyncio
import logging
import sys
import threading
from abc import ABC, abstractmethod
from typing import Optional, TextIO

logger = logging.getLogger(__name__)


class Recognizer(ABC):
    """Abstract recognizer."""

    @abstractmethod
    async def listen(self) -> Optional[str]:
        """Wait for one utterance; None when nothing was recognized."""

    def stop(self) -> None:
        """Stop an in-progress listen (narration is about to start)."""

    @property
    def exhausted(self) -> bool:
        """True when no further input can arrive."""
        return False

    async def close(self) -> None:
        """Release resources."""


class ConsoleRecognizer(Recognizer):
    """
    Reads typed utterances from a text stream, one per line.

    A single daemon thread reads the stream; lines that arrive while the
    assistant is not listening (e.g. while it is speaking) are dropped.

    Usage:
        recognizer = ConsoleRecognizer()
        text = await recognizer.listen()
    """

    def __init__(self, stream: Optional[TextIO] = None, timeout: Optional[float] = None):
        """
        Args:
            stream: Input stream (default: stdin)
            timeout: Seconds before ``listen()`` gives up and returns None
        """
        self._stream = stream or sys.stdin
        self._timeout = timeout
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: Optional[asyncio.Future] = None
        self._reader: Optional[threading.Thread] = None
        self._eof = False

    def _ensure_reader(self) -> None:
        if self._reader is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._reader = threading.Thread(target=self._read_loop, daemon=True, name="ConsoleRecognizer")
        self._reader.start()

    def _read_loop(self) -> None:
        for line in self._stream:
            self._loop.call_soon_threadsafe(self._deliver, line.rstrip("\n"))
        self._loop.call_soon_threadsafe(self._deliver, None)

    def _deliver(self, line: Optional[str]) -> None:
        if line is None:
            self._eof = True
        pending = self._pending
        if pending is None or pending.done():
            if line:
                logger.debug("Recognizer: dropped '%s' (not listening)", line)
            return
        pending.set_result(line.strip() if line else None)

    @property
    def exhausted(self) -> bool:
        """True once the input stream has ended."""
        return self._eof

    async def listen(self) -> Optional[str]:
        if self._eof:
            return None
        self._ensure_reader()
        self._pending = self._loop.create_future()
        try:
            if self._timeout is None:
                return await self._pending
            return await asyncio.wait_for(self._pending, self._timeout)
        except asyncio.TimeoutError:
            return None
        finally:
            self._pending = None

    def stop(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
