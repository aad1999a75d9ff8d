"""
Session tokens for discarding stale asynchronous results.

Every action that awaits something (a remote call, narration, a position
fix) opens a session with ``next()`` and carries the returned token through
its continuations. Before a continuation mutates shared state it checks
``is_current(token)``; a newer session means the result is stale and is
dropped. In-flight calls are never aborted, their results are just ignored.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class SessionToken:
    """Opaque generation stamp for one unit of in-flight work."""

    value: int

    def __str__(self) -> str:
        return f"session-{self.value}"


class SessionController:
    """
    Owner of the current session token.

    ``next()`` is the only way the current token changes, so exactly one
    token is current at any time: the most recently issued one.

    Usage:
        sessions = SessionController()
        token = sessions.next()
        result = await service.call()
        if not sessions.is_current(token):
            return  # superseded
    """

    def __init__(self, start: int = 0):
        self._current = SessionToken(start)

    def current(self) -> SessionToken:
        """Return the current token without invalidating anything."""
        return self._current

    def next(self) -> SessionToken:
        """Invalidate all in-flight work and return the new current token."""
        self._current = SessionToken(self._current.value + 1)
        logger.debug("Opened %s", self._current)
        return self._current

    def is_current(self, token: SessionToken) -> bool:
        """True if no newer session has been opened since ``token``."""
        return token == self._current
