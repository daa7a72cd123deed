import logging
import time
from typing import Callable, Dict, Tuple

from ..models import ThreadSession
from .memory_store import MemoryStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30 * 60


class SessionRegistry:
    """Thread-scoped sessions keyed by (channel, thread).

    Ending a session, explicitly or by idle expiry, also clears the owning
    user's conversation memory. Clearing memory never ends a session.
    """

    def __init__(
        self,
        memory: MemoryStore,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._memory = memory
        self._timeout = timeout_seconds
        self._clock = clock
        self._sessions: Dict[Tuple[str, str], ThreadSession] = {}

    def sweep(self) -> int:
        """End every session idle for longer than the timeout."""
        now = self._clock()
        expired = [
            key
            for key, session in self._sessions.items()
            if now - session.last_activity > self._timeout
        ]
        for key in expired:
            session = self._sessions.pop(key)
            self._memory.clear(session.user_id)
            logger.info(
                "Session expired channel=%s thread=%s user=%s",
                session.channel,
                session.thread,
                session.user_id,
            )
        return len(expired)

    def is_active(self, channel: str, thread: str) -> bool:
        self.sweep()
        return (channel, thread) in self._sessions

    def get(self, channel: str, thread: str) -> ThreadSession | None:
        """Return the session for the key and refresh its activity, or None."""
        self.sweep()
        session = self._sessions.get((channel, thread))
        if session is not None:
            session.last_activity = self._clock()
        return session

    def create(self, user_id: str, channel: str, thread: str) -> ThreadSession:
        """Start a session, replacing any existing one for the same key.

        Args:
            user_id: The only user allowed to talk in the thread.
            channel: Chat channel id.
            thread: Thread identifier (the root message timestamp on Slack).

        Returns:
            ThreadSession: The newly registered session.
        """
        key = (channel, thread)
        if key in self._sessions:
            logger.warning("Replacing existing session channel=%s thread=%s", channel, thread)
        session = ThreadSession(
            user_id=user_id,
            channel=channel,
            thread=thread,
            last_activity=self._clock(),
        )
        self._sessions[key] = session
        logger.info("Session started channel=%s thread=%s user=%s", channel, thread, user_id)
        return session

    def end(self, channel: str, thread: str) -> bool:
        """End the session for the key and clear its user's memory. Returns True if it existed."""
        session = self._sessions.pop((channel, thread), None)
        if session is None:
            return False
        self._memory.clear(session.user_id)
        logger.info("Session ended channel=%s thread=%s user=%s", channel, thread, session.user_id)
        return True

    def __len__(self) -> int:
        return len(self._sessions)
