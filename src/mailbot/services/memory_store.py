import logging
import time
from typing import Callable, Dict

from ..models import ConversationState

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30 * 60
DEFAULT_MAX_HISTORY = 20


class MemoryStore:
    """Per-user conversation history with lazy idle expiry.

    States live in a plain in-process dict. Expired entries are swept on the
    next access rather than by a background timer.
    """

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_history: int = DEFAULT_MAX_HISTORY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._timeout = timeout_seconds
        self._max_history = max_history
        self._clock = clock
        self._states: Dict[str, ConversationState] = {}

    def sweep(self) -> int:
        """Drop every state idle for longer than the timeout. Returns how many were dropped."""
        now = self._clock()
        expired = [
            user_id
            for user_id, state in self._states.items()
            if now - state.last_activity > self._timeout
        ]
        for user_id in expired:
            del self._states[user_id]
        if expired:
            logger.debug("Expired %d idle conversation(s)", len(expired))
        return len(expired)

    def get_or_create(self, user_id: str) -> ConversationState:
        """Return the live state for user_id, creating an empty one if needed.

        Args:
            user_id: Chat platform user identifier.

        Returns:
            ConversationState: The user's state with last_activity refreshed.
        """
        self.sweep()
        state = self._states.get(user_id)
        if state is None:
            state = ConversationState(user_id=user_id)
            self._states[user_id] = state
            logger.debug("Created conversation state for %s", user_id)
        state.last_activity = self._clock()
        return state

    def get(self, user_id: str) -> ConversationState | None:
        """Read-only lookup of the live state for user_id; never creates or refreshes it.

        Request handling goes through get_or_create. This is for inspection
        (tests, diagnostics) where touching last_activity would skew expiry.
        """
        self.sweep()
        return self._states.get(user_id)

    def clear(self, user_id: str) -> None:
        if self._states.pop(user_id, None) is not None:
            logger.info("Cleared conversation memory for %s", user_id)

    def append_turn(self, state: ConversationState, role: str, content: str) -> None:
        """Append a turn and evict the oldest entries beyond the history bound."""
        state.history.append({"role": role, "content": content})
        overflow = len(state.history) - self._max_history
        if overflow > 0:
            del state.history[:overflow]
        state.last_activity = self._clock()

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._states

    def __len__(self) -> int:
        return len(self._states)
