"""Session memory for recent conversation turns."""

import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from momory.memory.schemas import ConversationTurn
from momory.telemetry.logger import get_logger

logger = get_logger(__name__)


@dataclass
class SessionConfig:
    """Configuration for session memory.

    Attributes:
        max_turns: Maximum turns kept in memory
        session_id: Unique session identifier
    """

    max_turns: int = 50
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))


class SessionStore:
    """In-memory rolling window of conversation turns.

    Example:
        session = SessionStore()
        session.add_exchange("What's my deadline?", "March 15.")
        recent = session.get_recent(10)
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config or SessionConfig()
        self.clock = clock
        self._turns: deque[ConversationTurn] = deque(maxlen=self.config.max_turns)

        logger.debug(
            "SessionStore initialized",
            session_id=self.config.session_id,
            max_turns=self.config.max_turns,
        )

    @property
    def session_id(self) -> str:
        return self.config.session_id

    @property
    def turn_count(self) -> int:
        return len(self._turns)

    def append_turn(self, turn: ConversationTurn) -> None:
        """Add a turn, evicting the oldest one when full."""
        self._turns.append(turn)

    def add_exchange(self, user_message: str, assistant_response: str) -> None:
        """Add a user turn followed by the assistant's reply."""
        now = self.clock()
        self.append_turn(ConversationTurn(role="user", content=user_message, timestamp=now))
        self.append_turn(ConversationTurn(role="assistant", content=assistant_response, timestamp=now))

        logger.debug("Exchange recorded", session_id=self.session_id, turn_count=self.turn_count)

    def get_recent(self, n: int = 10) -> list[ConversationTurn]:
        """Get the most recent turns.

        Args:
            n: Number of turns to retrieve

        Returns:
            List of recent turns (oldest first)
        """
        if n <= 0:
            return []
        turns = list(self._turns)
        return turns[-n:]

    def get_all(self) -> list[ConversationTurn]:
        return list(self._turns)

    def clear(self) -> None:
        """Clear all turns from the session."""
        self._turns.clear()
        logger.debug("Session cleared", session_id=self.session_id)
