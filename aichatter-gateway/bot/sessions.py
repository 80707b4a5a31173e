"""
bot/sessions.py -- Enabled chat surfaces and the recent-message ring buffer.
"""
from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Iterator

import bridge_config as cfg

logger = logging.getLogger("aichatter.sessions")

MESSAGE_TYPE_TELEGRAM = "telegram"
MESSAGE_TYPE_AI_RESPONSE = "ai_response"


class RoutingConflictError(Exception):
    """Another sender currently owns the session's reply target."""

    def __init__(self, chat_id: str, holder: str, retry_after: float) -> None:
        super().__init__(f"{chat_id} is routed to @{holder} for another {retry_after:.0f}s")
        self.chat_id = chat_id
        self.holder = holder
        self.retry_after = retry_after


@dataclass
class ChatSession:
    chat_id: str
    enabled: bool = True
    last_message_time: float = field(default_factory=time.time)
    external_chat_id: int | str | None = None
    external_username: str | None = None


class SessionRegistry:
    """Chat surfaces the user explicitly opted into, keyed by chat id."""

    def __init__(self, routing_lock_seconds: float = cfg.ROUTING_LOCK_SECONDS, clock=time.time) -> None:
        self._sessions: dict[str, ChatSession] = {}
        self.routing_lock_seconds = routing_lock_seconds
        self._clock = clock

    def enable(
        self,
        chat_id: str,
        external_chat_id: int | str | None = None,
        external_username: str | None = None,
    ) -> ChatSession:
        session = self._sessions.get(chat_id)
        if session is not None:
            session.enabled = True
            session.last_message_time = self._clock()
            return session
        session = ChatSession(
            chat_id=chat_id,
            last_message_time=self._clock(),
            external_chat_id=external_chat_id,
            external_username=external_username,
        )
        self._sessions[chat_id] = session
        logger.info("Enabled chat session %s", chat_id)
        return session

    def disable(self, chat_id: str) -> bool:
        if self._sessions.pop(chat_id, None) is None:
            return False
        logger.info("Disabled chat session %s", chat_id)
        return True

    def is_enabled(self, chat_id: str) -> bool:
        session = self._sessions.get(chat_id)
        return session is not None and session.enabled

    def get(self, chat_id: str) -> ChatSession | None:
        return self._sessions.get(chat_id)

    def all(self) -> list[ChatSession]:
        return list(self._sessions.values())

    def enabled(self) -> list[ChatSession]:
        return [s for s in self._sessions.values() if s.enabled]

    def __len__(self) -> int:
        return len(self._sessions)

    def routed_session(self, chat_id: str | None = None) -> ChatSession | None:
        """Session whose replies should go out: by id, else any routed one."""
        if chat_id is not None:
            session = self._sessions.get(chat_id)
            if session and session.enabled and session.external_chat_id is not None:
                return session
        for session in self._sessions.values():
            if session.enabled and session.external_chat_id is not None:
                return session
        return None

    def update_routing_target(
        self,
        chat_id: str,
        external_chat_id: int | str,
        external_username: str,
    ) -> ChatSession:
        session = self._sessions.get(chat_id)
        if session is None:
            raise KeyError(chat_id)
        now = self._clock()
        holder = session.external_username
        if holder and holder != external_username and self.routing_lock_seconds > 0:
            idle = now - session.last_message_time
            if idle < self.routing_lock_seconds:
                raise RoutingConflictError(chat_id, holder, self.routing_lock_seconds - idle)
            logger.info("Routing for %s handed from @%s to @%s", chat_id, holder, external_username)
        session.external_chat_id = external_chat_id
        session.external_username = external_username
        session.last_message_time = now
        return session


@dataclass
class MessageHistoryEntry:
    username: str
    message: str
    timestamp: float
    type: str = MESSAGE_TYPE_TELEGRAM


class MessageHistory:
    """FIFO ring buffer of the most recent messages in both directions."""

    def __init__(self, max_size: int = cfg.MAX_HISTORY_SIZE, clock=time.time) -> None:
        self.max_size = max_size
        self._entries: deque[MessageHistoryEntry] = deque(maxlen=max_size)
        self._clock = clock

    def add(self, username: str, message: str, type: str = MESSAGE_TYPE_TELEGRAM) -> MessageHistoryEntry:
        entry = MessageHistoryEntry(username=username, message=message, timestamp=self._clock(), type=type)
        self._entries.append(entry)
        return entry

    def entries(self) -> list[MessageHistoryEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def count(self, type: str) -> int:
        return sum(1 for e in self._entries if e.type == type)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[MessageHistoryEntry]:
        return iter(list(self._entries))
