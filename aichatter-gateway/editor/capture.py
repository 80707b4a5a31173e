"""
editor/capture.py -- Watch the active chat document and relay finished AI replies.

A reply is "finished" once the document has stopped growing for the
quiescence window. A single timer handle is kept; every restart bumps an
epoch counter so a callback scheduled before the restart does nothing.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

import bridge_config as cfg
from bot.helpers import spawn_background_task
from bot.sessions import MESSAGE_TYPE_AI_RESPONSE, MessageHistory, SessionRegistry

from .detector import ChatDetector
from .workspace import EditorDocument, Workspace

logger = logging.getLogger("aichatter.capture")

SendFn = Callable[[str, str], Awaitable[bool]]


class CaptureState(enum.Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    COMPLETE = "complete"


@dataclass
class PendingResponse:
    content: str
    timestamp: float
    chat_id: str
    is_complete: bool = False


class ResponseCapture:
    def __init__(
        self,
        workspace: Workspace,
        detector: ChatDetector,
        sessions: SessionRegistry,
        history: MessageHistory,
        send: SendFn,
        *,
        quiescence_seconds: float = cfg.RESPONSE_QUIESCENCE_SECONDS,
    ) -> None:
        self._workspace = workspace
        self._detector = detector
        self._sessions = sessions
        self._history = history
        self._send = send
        self.quiescence_seconds = quiescence_seconds

        self._pending: PendingResponse | None = None
        self._dispatching = False
        self._timer: asyncio.TimerHandle | None = None
        self._epoch = 0
        self._last_length: dict[str, int] = {}
        self._last_dispatched: dict[str, str] = {}

    def attach(self) -> None:
        self._workspace.on_change(self.on_document_changed)

    @property
    def state(self) -> CaptureState:
        if self._dispatching:
            return CaptureState.COMPLETE
        if self._pending is not None:
            return CaptureState.ACCUMULATING
        return CaptureState.IDLE

    @property
    def pending(self) -> PendingResponse | None:
        return self._pending

    def status(self) -> dict:
        if self._pending is None:
            return {"has_response": False, "is_complete": False, "content": ""}
        return {
            "has_response": True,
            "is_complete": self._pending.is_complete,
            "content": self._pending.content,
        }

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def on_document_changed(self, document: EditorDocument) -> None:
        active = self._workspace.active_document()
        if active is None or active.uri != document.uri:
            return
        self._observe(document)

    def refresh(self) -> bool:
        """Re-examine the active document; True when a reply is now pending."""
        active = self._workspace.active_document()
        return active is not None and self._observe(active)

    def _observe(self, document: EditorDocument) -> bool:
        if not self._detector.document_looks_like_chat(document):
            return False
        chat_id = document.chat_id
        if not self._sessions.is_enabled(chat_id):
            return False

        length = len(document.text)
        if length <= self._last_length.get(chat_id, 0):
            # Shrunk or unchanged; track the new baseline.
            self._last_length[chat_id] = length
            return False

        reply = self._detector.extract_latest_reply(document.text)
        if reply is None:
            return False
        self._last_length[chat_id] = length
        if reply == self._last_dispatched.get(chat_id):
            return False

        self._pending = PendingResponse(content=reply, timestamp=time.time(), chat_id=chat_id)
        self._restart_timer()
        logger.debug("Accumulating reply for %s (%d chars)", chat_id, len(reply))
        return True

    # ------------------------------------------------------------------
    # Debounce
    # ------------------------------------------------------------------

    def _restart_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._epoch += 1
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.quiescence_seconds, self._on_quiet, self._epoch)

    def _on_quiet(self, epoch: int) -> None:
        if epoch != self._epoch:
            return
        self._timer = None
        spawn_background_task(self._complete(), tag="capture-dispatch")

    async def _complete(self) -> bool:
        pending = self._pending
        if pending is None:
            return False
        self._pending = None
        pending.is_complete = True
        self._dispatching = True
        try:
            try:
                delivered = await self._send(pending.content, pending.chat_id)
            except Exception:
                logger.exception("AI response dispatch failed for %s", pending.chat_id)
                delivered = False
            if delivered:
                session = self._sessions.get(pending.chat_id) or self._sessions.routed_session()
                username = (session.external_username if session else None) or "assistant"
                self._history.add(username, pending.content, MESSAGE_TYPE_AI_RESPONSE)
                logger.info("AI response relayed for %s", pending.chat_id)
            else:
                logger.warning("AI response for %s was not delivered and is dropped", pending.chat_id)
        finally:
            # Delivered or not, this reply is never sent again.
            self._last_dispatched[pending.chat_id] = pending.content
            self._dispatching = False
            self._last_length[pending.chat_id] = 0
        return delivered

    async def send_current_response(self) -> bool:
        """Dispatch whatever is buffered now; the timer is left alone."""
        return await self._complete()

    def dispose(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._epoch += 1
        self._pending = None
