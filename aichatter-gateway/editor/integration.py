"""
editor/integration.py -- The editor side of the bridge.

Tracks which chat document is current, lets the user opt chats in and out,
and injects inbound Telegram messages into the enabled chat.
"""
from __future__ import annotations

import logging

from bot.sessions import SessionRegistry

from .detector import ChatDetector
from .workspace import EditorDocument, Workspace

logger = logging.getLogger("aichatter.integration")


def format_injected(username: str, message: str) -> str:
    return f"[Telegram] @{username}: {message}"


class ChatIntegration:
    def __init__(self, workspace: Workspace, detector: ChatDetector, sessions: SessionRegistry) -> None:
        self._workspace = workspace
        self._detector = detector
        self._sessions = sessions

    def current_chat(self) -> EditorDocument | None:
        doc = self._workspace.active_document()
        if doc is not None and self._detector.document_looks_like_chat(doc):
            return doc
        return None

    def enable_current(self) -> bool:
        doc = self.current_chat()
        if doc is None:
            return False
        self._sessions.enable(doc.chat_id)
        return True

    def disable_current(self) -> bool:
        doc = self.current_chat()
        return doc is not None and self._sessions.disable(doc.chat_id)

    def toggle_current(self) -> bool:
        """Flip the current chat; returns the new enabled state."""
        doc = self.current_chat()
        if doc is None:
            self._workspace.notify("No chat detected. Open a chat to enable AI-Chatter.")
            return False
        if self.disable_current():
            self._workspace.notify("AI-Chatter disabled for this chat")
            return False
        self.enable_current()
        self._workspace.notify("AI-Chatter enabled for this chat")
        return True

    def enable_all_detected(self) -> int:
        count = 0
        for doc in self._workspace.open_documents():
            detection = self._detector.document_looks_like_chat(doc)
            if detection and not self._sessions.is_enabled(doc.chat_id):
                self._sessions.enable(doc.chat_id)
                logger.info("Auto-enabled %s (%s)", doc.base_name, detection.describe())
                count += 1
        return count

    def status(self) -> dict:
        doc = self.current_chat()
        return {
            "chat_id": doc.chat_id if doc else None,
            "has_chat": doc is not None,
            "is_enabled": bool(doc) and self._sessions.is_enabled(doc.chat_id),
        }

    def _target_document(self) -> EditorDocument | None:
        for session in self._sessions.enabled():
            for doc in self._workspace.open_documents():
                if doc.chat_id == session.chat_id:
                    return doc
        return self.current_chat()

    async def inject(self, username: str, message: str) -> bool:
        """Append the message to the enabled chat, else hand it over via the clipboard."""
        formatted = format_injected(username, message)
        doc = self._target_document()
        if doc is not None:
            prefix = "\n" if doc.text and not doc.text.endswith("\n") else ""
            if await self._workspace.insert(doc.uri, len(doc.text), prefix + formatted):
                logger.info("Injected message from @%s into %s", username, doc.base_name)
                return True
            logger.warning("Editor refused injection into %s; using clipboard", doc.uri)
        await self._workspace.write_clipboard(formatted)
        self._workspace.notify(
            f'Telegram message copied to clipboard: "{formatted}"\nPaste it into your chat manually.'
        )
        return True
