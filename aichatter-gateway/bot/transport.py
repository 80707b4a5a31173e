"""
bot/transport.py -- Outbound Telegram messages and the AI-reply sender.
"""
from __future__ import annotations

import logging
from typing import Protocol

from telegram import Bot, LinkPreviewOptions
from telegram.constants import ParseMode
from telegram.error import BadRequest

from .helpers import truncate_reply
from .sessions import SessionRegistry

logger = logging.getLogger("aichatter.transport")


class Transport(Protocol):
    async def send(
        self,
        channel_id: int | str,
        text: str,
        *,
        markdown: bool = True,
        disable_link_preview: bool = True,
    ) -> None:
        ...


class TelegramTransport:
    """Send text through a python-telegram-bot ``Bot``."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send(
        self,
        channel_id: int | str,
        text: str,
        *,
        markdown: bool = True,
        disable_link_preview: bool = True,
    ) -> None:
        preview = LinkPreviewOptions(is_disabled=disable_link_preview)
        text = truncate_reply(text)
        try:
            await self._bot.send_message(
                chat_id=channel_id,
                text=text,
                parse_mode=ParseMode.MARKDOWN if markdown else None,
                link_preview_options=preview,
            )
        except BadRequest as exc:
            # Relayed AI text often carries unbalanced * or _.
            if not markdown or "parse" not in str(exc).lower():
                raise
            logger.debug("Markdown rejected for %s, resending as plain text", channel_id)
            await self._bot.send_message(chat_id=channel_id, text=text, link_preview_options=preview)


class AIResponseSender:
    """Deliver a finished AI reply to the session's external chat."""

    def __init__(self, transport: Transport, sessions: SessionRegistry) -> None:
        self._transport = transport
        self._sessions = sessions

    async def send(self, content: str, chat_id: str) -> bool:
        session = self._sessions.routed_session(chat_id)
        if session is None:
            logger.warning("No routed session for %s; AI response dropped", chat_id)
            return False
        text = truncate_reply(f"🤖 *AI Response for @{session.external_username}*\n\n{content}")
        try:
            await self._transport.send(session.external_chat_id, text)
        except Exception:
            logger.exception("Failed to send AI response to %s", session.external_chat_id)
            return False
        return True
