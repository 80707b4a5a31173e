"""
bot/commands.py -- Inbound message routing and the Telegram application.

Every text update lands in ``CommandRouter.route``. Authorised senders get
either a fixed command, a plugin command, or their text injected into the
enabled AI chat. Handlers never raise out of ``route``; failures become an
error reply.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from telegram import Update
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from plugins.base import UserIdentity

from . import formatters
from .helpers import COMMAND_PREFIX, ParsedCommand, parse_command, truncate_reply
from .sessions import MESSAGE_TYPE_TELEGRAM, RoutingConflictError
from .state import BridgeState

logger = logging.getLogger("aichatter.bot")

DENIED_TEXT = "You are not authorized to use this bot."
ACK_TEXT = "✅ Message received and sent to the AI chat! Waiting for response..."

MSG_HEADER = "**Message from Telegram:**"
MSGACTIVE_HEADER = "**Message to Active Element from Telegram:**"

InjectFn = Callable[[str, str], Awaitable[bool]]


@dataclass(frozen=True)
class InboundMessage:
    sender_username: str | None
    text: str
    channel_id: int | str


@dataclass(frozen=True)
class CommandRequest:
    message: InboundMessage
    command: ParsedCommand
    sender: UserIdentity

    @property
    def channel_id(self) -> int | str:
        return self.message.channel_id

    @property
    def username(self) -> str:
        return self.sender.username

    @property
    def args(self) -> str:
        return self.command.args


Handler = Callable[[CommandRequest], Awaitable[None]]


@dataclass(frozen=True)
class BuiltinCommand:
    name: str
    handler: Handler
    action: str
    usage: str | None = None        # set when an argument is required
    exact_args: str | None = None   # e.g. "/info cursor_ai"


class CommandRouter:
    def __init__(self, state: BridgeState, on_message: InjectFn | None = None) -> None:
        self._state = state
        self._on_message = on_message or state.integration.inject
        self._commands: dict[str, BuiltinCommand] = {
            c.name: c for c in self._builtin_commands()
        }

    def _builtin_commands(self) -> list[BuiltinCommand]:
        # Listed in matching priority; plugins are consulted after all of these.
        return [
            BuiltinCommand("terminal", self.cmd_terminal, "executing terminal command",
                           usage="❌ Please provide a command after /terminal"),
            BuiltinCommand("context_size", self.cmd_context_size, "getting context size"),
            BuiltinCommand("help", self.cmd_help, "getting help"),
            BuiltinCommand("usage", self.cmd_usage, "getting usage"),
            BuiltinCommand("status", self.cmd_status, "getting status"),
            BuiltinCommand("config", self.cmd_config, "getting configuration"),
            BuiltinCommand("users", self.cmd_users, "getting users"),
            BuiltinCommand("info", self.cmd_chat_info, "getting chat info",
                           usage="❌ Use: /info cursor_ai", exact_args="cursor_ai"),
            BuiltinCommand("history", self.cmd_history, "getting history"),
            BuiltinCommand("tabs", self.cmd_tabs, "getting tabs"),
            BuiltinCommand("msg", self.cmd_msg, "sending message",
                           usage="❌ Please provide a message after /msg"),
            BuiltinCommand("msgactive", self.cmd_msgactive, "sending message",
                           usage="❌ Please provide a message after /msgactive"),
            BuiltinCommand("version", self.cmd_version, "getting version information"),
            BuiltinCommand("cheat", self.cmd_cheat, "executing cheat command",
                           usage="❌ Invalid cheat format. Use: /cheat <search_text> <add_text>"),
            BuiltinCommand("plugins", self.cmd_plugins, "listing plugins"),
        ]

    @property
    def command_names(self) -> list[str]:
        return list(self._commands)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def route(self, text: str, sender_username: str | None, channel_id: int | str) -> None:
        message = InboundMessage(sender_username=sender_username, text=text, channel_id=channel_id)
        if not sender_username:
            logger.debug("Ignoring message without a username in %s", channel_id)
            return
        config = self._state.config
        if not config.is_authorized(sender_username):
            logger.warning("Rejected message from @%s", sender_username)
            await self.reply(channel_id, DENIED_TEXT)
            return

        self._state.last_activity = time.time()
        sender = UserIdentity(sender_username, is_authorized=True, is_admin=config.is_admin(sender_username))
        parsed = parse_command(text)
        if parsed is None and text.startswith(COMMAND_PREFIX):
            await self.reply(channel_id, f"❓ Unknown command: {text.strip()}\nUse /help to see available commands.")
            return
        if parsed is None:
            request = CommandRequest(message, ParsedCommand(name="", args=text), sender)
            await self._guarded("processing message", self._handle_plain, request)
            return

        request = CommandRequest(message, parsed, sender)
        command = self._commands.get(parsed.name)
        if command is not None:
            if command.usage and not parsed.args:
                await self.reply(channel_id, command.usage)
            elif command.exact_args is not None and parsed.args != command.exact_args:
                await self.reply(channel_id, command.usage)
            else:
                await self._guarded(command.action, command.handler, request)
        elif self._state.plugins.has_command(parsed.name):
            await self._guarded(f"running /{parsed.name}", self._run_plugin_command, request)
        else:
            await self.reply(channel_id, f"❓ Unknown command: /{parsed.name}\nUse /help to see available commands.")

    async def _guarded(self, action: str, handler: Handler, request: CommandRequest) -> None:
        try:
            await handler(request)
        except Exception as exc:
            logger.exception("Error %s for @%s", action, request.username)
            await self.reply(request.channel_id, f"❌ Error {action}: {exc}")

    async def reply(self, channel_id: int | str, text: str) -> None:
        transport = self._state.transport
        if transport is None:
            logger.warning("No transport; dropping reply to %s", channel_id)
            return
        try:
            await transport.send(channel_id, truncate_reply(text))
        except Exception:
            logger.exception("Failed to send reply to %s", channel_id)

    # ------------------------------------------------------------------
    # Plain messages and plugins
    # ------------------------------------------------------------------

    async def _handle_plain(self, request: CommandRequest) -> None:
        state = self._state
        text = request.args
        enabled = state.sessions.enabled()
        if enabled:
            try:
                state.sessions.update_routing_target(enabled[0].chat_id, request.channel_id, request.username)
            except RoutingConflictError as exc:
                logger.info("Routing conflict for @%s: %s", request.username, exc)
                await self.reply(
                    request.channel_id,
                    f"⏳ The AI chat is currently in use by @{exc.holder}. "
                    f"Try again in about {int(exc.retry_after) + 1}s.",
                )
                return
            state.history.add(request.username, text, MESSAGE_TYPE_TELEGRAM)
            await self._on_message(request.username, text)
        else:
            state.history.add(request.username, text, MESSAGE_TYPE_TELEGRAM)
            state.workspace.notify(f"[Telegram] @{request.username}: {text}")
        await self.reply(request.channel_id, ACK_TEXT)

    async def _run_plugin_command(self, request: CommandRequest) -> None:
        result = await self._state.plugins.execute(
            request.command.name, request.command.argv, request.sender, request.channel_id,
        )
        text = result.message
        if not result.success and result.error:
            text = f"{text}\n{result.error}"
        await self.reply(request.channel_id, text)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def cmd_help(self, request: CommandRequest) -> None:
        await self.reply(request.channel_id, formatters.format_help(self._state.plugins.command_names()))

    async def cmd_usage(self, request: CommandRequest) -> None:
        await self.reply(request.channel_id, formatters.format_usage())

    async def cmd_status(self, request: CommandRequest) -> None:
        await self.reply(request.channel_id, formatters.format_status(self._state))

    async def cmd_config(self, request: CommandRequest) -> None:
        await self.reply(request.channel_id, formatters.format_config(self._state.config))

    async def cmd_users(self, request: CommandRequest) -> None:
        await self.reply(request.channel_id, formatters.format_users(self._state, request.username))

    async def cmd_chat_info(self, request: CommandRequest) -> None:
        await self.reply(request.channel_id, formatters.format_chat_info(self._state))

    async def cmd_history(self, request: CommandRequest) -> None:
        history = self._state.history
        await self.reply(request.channel_id, formatters.format_history(history.entries(), history.max_size))

    async def cmd_tabs(self, request: CommandRequest) -> None:
        workspace = self._state.workspace
        await self.reply(
            request.channel_id,
            formatters.format_tabs(workspace.open_documents(), workspace.active_document(), self._state.detector),
        )

    async def cmd_version(self, request: CommandRequest) -> None:
        await self.reply(request.channel_id, formatters.format_version())

    async def cmd_plugins(self, request: CommandRequest) -> None:
        plugins = self._state.plugins
        await self.reply(request.channel_id, f"{plugins.status_text()}\n\n{plugins.available_commands_text()}")

    async def cmd_context_size(self, request: CommandRequest) -> None:
        info = self._state.context_size.refresh()
        await self.reply(request.channel_id, formatters.format_context_size(info))

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def cmd_terminal(self, request: CommandRequest) -> None:
        terminal = self._state.terminal
        if not terminal.enabled:
            await self.reply(request.channel_id, "❌ Terminal commands are disabled")
            return
        await self.reply(request.channel_id, f"🔄 Executing: `{request.args}`\n⏳ Please wait...")
        result = await terminal.execute_command(request.args, request.username)
        await self.reply(request.channel_id, formatters.format_terminal_result(result))

    async def _insert_into_active_chat(self, header: str, text: str) -> tuple[str, int] | str:
        """Insert a header block at the cursor; returns (uri, offset) or an error."""
        workspace = self._state.workspace
        doc = workspace.active_document()
        if doc is None:
            return "No active editor found"
        if not self._state.detector.document_looks_like_chat(doc):
            return "Active tab is not an AI chat"
        offset = doc.cursor_offset
        if not await workspace.insert(doc.uri, offset, f"\n\n{header}\n{text}\n\n"):
            return "Editor rejected the edit"
        return doc.uri, offset

    async def cmd_msg(self, request: CommandRequest) -> None:
        outcome = await self._insert_into_active_chat(MSG_HEADER, request.args)
        if isinstance(outcome, str):
            await self.reply(request.channel_id, f"❌ Failed to send message: {outcome}")
            return
        self._state.history.add(request.username, request.args, MESSAGE_TYPE_TELEGRAM)
        await self.reply(request.channel_id, f'✅ Message sent to the AI chat: "{request.args}"')

    async def cmd_msgactive(self, request: CommandRequest) -> None:
        outcome = await self._insert_into_active_chat(MSGACTIVE_HEADER, request.args)
        if isinstance(outcome, str):
            await self.reply(request.channel_id, f"❌ Failed to send message to active element: {outcome}")
            return
        uri, offset = outcome
        # Cursor lands at the end of the inserted message line.
        end = offset + len(f"\n\n{MSGACTIVE_HEADER}\n{request.args}")
        self._state.workspace.move_cursor(uri, end)
        self._state.workspace.notify(f"Message from @{request.username} inserted at the cursor")
        self._state.history.add(request.username, request.args, MESSAGE_TYPE_TELEGRAM)
        await self.reply(request.channel_id, f'✅ Message sent to active element: "{request.args}"')

    async def cmd_cheat(self, request: CommandRequest) -> None:
        search, sep, add = request.args.partition(" ")
        if not sep or not search or not add:
            await self.reply(request.channel_id, self._commands["cheat"].usage)
            return
        counts = await self.apply_cheat(search, add)
        if not counts:
            await self.reply(
                request.channel_id,
                f'❌ No occurrences of "{search}" found in any open documents',
            )
            return
        self._state.history.add(request.username, f"/cheat {search} {add}", MESSAGE_TYPE_TELEGRAM)
        await self.reply(request.channel_id, formatters.format_cheat_result(search, add, counts))

    async def apply_cheat(self, search: str, add: str) -> dict[str, int]:
        """Append ``add`` after every ``search`` in each open document once."""
        workspace = self._state.workspace
        documents = workspace.open_documents()
        active = workspace.active_document()
        if active is not None and all(doc.uri != active.uri for doc in documents):
            documents.append(active)

        counts: dict[str, int] = {}
        for doc in documents:
            found = doc.text.count(search)
            if not found:
                continue
            original = doc.text
            if await workspace.replace(doc.uri, 0, len(original), original.replace(search, search + add)):
                counts[doc.file_name] = counts.get(doc.file_name, 0) + found
            else:
                logger.warning("Cheat edit rejected for %s", doc.uri)
        return counts


# ---------------------------------------------------------------------------
# Telegram application
# ---------------------------------------------------------------------------

async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    if message is None or not message.text:
        return
    user = update.effective_user
    router: CommandRouter = context.application.bot_data["router"]
    await router.route(message.text, user.username if user else None, message.chat_id)


async def _on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("Unhandled error while processing an update", exc_info=context.error)


def build_app(router: CommandRouter, token: str) -> Application:
    """Create the Telegram application feeding every text update to ``router``."""
    if not token:
        raise RuntimeError(
            "No Telegram bot token configured. "
            "Set TELEGRAM_BOT_TOKEN or add telegram.bot_token to the configuration file."
        )
    app = (
        Application.builder()
        .token(token)
        .concurrent_updates(True)
        .build()
    )
    app.bot_data["router"] = router
    app.add_handler(MessageHandler(filters.TEXT, handle_text))
    app.add_error_handler(_on_error)
    return app
