"""
bot/formatters.py -- Reply texts for the fixed commands.

Everything here returns Telegram Markdown (v1: *bold*, `code`) and has no
side effects, so replies can be asserted on directly in tests.
"""
from __future__ import annotations

import datetime as dt
import time
from typing import TYPE_CHECKING, Iterable

import bridge_config as cfg
from editor.context_size import ContextSizeInfo
from editor.detector import ChatDetector
from editor.workspace import EditorDocument
from executor.terminal import TerminalCommandResult

from .helpers import format_duration, shorten, time_ago
from .sessions import MESSAGE_TYPE_AI_RESPONSE, MESSAGE_TYPE_TELEGRAM, MessageHistoryEntry

if TYPE_CHECKING:
    from .state import BridgeState

BAR_SEGMENTS = 20

RECENT_FEATURES: tuple[str, ...] = (
    "v0.2.15: Cheat command edits each open document once",
    "v0.2.14: Plugin commands (/calc, /convert, /weather, /forecast)",
    "v0.2.13: Version info and bulk text edits (/cheat)",
    "v0.2.12: Active element messaging (/msgactive)",
    "v0.2.11: Direct messaging (/msg)",
    "v0.2.9: Tabs command and extended help",
)


def _yes_no(flag: bool, yes: str = "✅ Yes", no: str = "❌ No") -> str:
    return yes if flag else no


# ---------------------------------------------------------------------------
# Static texts
# ---------------------------------------------------------------------------

def format_help(plugin_commands: Iterable[str] = ()) -> str:
    lines = [
        "🤖 *AI-Chatter Help*",
        "",
        "*💬 Chat*",
        "Send any text without a leading / and it goes straight into the enabled AI chat. "
        "The reply comes back here once the assistant stops typing.",
        "",
        "*🔧 Commands*",
        "`/help` - This message",
        "`/usage` - Detailed examples",
        "`/status` - Bridge status",
        "`/config` - Configuration overview",
        "`/users` - Authorized users",
        "`/info cursor_ai` - Chat session diagnostics",
        "`/history` - Last 10 messages",
        "`/tabs` - Open editor tabs",
        "`/context_size` - AI context usage",
        "`/terminal <command>` - Run a whitelisted shell command",
        "`/msg <text>` - Write into the active chat tab",
        "`/msgactive <text>` - Write at the cursor of the active chat tab",
        "`/cheat <search> <add>` - Append text after every match in open documents",
        "`/plugins` - Plugin commands",
        "`/version` - Version information",
    ]
    plugin_commands = list(plugin_commands)
    if plugin_commands:
        lines += ["", "*🔌 Plugin Commands*"]
        lines += [f"`{name}`" for name in plugin_commands]
    return "\n".join(lines)


def format_usage() -> str:
    return "\n".join([
        "📚 *AI-Chatter Usage Guide*",
        "",
        "*🖥️ Terminal*",
        "`/terminal git status` → repository state",
        "`/terminal ls -la` → directory listing",
        "Only whitelisted commands run; pipes, redirects and `sudo` are rejected. "
        f"Each command is killed after {cfg.TERMINAL_TIMEOUT_SECONDS}s.",
        "",
        "*📊 Context*",
        "`/context_size` → usage bar with tips when the context is filling up",
        "",
        "*✍️ Editing*",
        "`/msg Please review this function` → block inserted in the active chat tab",
        "`/msgactive Fix the failing test` → inserted at the cursor, cursor moves past it",
        "`/cheat TODO (done)` → every `TODO` becomes `TODO (done)` in open documents",
        "",
        "*💬 Chat loop*",
        "1. Enable AI-Chatter for a chat in the editor",
        "2. Send a plain message here",
        "3. It is injected into the chat and the AI answers",
        "4. The finished answer is relayed back to this conversation",
        "",
        "*🔌 Plugins*",
        "`/calc sqrt(16) + 2*3`, `/convert 32 F to C`, `/weather London`, `/forecast Paris 3`",
        "",
        "Use `/help` for the command reference.",
    ])


def format_version() -> str:
    lines = [
        "🤖 *AI Chatter Version Information*",
        "",
        f"📱 Current version: v{cfg.VERSION}",
        "🔧 Platform: Python Telegram bridge",
        "",
        "*📋 Recent Features*",
    ]
    lines += [f"• {feature}" for feature in RECENT_FEATURES]
    lines += ["", "Use /help for all available commands", "Use /usage for detailed examples"]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# State reports
# ---------------------------------------------------------------------------

def _memory_usage() -> str:
    try:
        import resource
    except ImportError:  # not available on Windows
        return "Not available"
    rss_kb = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    return f"{rss_kb / 1024:.1f} MB"


def format_status(state: BridgeState, now: float | None = None) -> str:
    now = now if now is not None else time.time()
    connected = state.transport is not None
    lines = [
        "🔍 *AI-Chatter Status Report*",
        "",
        "*🤖 Bot*",
        f"• Running: {_yes_no(state.is_running)}",
        f"• Connected: {_yes_no(connected)}",
        f"• Bot username: @{state.bot_username}" if state.bot_username else "• Bot username: Not available",
        f"• Version: v{cfg.VERSION}",
        "",
        "*💬 Chat Sessions*",
        f"• Total sessions: {len(state.sessions)}",
        f"• AI-Chatter enabled: {len(state.sessions.enabled())}",
        f"• Terminal commands: {_yes_no(state.terminal.enabled, '✅ Enabled', '❌ Disabled')}",
        f"• Context monitoring: {_yes_no(state.context_size.is_available(), '✅ Available', '❌ Not available')}",
        "",
        "*💚 System Health*",
        f"• Memory usage: {_memory_usage()}",
        f"• Uptime: {format_duration(now - state.started_at)}",
        f"• Last activity: {time_ago(state.last_activity, now) if state.last_activity else 'No activity yet'}",
        "",
    ]
    if state.is_running and connected:
        lines.append("🟢 *All systems operational*")
    elif connected:
        lines.append("🟡 *Bot connected but not running*")
    else:
        lines.append("🔴 *Bot not connected*")
    return "\n".join(lines)


def format_config(manager: cfg.ConfigurationManager) -> str:
    config = manager.config
    errors = manager.validate_configuration()
    lines = [
        "⚙️ *AI-Chatter Configuration*",
        "",
        "*🔑 Bot Token*",
        f"• Configured: {_yes_no(bool(config.bot_token))}",
        f"• Length: {len(config.bot_token)} characters",
        f"• Format valid: {_yes_no(cfg.token_looks_valid(config.bot_token))}",
        "",
        "*👥 Users*",
        f"• Authorized: {len(config.authorized_users)}",
        f"• Maximum: {config.max_users}",
        f"• Limit reached: {_yes_no(manager.user_limit_reached())}",
    ]
    if config.authorized_users:
        lines += [f"  - @{u}" for u in config.authorized_users]
    lines += ["", "*📁 Source*", f"• File: `{manager.path}`", ""]
    if errors:
        lines.append("❌ *Problems*")
        lines += [f"• {e}" for e in errors]
    else:
        lines.append("✅ *Configuration is valid*")
    return "\n".join(lines)


def format_users(state: BridgeState, current_user: str) -> str:
    config = state.config.config
    users = config.authorized_users
    routed = {s.external_username for s in state.sessions.all() if s.external_username}
    lines = [
        "👥 *Authorized Users*",
        "",
        f"• Total: {len(users)}/{config.max_users}",
        f"• Available slots: {max(0, config.max_users - len(users))}",
        f"• Active sessions: {len(state.sessions.enabled())}",
        "",
    ]
    if not users:
        lines.append("No authorized users configured.")
    for index, username in enumerate(users, start=1):
        tags = []
        if username == current_user:
            tags.append("you")
        if username in config.admin_users:
            tags.append("admin")
        if username in routed:
            tags.append("receiving replies")
        suffix = f" ({', '.join(tags)})" if tags else ""
        lines.append(f"{index}. @{username}{suffix}")
    return "\n".join(lines)


def format_chat_info(state: BridgeState, now: float | None = None) -> str:
    """Diagnostics for ``/info cursor_ai``."""
    now = now if now is not None else time.time()
    current = state.integration.status()
    active = state.workspace.active_document()
    lines = ["🤖 *AI Chat Integration*", "", "*🎯 Active Tab*"]
    if active is None:
        lines.append("• No active editor")
    else:
        detection = state.detector.document_looks_like_chat(active)
        lines += [
            f"• Name: `{active.base_name}`",
            f"• Chat detected: {_yes_no(detection.matched)} ({detection.describe()})",
            f"• AI-Chatter enabled: {_yes_no(current['is_enabled'])}",
        ]
    lines += ["", "*💬 Sessions*"]
    sessions = state.sessions.all()
    if not sessions:
        lines.append("• None enabled. Enable AI-Chatter for a chat in the editor.")
    for session in sessions:
        target = f"@{session.external_username}" if session.external_username else "not routed yet"
        lines.append(f"• `{session.chat_id}` → {target}, last activity {time_ago(session.last_message_time, now)}")
    lines += [
        "",
        "*⏱️ Capture*",
        f"• Quiescence window: {cfg.RESPONSE_QUIESCENCE_SECONDS:g}s",
        f"• Routing lock: {state.sessions.routing_lock_seconds:g}s",
    ]
    return "\n".join(lines)


def format_history(entries: list[MessageHistoryEntry], max_size: int, now: float | None = None) -> str:
    if not entries:
        return (
            "📭 *No messages in history yet*\n\n"
            "Send a message or wait for an AI response to start the history."
        )
    now = now if now is not None else time.time()
    telegram = sum(1 for e in entries if e.type == MESSAGE_TYPE_TELEGRAM)
    ai = sum(1 for e in entries if e.type == MESSAGE_TYPE_AI_RESPONSE)
    lines = [
        f"📚 *Message History (Last {max_size} Messages)*",
        "",
        f"• Total: {len(entries)}",
        f"• Telegram messages: {telegram}",
        f"• AI responses: {ai}",
        "",
    ]
    total = len(entries)
    for offset, entry in enumerate(reversed(entries)):
        icon = "📱 Telegram" if entry.type == MESSAGE_TYPE_TELEGRAM else "🤖 AI Response"
        lines.append(f"*{total - offset}.* {icon} from @{entry.username} ({time_ago(entry.timestamp, now)})")
        lines.append(shorten(entry.message, 100))
        lines.append("")
    if total >= max_size:
        lines.append("💡 History is full; older messages are dropped first.")
    else:
        lines.append(f"💡 {max_size - total} more messages fit before the oldest is dropped.")
    return "\n".join(lines)


def format_tabs(
    documents: list[EditorDocument],
    active: EditorDocument | None,
    detector: ChatDetector,
) -> str:
    if not documents:
        return "📂 *No open tabs*"
    message_tabs, code_files, other = [], [], []
    for doc in documents:
        if detector.document_looks_like_chat(doc):
            message_tabs.append(doc)
        elif detector.is_code_file(doc.file_name):
            code_files.append(doc)
        else:
            other.append(doc)

    def _name(doc: EditorDocument) -> str:
        mark = "🎯 " if active is not None and doc.uri == active.uri else ""
        return f"{mark}`{doc.base_name}`"

    lines = [
        "📂 *Open Tabs*",
        "",
        f"• Total: {len(documents)}",
        f"• Message tabs: {len(message_tabs)}",
        f"• Code files: {len(code_files)}",
        f"• Other: {len(other)}",
        "",
    ]
    if message_tabs:
        lines.append("*💬 Message Tabs*")
        lines += [f"• {_name(d)}" for d in message_tabs]
        lines.append("")
    for title, group, limit in (("*📄 Code Files*", code_files, 5), ("*📁 Other*", other, 3)):
        if not group:
            continue
        lines.append(title)
        lines += [f"• {_name(d)}" for d in group[:limit]]
        if len(group) > limit:
            lines.append(f"... and {len(group) - limit} more")
        lines.append("")
    if active is not None:
        lines.append(f"🎯 Active: `{active.base_name}`")
    return "\n".join(lines).rstrip()


# ---------------------------------------------------------------------------
# Command results
# ---------------------------------------------------------------------------

def format_terminal_result(result: TerminalCommandResult) -> str:
    lines = [
        "🖥️ *Terminal Command Result*",
        "",
        f"Command: `{result.command}`",
        f"Status: {'✅ Success' if result.success else '❌ Failed'}",
        f"Exit code: {result.exit_code}",
        f"Execution time: {result.execution_time}ms",
    ]
    if result.output:
        lines += ["", "*Output:*", f"```\n{result.output.rstrip()}\n```"]
    if result.error:
        lines += ["", "*Error:*", f"```\n{result.error.rstrip()}\n```"]
    if not result.output and not result.error:
        lines += ["", "_No output_"]
    return "\n".join(lines)


def context_bar(percentage: float, segments: int = BAR_SEGMENTS) -> str:
    filled = round(max(0.0, min(percentage, 100.0)) / 100 * segments)
    return "█" * filled + "░" * (segments - filled)


def format_context_size(info: ContextSizeInfo) -> str:
    if not info.is_available:
        return (
            "❌ Context size not available\n\n"
            "Make sure you have an AI chat tab open that shows the context usage percentage."
        )
    pct = info.percentage
    if pct >= 80:
        level = "⚠️ *High Usage Warning*"
        tips = [
            "Start a new chat to free up context",
            "Summarise the conversation before continuing",
            "Remove large files from the context",
        ]
    elif pct >= 60:
        level = "🟡 *Moderate Usage*"
        tips = ["Keep prompts focused", "Consider a fresh chat for unrelated topics"]
    else:
        level = "🟢 *Low Usage*"
        tips = ["Plenty of room for more context", "Add files freely when they help"]
    detected = dt.datetime.fromtimestamp(info.timestamp).strftime("%H:%M:%S")
    lines = [
        "📊 *Context Size Information*",
        "",
        f"Usage: {pct:.1f}%",
        f"`{context_bar(pct)}`",
        f"Source: {info.source}",
        f"Detected: {detected}",
        "",
        level,
        "",
        "*💡 Tips*",
    ]
    lines += [f"• {tip}" for tip in tips]
    return "\n".join(lines)


def format_cheat_result(search: str, add: str, counts: dict[str, int]) -> str:
    total = sum(counts.values())
    lines = [
        "🎯 *Cheat Command Executed*",
        "",
        f"Search: `{search}`",
        f"Added: `{add}`",
        f"Replacements: {total} in {len(counts)} document(s)",
        "",
    ]
    lines += [f"• `{name}`: {count}" for name, count in counts.items()]
    return "\n".join(lines)
