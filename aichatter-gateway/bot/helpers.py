"""
bot/helpers.py -- Command parsing, reply truncation, relative times and the
                  background task runner.
"""
from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass

import bridge_config as cfg

logger = logging.getLogger("aichatter.bot")

COMMAND_PREFIX = "/"
_COMMAND_RE = re.compile(rf"^{re.escape(COMMAND_PREFIX)}(\S+)(?:\s+(.*))?$", re.DOTALL)

_background_tasks: set[asyncio.Task] = set()


@dataclass(frozen=True)
class ParsedCommand:
    name: str
    args: str = ""

    @property
    def argv(self) -> list[str]:
        return self.args.split()


def parse_command(text: str) -> ParsedCommand | None:
    """Split ``/name rest`` into a command; None when no name follows the prefix.

    A Telegram-style ``@botname`` suffix on the name is dropped.
    """
    match = _COMMAND_RE.match(text)
    if match is None:
        return None
    name = match.group(1).split("@", 1)[0]
    return ParsedCommand(name=name, args=(match.group(2) or "").strip())


def truncate_reply(text: str, limit: int = cfg.MAX_REPLY_LENGTH, marker: str = cfg.TRUNCATION_MARKER) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + marker


def time_ago(timestamp: float, now: float | None = None) -> str:
    minutes = int(((now if now is not None else time.time()) - timestamp) // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if minutes < 1440:
        return f"{minutes // 60}h ago"
    return f"{minutes // 1440}d ago"


def format_duration(seconds: float) -> str:
    seconds = int(seconds)
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def shorten(text: str, limit: int = 100) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def spawn_background_task(coro, *, tag: str) -> asyncio.Task:
    """Run a coroutine in background and surface failures in logs."""
    task = asyncio.create_task(coro, name=tag)
    _background_tasks.add(task)

    def _done(t: asyncio.Task) -> None:
        _background_tasks.discard(t)
        if t.cancelled():
            return
        exc = t.exception()
        if exc is not None:
            logger.error("Background task failed: %s", tag, exc_info=exc)

    task.add_done_callback(_done)
    return task
