"""
AI-Chatter Bridge: Terminal Command Executor

Runs short, read-mostly shell commands requested from Telegram.

SECURITY INVARIANTS
  - Commands are tokenised with ``shlex`` and executed with
    ``create_subprocess_exec``; no shell ever interprets user input.
  - The first token must be on the allow-list and no token may be on the
    block-list.
  - Shell metacharacters are rejected before tokenising, so pipes,
    redirections and substitutions never reach the process.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shlex
import time
from dataclasses import dataclass

import bridge_config as cfg

logger = logging.getLogger("aichatter.executor")

# Keep replies within Telegram's limit once formatted.
_MAX_OUTPUT_CHARS = 8192


@dataclass
class TerminalCommandResult:
    command: str
    success: bool
    exit_code: int
    execution_time: int  # milliseconds
    output: str = ""
    error: str = ""


class TerminalCommandHandler:
    def __init__(
        self,
        *,
        enabled: bool = cfg.TERMINAL_ENABLED,
        timeout: float = cfg.TERMINAL_TIMEOUT_SECONDS,
        cwd: str | None = cfg.TERMINAL_WORKING_DIR,
        allowed: frozenset[str] = cfg.TERMINAL_ALLOWED_COMMANDS,
        blocked: frozenset[str] = cfg.TERMINAL_BLOCKED_COMMANDS,
        dangerous: tuple[re.Pattern, ...] = cfg.TERMINAL_DANGEROUS_PATTERNS,
    ) -> None:
        self.enabled = enabled
        self.timeout = timeout
        self.cwd = cwd
        self.allowed = allowed
        self.blocked = blocked
        self.dangerous = dangerous

    def validate(self, command: str) -> list[str]:
        """Return the tokens to execute, or raise ValueError."""
        command = command.strip()
        if not command:
            raise ValueError("Empty command")
        for pattern in self.dangerous:
            if pattern.search(command):
                raise ValueError("Command contains potentially dangerous patterns")
        try:
            tokens = shlex.split(command)
        except ValueError as exc:
            raise ValueError(f"Could not parse command: {exc}") from exc
        for token in tokens:
            if token in self.blocked:
                raise ValueError(f"Command contains blocked operation: {token}")
        if tokens[0] not in self.allowed:
            raise ValueError(f"Command '{tokens[0]}' is not in the allowed list")
        return tokens

    async def execute_command(self, command: str, username: str = "") -> TerminalCommandResult:
        start = time.monotonic()

        def _elapsed() -> int:
            return int((time.monotonic() - start) * 1000)

        if not self.enabled:
            return TerminalCommandResult(command, False, -1, _elapsed(), error="Terminal commands are disabled")
        try:
            args = self.validate(command)
        except ValueError as exc:
            logger.warning("Rejected terminal command from @%s: %r (%s)", username, command, exc)
            return TerminalCommandResult(command, False, -1, _elapsed(), error=str(exc))

        logger.info("AUDIT terminal @%s: %s", username or "unknown", command)
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd or None,
            )
        except (FileNotFoundError, PermissionError) as exc:
            return TerminalCommandResult(command, False, -1, _elapsed(), error=str(exc))

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.communicate()
            return TerminalCommandResult(
                command, False, -1, _elapsed(),
                error=f"Command timed out after {self.timeout:g}s",
            )

        stdout = stdout_bytes.decode(errors="replace")[-_MAX_OUTPUT_CHARS:]
        stderr = stderr_bytes.decode(errors="replace")[-_MAX_OUTPUT_CHARS:]
        result = TerminalCommandResult(
            command=command,
            success=proc.returncode == 0,
            exit_code=proc.returncode if proc.returncode is not None else -1,
            execution_time=_elapsed(),
            output=stdout,
            error=stderr,
        )
        logger.info("terminal exit=%s in %dms: %s", result.exit_code, result.execution_time, command)
        return result
