"""TerminalCommandHandler validation and execution."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_gateway_path() -> None:
    repo_root = Path(__file__).parent.parent
    gateway_root = str(repo_root / "aichatter-gateway")
    if gateway_root not in sys.path:
        sys.path.insert(0, gateway_root)


_ensure_gateway_path()

from executor.terminal import TerminalCommandHandler  # noqa: E402


@pytest.mark.parametrize(
    "command, reason",
    [
        ("ls; cat /etc/passwd", "dangerous"),
        ("cat file | grep x", "dangerous"),
        ("echo $HOME", "dangerous"),
        ("ls > /tmp/out", "dangerous"),
        ("git rm README.md", "blocked"),
        ("curl http://example.com", "not in the allowed list"),
        ("", "Empty"),
    ],
)
def test_validate_rejects(command, reason) -> None:
    handler = TerminalCommandHandler(enabled=True)
    with pytest.raises(ValueError, match=reason):
        handler.validate(command)


def test_validate_accepts_whitelisted_command_with_flags() -> None:
    handler = TerminalCommandHandler(enabled=True)
    assert handler.validate("git log --format=oneline -n 3") == ["git", "log", "--format=oneline", "-n", "3"]


@pytest.mark.asyncio
async def test_execute_runs_in_working_directory(tmp_path) -> None:
    handler = TerminalCommandHandler(enabled=True, cwd=str(tmp_path))

    result = await handler.execute_command("pwd", "alice")

    assert result.success is True
    assert result.exit_code == 0
    assert result.output.strip() == str(tmp_path.resolve())
    assert result.execution_time >= 0


@pytest.mark.asyncio
async def test_execute_reports_non_zero_exit(tmp_path) -> None:
    handler = TerminalCommandHandler(enabled=True, cwd=str(tmp_path))

    result = await handler.execute_command("ls does-not-exist", "alice")

    assert result.success is False
    assert result.exit_code != 0
    assert result.error


@pytest.mark.asyncio
async def test_execute_times_out(tmp_path) -> None:
    handler = TerminalCommandHandler(enabled=True, cwd=str(tmp_path), timeout=0.2)

    result = await handler.execute_command("tail -f /dev/null", "alice")

    assert result.success is False
    assert "timed out" in result.error


@pytest.mark.asyncio
async def test_disabled_handler_refuses_everything() -> None:
    result = await TerminalCommandHandler(enabled=False).execute_command("pwd")
    assert result.success is False
    assert result.error == "Terminal commands are disabled"
