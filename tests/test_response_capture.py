"""ResponseCapture debounce and dispatch behaviour.

The quiescence window is shrunk to a few tens of milliseconds so the
timer paths run for real on the event loop.
"""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest


def _ensure_gateway_path() -> None:
    repo_root = Path(__file__).parent.parent
    gateway_root = str(repo_root / "aichatter-gateway")
    if gateway_root not in sys.path:
        sys.path.insert(0, gateway_root)


_ensure_gateway_path()

from bot.sessions import MESSAGE_TYPE_AI_RESPONSE, MessageHistory, SessionRegistry  # noqa: E402
from editor.capture import CaptureState, ResponseCapture  # noqa: E402
from editor.detector import ChatDetector  # noqa: E402
from editor.integration import ChatIntegration  # noqa: E402
from editor.workspace import InMemoryWorkspace  # noqa: E402

WINDOW = 0.05
CHAT_URI = "file:///chat.md"


class _RecordingSender:
    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.calls: list[tuple[str, str]] = []

    async def __call__(self, content: str, chat_id: str) -> bool:
        self.calls.append((content, chat_id))
        return self.result


def _setup(result: bool = True, enable: bool = True):
    workspace = InMemoryWorkspace()
    doc = workspace.open(CHAT_URI, "User: hi\n")
    sessions = SessionRegistry(routing_lock_seconds=0)
    if enable:
        sessions.enable(doc.chat_id)
        sessions.update_routing_target(doc.chat_id, 42, "alice")
    history = MessageHistory()
    sender = _RecordingSender(result)
    capture = ResponseCapture(
        workspace, ChatDetector(), sessions, history, sender, quiescence_seconds=WINDOW,
    )
    capture.attach()
    return workspace, doc, sessions, history, sender, capture


@pytest.mark.asyncio
async def test_burst_of_changes_dispatches_once_with_latest_content() -> None:
    workspace, doc, _, history, sender, capture = _setup()

    workspace.append(CHAT_URI, "Assistant: Hel")
    await asyncio.sleep(WINDOW / 3)
    workspace.append(CHAT_URI, "lo there")
    assert capture.state is CaptureState.ACCUMULATING

    await asyncio.sleep(WINDOW * 4)

    assert sender.calls == [("Assistant: Hello there", doc.chat_id)]
    assert capture.state is CaptureState.IDLE
    entry = history.entries()[-1]
    assert (entry.username, entry.message, entry.type) == ("alice", "Assistant: Hello there", MESSAGE_TYPE_AI_RESPONSE)


@pytest.mark.asyncio
async def test_manual_send_dispatches_and_later_timer_is_a_noop() -> None:
    workspace, _, _, _, sender, capture = _setup()

    workspace.append(CHAT_URI, "Assistant: done")
    assert await capture.send_current_response() is True
    await asyncio.sleep(WINDOW * 4)

    assert len(sender.calls) == 1


@pytest.mark.asyncio
async def test_disabled_chat_is_not_captured() -> None:
    workspace, _, _, _, sender, capture = _setup(enable=False)

    workspace.append(CHAT_URI, "Assistant: ignored")
    await asyncio.sleep(WINDOW * 3)

    assert capture.state is CaptureState.IDLE
    assert sender.calls == []


@pytest.mark.asyncio
async def test_changes_to_inactive_documents_are_ignored() -> None:
    workspace, _, sessions, _, sender, capture = _setup()
    other = workspace.open("file:///other-chat.md", "User: x\n", focus=False)
    sessions.enable(other.chat_id)

    workspace.append(other.uri, "Assistant: not active")
    await asyncio.sleep(WINDOW * 3)

    assert sender.calls == []


@pytest.mark.asyncio
async def test_failed_dispatch_is_dropped_without_history() -> None:
    workspace, _, _, history, sender, capture = _setup(result=False)

    workspace.append(CHAT_URI, "Assistant: lost")
    await asyncio.sleep(WINDOW * 4)

    assert len(sender.calls) == 1
    assert len(history) == 0
    assert capture.state is CaptureState.IDLE
    assert capture.pending is None


@pytest.mark.asyncio
async def test_failed_dispatch_is_not_retried_on_later_growth() -> None:
    workspace, doc, _, _, sender, _ = _setup(result=False)

    workspace.append(CHAT_URI, "Assistant: lost")
    await asyncio.sleep(WINDOW * 4)
    workspace.append(CHAT_URI, "\nUser: next question")
    await asyncio.sleep(WINDOW * 4)

    assert [c for c, _ in sender.calls] == ["Assistant: lost"]

    sender.result = True
    workspace.append(CHAT_URI, "\nAssistant: fresh answer")
    await asyncio.sleep(WINDOW * 4)

    assert sender.calls[-1] == ("Assistant: fresh answer", doc.chat_id)
    assert len(sender.calls) == 2


@pytest.mark.asyncio
async def test_text_without_ai_marker_stays_idle() -> None:
    workspace, _, _, _, sender, capture = _setup()

    workspace.append(CHAT_URI, "User: still typing")
    await asyncio.sleep(WINDOW * 3)

    assert capture.state is CaptureState.IDLE
    assert sender.calls == []


@pytest.mark.asyncio
async def test_injected_message_does_not_resend_previous_reply() -> None:
    workspace, _, sessions, _, sender, capture = _setup()
    integration = ChatIntegration(workspace, ChatDetector(), sessions)

    workspace.append(CHAT_URI, "Assistant: first answer")
    await asyncio.sleep(WINDOW * 4)
    await integration.inject("alice", "follow-up question")
    await asyncio.sleep(WINDOW * 4)

    assert [c for c, _ in sender.calls] == ["Assistant: first answer"]


@pytest.mark.asyncio
async def test_status_reports_pending_reply() -> None:
    workspace, _, _, _, _, capture = _setup()

    assert capture.status()["has_response"] is False
    workspace.append(CHAT_URI, "Assistant: partial")
    status = capture.status()
    capture.dispose()

    assert status == {"has_response": True, "is_complete": False, "content": "Assistant: partial"}
    assert capture.pending is None
