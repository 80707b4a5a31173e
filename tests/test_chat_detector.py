"""ChatDetector heuristics and reply extraction."""
from __future__ import annotations

import sys
from pathlib import Path


def _ensure_gateway_path() -> None:
    repo_root = Path(__file__).parent.parent
    gateway_root = str(repo_root / "aichatter-gateway")
    if gateway_root not in sys.path:
        sys.path.insert(0, gateway_root)


_ensure_gateway_path()

from editor.detector import ChatDetector, ContentMarker, IdentityMarker  # noqa: E402


def test_content_marker_is_reported() -> None:
    detection = ChatDetector().looks_like_chat("User: hi\nAssistant: hello", "notes.txt")
    assert detection
    assert detection.signal == ContentMarker("User:")


def test_file_name_token_is_reported() -> None:
    detection = ChatDetector().looks_like_chat("nothing here", "/tmp/cursor-chat-1.md")
    assert detection.signal == IdentityMarker("chat")


def test_standalone_ai_word_matches_but_substring_does_not() -> None:
    detector = ChatDetector()
    assert detector.looks_like_chat("", "ai-session.log").signal == IdentityMarker("ai")
    assert not detector.looks_like_chat("", "main.py")
    assert not detector.looks_like_chat("", "/home/dev/domain/train.py")


def test_webview_scheme_is_an_identity_hint() -> None:
    detection = ChatDetector().looks_like_chat("", "panel", uri_scheme="vscode-webview")
    assert detection.signal == IdentityMarker("vscode-webview")


def test_plain_document_is_not_chat() -> None:
    detection = ChatDetector().looks_like_chat("def main():\n    pass\n", "app.py")
    assert not detection
    assert detection.describe() == "no chat signal"


def test_extract_latest_reply_stops_at_blank_line() -> None:
    text = "User: hi\nAssistant: Hello there\nHow can I help?\n\nUser: next"
    assert ChatDetector.extract_latest_reply(text) == "Assistant: Hello there\nHow can I help?"


def test_extract_latest_reply_picks_most_recent_turn() -> None:
    text = "Assistant: old\nUser: again\nAI: newer answer\n@alice: thanks"
    assert ChatDetector.extract_latest_reply(text) == "AI: newer answer"


def test_extract_latest_reply_accepts_robot_marker() -> None:
    assert ChatDetector.extract_latest_reply("🤖 done\n") == "🤖 done"


def test_extract_latest_reply_without_marker_is_none() -> None:
    assert ChatDetector.extract_latest_reply("User: hello\nno answer yet") is None


def test_code_file_detection() -> None:
    assert ChatDetector.is_code_file("src/app.TS")
    assert ChatDetector.is_code_file("README.md")
    assert not ChatDetector.is_code_file("photo.png")
