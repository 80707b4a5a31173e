"""
editor/detector.py -- Heuristics deciding whether a document is an AI chat.

Detection is deliberately loose: a single content marker or identity hint
is enough. False positives are acceptable, missing a real chat is not.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Union

CONTENT_MARKERS: tuple[str, ...] = (
    "User:",
    "Assistant:",
    "AI:",
    "Cursor AI",
    "AI Chat",
    "Chat History",
    "Conversation History",
    "@username",
)

# Matched as substrings of the lowercased file name.
NAME_TOKENS: tuple[str, ...] = ("chat", "conversation", "cursor", "message")
# Matched as standalone words only; "ai" is a substring of too many names.
NAME_WORDS: tuple[str, ...] = ("ai",)
CHAT_SCHEMES: tuple[str, ...] = ("vscode-webview",)

AI_TURN_MARKERS: tuple[str, ...] = ("Assistant:", "AI:", "🤖")
USER_TURN_MARKERS: tuple[str, ...] = ("User:", "@", "[Telegram]")

CODE_EXTENSIONS: frozenset[str] = frozenset({
    ".js", ".ts", ".jsx", ".tsx", ".py", ".java", ".cpp", ".c", ".cs",
    ".php", ".rb", ".go", ".rs", ".swift", ".kt", ".scala", ".html",
    ".css", ".scss", ".sass", ".json", ".xml", ".yaml", ".yml", ".md",
})

_WORD_SPLIT = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class ContentMarker:
    token: str

    def describe(self) -> str:
        return f"content marker {self.token!r}"


@dataclass(frozen=True)
class IdentityMarker:
    token: str

    def describe(self) -> str:
        return f"identity hint {self.token!r}"


Signal = Union[ContentMarker, IdentityMarker]


@dataclass(frozen=True)
class Detection:
    """Outcome of a chat check; truthy when a signal fired."""

    signal: Signal | None = None

    @property
    def matched(self) -> bool:
        return self.signal is not None

    def __bool__(self) -> bool:
        return self.matched

    def describe(self) -> str:
        return self.signal.describe() if self.signal else "no chat signal"


class ChatDetector:
    def __init__(
        self,
        content_markers: tuple[str, ...] = CONTENT_MARKERS,
        name_tokens: tuple[str, ...] = NAME_TOKENS,
    ) -> None:
        self.content_markers = content_markers
        self.name_tokens = name_tokens

    def looks_like_chat(self, text: str, name: str = "", uri_scheme: str = "") -> Detection:
        for marker in self.content_markers:
            if marker in text:
                return Detection(ContentMarker(marker))
        if uri_scheme in CHAT_SCHEMES:
            return Detection(IdentityMarker(uri_scheme))
        base = PurePath(name).name.lower() if name else ""
        if base:
            for token in self.name_tokens:
                if token in base:
                    return Detection(IdentityMarker(token))
            words = set(_WORD_SPLIT.split(base))
            for word in NAME_WORDS:
                if word in words:
                    return Detection(IdentityMarker(word))
        return Detection()

    def document_looks_like_chat(self, document) -> Detection:
        return self.looks_like_chat(document.text, document.file_name, document.scheme)

    @staticmethod
    def extract_latest_reply(text: str) -> str | None:
        """Return the most recent assistant turn, or None.

        The turn starts at the last line carrying an AI-turn marker and runs
        until a user-turn marker, a blank line or the end of the text.
        """
        lines = text.split("\n")
        start = None
        for index in range(len(lines) - 1, -1, -1):
            if lines[index].strip().startswith(AI_TURN_MARKERS):
                start = index
                break
        if start is None:
            return None
        collected = [lines[start].strip()]
        for line in lines[start + 1:]:
            stripped = line.strip()
            if not stripped or stripped.startswith(USER_TURN_MARKERS):
                break
            collected.append(stripped)
        return "\n".join(collected)

    @staticmethod
    def is_code_file(name: str) -> bool:
        return PurePath(name).suffix.lower() in CODE_EXTENSIONS
