"""
editor/context_size.py -- Read the AI context-window usage shown in the chat.
"""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field

from .workspace import Workspace

logger = logging.getLogger("aichatter.context")

# Most specific first; the bare percentage is the last resort.
_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("context_label", re.compile(r"context\s*size\s*:\s*(\d+(?:\.\d+)?)%", re.I)),
    ("usage_label", re.compile(r"(?:context|size|usage)\s*:\s*(\d+(?:\.\d+)?)%", re.I)),
    ("usage_suffix", re.compile(r"(\d+(?:\.\d+)?)%\s*(?:used|full|occupied|consumed)", re.I)),
    ("content_pattern", re.compile(r"(\d+(?:\.\d+)?)%")),
)


@dataclass
class ContextSizeInfo:
    size: float = 0.0
    unit: str = "%"
    percentage: float = 0.0
    is_available: bool = False
    source: str = "not_found"
    timestamp: float = field(default_factory=time.time)


def extract_context_size(text: str) -> ContextSizeInfo:
    for source, pattern in _PATTERNS:
        for match in pattern.finditer(text):
            value = float(match.group(1))
            if 0 <= value <= 100:
                return ContextSizeInfo(size=value, percentage=value, is_available=True, source=source)
    return ContextSizeInfo()


class ContextSizeHandler:
    """Remember the last context-size reading found in the active document."""

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace
        self._last: ContextSizeInfo | None = None

    def attach(self) -> None:
        self._workspace.on_change(lambda _doc: self.refresh())

    def refresh(self) -> ContextSizeInfo:
        doc = self._workspace.active_document()
        if doc is None:
            return self.current()
        info = extract_context_size(doc.text)
        if info.is_available:
            if self._last is None or self._last.percentage != info.percentage:
                logger.debug("Context size detected: %.1f%% (%s)", info.percentage, info.source)
            self._last = info
        return self.current()

    def current(self) -> ContextSizeInfo:
        return self._last or ContextSizeInfo()

    def is_available(self) -> bool:
        return self._last is not None
