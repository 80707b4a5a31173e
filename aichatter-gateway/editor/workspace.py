"""
editor/workspace.py -- The editor capabilities the bridge depends on.

A workspace exposes the active document, the set of open documents, range
replacement, cursor movement, a clipboard and user notifications. Change
listeners are called synchronously with the document after every edit.

Two hosts are provided: ``InMemoryWorkspace`` (embedding and tests) and
``DirectoryWorkspace`` which treats the text files of a directory as the
open documents and polls them for changes.
"""
from __future__ import annotations

import abc
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

logger = logging.getLogger("aichatter.editor")

ChangeListener = Callable[["EditorDocument"], None]


@dataclass
class EditorDocument:
    uri: str
    file_name: str
    text: str = ""
    scheme: str = "file"
    cursor: int | None = None

    @property
    def base_name(self) -> str:
        return Path(self.file_name).name

    @property
    def chat_id(self) -> str:
        return chat_id_for(self.uri)

    @property
    def cursor_offset(self) -> int:
        if self.cursor is None:
            return len(self.text)
        return max(0, min(self.cursor, len(self.text)))


def chat_id_for(uri: str) -> str:
    return f"chat_{uri}"


class Workspace(abc.ABC):
    """Base class for editor hosts."""

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []
        self._clipboard = ""
        self.notifications: list[str] = []

    # -- documents -----------------------------------------------------

    @abc.abstractmethod
    def active_document(self) -> EditorDocument | None:
        ...

    @abc.abstractmethod
    def open_documents(self) -> list[EditorDocument]:
        ...

    def get_document(self, uri: str) -> EditorDocument | None:
        for doc in self.open_documents():
            if doc.uri == uri:
                return doc
        return None

    @abc.abstractmethod
    async def replace(self, uri: str, start: int, end: int, text: str) -> bool:
        """Replace ``[start, end)`` of the document with ``text``."""

    async def insert(self, uri: str, offset: int, text: str) -> bool:
        return await self.replace(uri, offset, offset, text)

    def move_cursor(self, uri: str, offset: int) -> None:
        doc = self.get_document(uri)
        if doc is not None:
            doc.cursor = max(0, min(offset, len(doc.text)))

    # -- clipboard / notifications ---------------------------------------

    async def read_clipboard(self) -> str:
        return self._clipboard

    async def write_clipboard(self, text: str) -> None:
        self._clipboard = text

    def notify(self, message: str) -> None:
        self.notifications.append(message)
        logger.info("[notify] %s", message)

    # -- change events ---------------------------------------------------

    def on_change(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _emit_change(self, document: EditorDocument) -> None:
        for listener in list(self._listeners):
            try:
                listener(document)
            except Exception:
                logger.exception("Change listener failed for %s", document.uri)


class InMemoryWorkspace(Workspace):
    """Documents held in memory; the last opened or focused one is active."""

    def __init__(self) -> None:
        super().__init__()
        self._documents: dict[str, EditorDocument] = {}
        self._active_uri: str | None = None

    def open(
        self,
        uri: str,
        text: str = "",
        *,
        file_name: str | None = None,
        scheme: str = "file",
        focus: bool = True,
    ) -> EditorDocument:
        doc = EditorDocument(uri=uri, file_name=file_name or uri, text=text, scheme=scheme)
        self._documents[uri] = doc
        if focus or self._active_uri is None:
            self._active_uri = uri
        return doc

    def close(self, uri: str) -> None:
        self._documents.pop(uri, None)
        if self._active_uri == uri:
            self._active_uri = next(iter(self._documents), None)

    def focus(self, uri: str | None) -> None:
        self._active_uri = uri if uri in self._documents else None

    def set_text(self, uri: str, text: str) -> EditorDocument:
        """Simulate the editor (or the AI) rewriting a document."""
        doc = self._documents[uri]
        doc.text = text
        self._emit_change(doc)
        return doc

    def append(self, uri: str, text: str) -> EditorDocument:
        return self.set_text(uri, self._documents[uri].text + text)

    def active_document(self) -> EditorDocument | None:
        if self._active_uri is None:
            return None
        return self._documents.get(self._active_uri)

    def open_documents(self) -> list[EditorDocument]:
        return list(self._documents.values())

    async def replace(self, uri: str, start: int, end: int, text: str) -> bool:
        doc = self._documents.get(uri)
        if doc is None or not 0 <= start <= end <= len(doc.text):
            return False
        doc.text = doc.text[:start] + text + doc.text[end:]
        self._emit_change(doc)
        return True


class DirectoryWorkspace(Workspace):
    """Text files of a directory act as open documents.

    The most recently modified file is the active one. ``run`` polls the
    directory and emits change events for files whose content changed.
    """

    MAX_FILE_BYTES = 2 * 1024 * 1024

    def __init__(self, root: str | Path, *, poll_seconds: float = 1.0) -> None:
        super().__init__()
        self.root = Path(root).expanduser().resolve()
        self.poll_seconds = poll_seconds
        self._documents: dict[str, EditorDocument] = {}
        self._mtimes: dict[str, float] = {}
        self._active_uri: str | None = None
        self._stopping = asyncio.Event()

    def _candidate_files(self) -> list[Path]:
        if not self.root.is_dir():
            return []
        files = []
        for path in self.root.iterdir():
            if path.name.startswith(".") or not path.is_file():
                continue
            try:
                if path.stat().st_size > self.MAX_FILE_BYTES:
                    continue
            except OSError:
                continue
            files.append(path)
        return files

    def scan(self) -> list[EditorDocument]:
        """Refresh the document set; return the documents whose text changed."""
        changed: list[EditorDocument] = []
        seen: set[str] = set()
        newest: tuple[float, str] | None = None
        for path in self._candidate_files():
            uri = path.as_uri()
            seen.add(uri)
            try:
                mtime = path.stat().st_mtime
            except OSError:
                continue
            if newest is None or mtime > newest[0]:
                newest = (mtime, uri)
            if self._mtimes.get(uri) == mtime:
                continue
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            self._mtimes[uri] = mtime
            doc = self._documents.get(uri)
            if doc is None:
                self._documents[uri] = EditorDocument(uri=uri, file_name=str(path), text=text)
            elif doc.text != text:
                doc.text = text
                changed.append(doc)
        for uri in list(self._documents):
            if uri not in seen:
                self._documents.pop(uri, None)
                self._mtimes.pop(uri, None)
        if newest is not None:
            self._active_uri = newest[1]
        elif self._active_uri not in self._documents:
            self._active_uri = None
        return changed

    def active_document(self) -> EditorDocument | None:
        if self._active_uri is None:
            return None
        return self._documents.get(self._active_uri)

    def open_documents(self) -> list[EditorDocument]:
        return list(self._documents.values())

    async def replace(self, uri: str, start: int, end: int, text: str) -> bool:
        doc = self._documents.get(uri)
        if doc is None or not 0 <= start <= end <= len(doc.text):
            return False
        new_text = doc.text[:start] + text + doc.text[end:]
        path = Path(doc.file_name)
        try:
            path.write_text(new_text, encoding="utf-8")
            self._mtimes[uri] = path.stat().st_mtime
        except OSError:
            logger.exception("Could not write %s", path)
            return False
        doc.text = new_text
        self._emit_change(doc)
        return True

    async def run(self) -> None:
        logger.info("Watching %s for chat documents (every %.1fs)", self.root, self.poll_seconds)
        self.scan()
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_seconds)
            except asyncio.TimeoutError:
                pass
            for doc in self.scan():
                self._emit_change(doc)

    def stop(self) -> None:
        self._stopping.set()
