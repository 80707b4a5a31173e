"""
bot/state.py -- The collaborators one bridge instance works with.

Built once in main.py (or in a test) and handed to the router, so two
bridges in one process never share history or sessions.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field

import bridge_config as cfg
from editor.context_size import ContextSizeHandler
from editor.detector import ChatDetector
from editor.integration import ChatIntegration
from editor.workspace import Workspace
from executor.terminal import TerminalCommandHandler
from plugins.registry import PluginRegistry

from .sessions import MessageHistory, SessionRegistry
from .transport import Transport


@dataclass
class BridgeState:
    config: cfg.ConfigurationManager
    workspace: Workspace
    transport: Transport | None = None
    sessions: SessionRegistry = field(default_factory=SessionRegistry)
    history: MessageHistory = field(default_factory=MessageHistory)
    plugins: PluginRegistry = field(default_factory=PluginRegistry)
    detector: ChatDetector = field(default_factory=ChatDetector)
    terminal: TerminalCommandHandler = field(default_factory=TerminalCommandHandler)
    integration: ChatIntegration | None = None
    context_size: ContextSizeHandler | None = None
    bot_username: str = ""
    is_running: bool = False
    started_at: float = field(default_factory=time.time)
    last_activity: float | None = None

    def __post_init__(self) -> None:
        if self.integration is None:
            self.integration = ChatIntegration(self.workspace, self.detector, self.sessions)
        if self.context_size is None:
            self.context_size = ContextSizeHandler(self.workspace)
