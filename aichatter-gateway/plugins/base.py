"""AI-Chatter: Plugin base types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable


@dataclass(frozen=True)
class UserIdentity:
    username: str
    is_authorized: bool = True
    is_admin: bool = False


@dataclass
class CommandResult:
    success: bool
    message: str
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> CommandResult:
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, error: str | None = None) -> CommandResult:
        return cls(success=False, message=message, error=error)


CommandFn = Callable[[list[str], UserIdentity, "int | str"], Awaitable[CommandResult]]


@dataclass
class PluginCommand:
    name: str
    description: str
    handler: CommandFn
    usage: str = ""
    examples: list[str] = field(default_factory=list)
    requires_auth: bool = False
    admin_only: bool = False


class Plugin:
    """Subclasses set the metadata attributes and build ``commands``."""

    id: str = ""
    name: str = ""
    version: str = ""
    description: str = ""
    author: str = ""

    def __init__(self) -> None:
        self.commands: list[PluginCommand] = self.get_commands()

    def get_commands(self) -> list[PluginCommand]:
        return []

    async def on_activate(self) -> None:
        pass

    async def on_deactivate(self) -> None:
        pass
