"""AI-Chatter: Plugins."""

from __future__ import annotations

from .base import CommandResult, Plugin, PluginCommand, UserIdentity
from .registry import PluginRegistry


async def build_default_registry() -> PluginRegistry:
    """Create a registry with the built-in plugins activated."""
    from .calculator import CalculatorPlugin
    from .weather import WeatherPlugin

    registry = PluginRegistry()
    for plugin in (CalculatorPlugin(), WeatherPlugin()):
        await registry.register(plugin)
    return registry


__all__ = [
    "CommandResult",
    "Plugin",
    "PluginCommand",
    "PluginRegistry",
    "UserIdentity",
    "build_default_registry",
]
