"""
AI-Chatter: Plugin Registry

Owns the plugins and the flat ``/name -> command`` map the router consults
for commands it does not handle itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .base import CommandResult, Plugin, PluginCommand, UserIdentity

logger = logging.getLogger("aichatter.plugins.registry")

_REQUIRED_FIELDS = ("id", "name", "version", "description", "author")


@dataclass
class _RegisteredCommand:
    plugin: Plugin
    command: PluginCommand


def _key(name: str) -> str:
    return name if name.startswith("/") else f"/{name}"


class PluginRegistry:
    def __init__(self) -> None:
        self._plugins: dict[str, Plugin] = {}
        self._commands: dict[str, _RegisteredCommand] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    @staticmethod
    def validate(plugin: Plugin) -> list[str]:
        problems = [f"missing {f}" for f in _REQUIRED_FIELDS if not getattr(plugin, f, "")]
        commands = getattr(plugin, "commands", None) or []
        if not commands:
            problems.append("no commands")
        for command in commands:
            if not command.name or not command.description or command.handler is None:
                problems.append(f"incomplete command {command.name or '<unnamed>'}")
        return problems

    async def register(self, plugin: Plugin) -> bool:
        problems = self.validate(plugin)
        if problems:
            logger.warning("Plugin %s rejected: %s", getattr(plugin, "id", "?"), ", ".join(problems))
            return False
        if plugin.id in self._plugins:
            logger.warning("Plugin already registered: %s", plugin.id)
            return False

        previous = dict(self._commands)
        self._plugins[plugin.id] = plugin
        for command in plugin.commands:
            self._commands[_key(command.name)] = _RegisteredCommand(plugin, command)
        try:
            await plugin.on_activate()
        except Exception:
            logger.exception("Activation failed for plugin %s; rolled back", plugin.id)
            self._plugins.pop(plugin.id, None)
            self._commands = previous
            return False

        logger.info("Registered plugin %s v%s (%d commands)", plugin.name, plugin.version, len(plugin.commands))
        return True

    async def unregister(self, plugin_id: str) -> bool:
        plugin = self._plugins.get(plugin_id)
        if plugin is None:
            logger.warning("Plugin not found: %s", plugin_id)
            return False
        try:
            await plugin.on_deactivate()
        except Exception:
            logger.exception("Deactivation hook failed for plugin %s", plugin_id)
        for command in plugin.commands:
            entry = self._commands.get(_key(command.name))
            if entry is not None and entry.plugin is plugin:
                del self._commands[_key(command.name)]
        del self._plugins[plugin_id]
        logger.info("Unregistered plugin %s", plugin_id)
        return True

    async def reload_plugins(self) -> None:
        plugins = list(self._plugins.values())
        for plugin in plugins:
            await self.unregister(plugin.id)
        for plugin in plugins:
            await self.register(plugin)

    # ------------------------------------------------------------------
    # Lookup and execution
    # ------------------------------------------------------------------

    def get_plugin(self, plugin_id: str) -> Plugin | None:
        return self._plugins.get(plugin_id)

    def get_all_plugins(self) -> list[Plugin]:
        return list(self._plugins.values())

    def has_command(self, name: str) -> bool:
        return _key(name) in self._commands

    def command_names(self) -> list[str]:
        return list(self._commands)

    async def execute(
        self,
        name: str,
        args: list[str],
        sender: UserIdentity,
        channel_id: int | str,
    ) -> CommandResult:
        entry = self._commands.get(_key(name))
        if entry is None:
            return CommandResult.fail(f"Command not found: {name}", "Command not registered by any plugin")
        command = entry.command
        if command.requires_auth and not sender.is_authorized:
            return CommandResult.fail(f"Command requires authorization: {name}", "Not authorized")
        if command.admin_only and not sender.is_admin:
            return CommandResult.fail(f"Command is restricted to admins: {name}", "Admin only")
        logger.debug("Executing /%s from plugin %s", command.name, entry.plugin.id)
        try:
            return await command.handler(args, sender, channel_id)
        except Exception as exc:
            logger.exception("Plugin command /%s failed", command.name)
            return CommandResult.fail(f"Command execution failed: {name}", str(exc))

    # ------------------------------------------------------------------
    # Summaries (for /plugins)
    # ------------------------------------------------------------------

    def status_text(self) -> str:
        return (
            "📊 *Plugin Status*\n\n"
            f"🔌 Active plugins: {len(self._plugins)}\n"
            f"📝 Total commands: {len(self._commands)}"
        )

    def available_commands_text(self) -> str:
        if not self._commands:
            return "📝 *Available Plugin Commands*\n\nNone registered."
        lines = [
            f"• `{key}` - {entry.command.description} ({entry.plugin.name})"
            for key, entry in self._commands.items()
        ]
        return "📝 *Available Plugin Commands*\n\n" + "\n".join(lines)
