"""
AI-Chatter Bridge: Entry Point

Connects a Telegram bot to the AI chat documents of a workspace directory.

Usage:
    python main.py

Environment variables:
    TELEGRAM_BOT_TOKEN           Bot token (overrides the YAML file).
    AICHATTER_AUTHORIZED_USERS   Comma separated usernames (overrides the YAML file).

Optional:
    AICHATTER_CONFIG             YAML configuration path (default: .aichatter/ai-chatter.yml)
    AICHATTER_WORKSPACE_DIR      Directory whose files are the open documents.
    AICHATTER_AUTO_ENABLE        Enable every detected chat document on startup.
    AICHATTER_LOG_LEVEL          DEBUG | INFO | WARNING | ERROR (default: INFO)
"""

from __future__ import annotations

import asyncio
import logging
import sys

import bridge_config as cfg
from bot.commands import CommandRouter, build_app
from bot.state import BridgeState
from bot.transport import AIResponseSender, TelegramTransport
from editor.capture import ResponseCapture
from editor.workspace import DirectoryWorkspace
from plugins import build_default_registry

logger = logging.getLogger("aichatter.main")


def _configure_logging() -> None:
    level = getattr(logging, cfg.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    # Polling requests are noisy at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _print_banner(state: BridgeState) -> None:
    config = state.config.config
    print(
        f"""
  AI-Chatter Bridge v{cfg.VERSION}

  Workspace : {cfg.WORKSPACE_DIR}
  Config    : {state.config.path}
  Users     : {", ".join("@" + u for u in config.authorized_users) or "none"}
  Terminal  : {"enabled" if state.terminal.enabled else "disabled"}
"""
    )


async def _run() -> None:
    manager = cfg.ConfigurationManager(cfg.CONFIG_PATH)
    manager.load()
    problems = manager.validate_configuration()
    if problems:
        for problem in problems:
            logger.error("Configuration: %s", problem)
        raise RuntimeError("Invalid configuration; see the errors above.")

    workspace = DirectoryWorkspace(cfg.WORKSPACE_DIR, poll_seconds=cfg.WORKSPACE_POLL_SECONDS)
    workspace.scan()
    state = BridgeState(
        config=manager,
        workspace=workspace,
        plugins=await build_default_registry(),
    )
    if cfg.AUTO_ENABLE_CHATS:
        state.integration.enable_all_detected()

    router = CommandRouter(state)
    app = build_app(router, manager.config.bot_token)
    state.transport = TelegramTransport(app.bot)

    capture = ResponseCapture(
        workspace,
        state.detector,
        state.sessions,
        state.history,
        AIResponseSender(state.transport, state.sessions).send,
    )
    capture.attach()
    state.context_size.attach()

    _print_banner(state)
    watcher = asyncio.create_task(workspace.run(), name="workspace-watcher")
    async with app:
        await app.start()
        await app.updater.start_polling()
        me = await app.bot.get_me()
        state.bot_username = me.username or ""
        state.is_running = True
        logger.info("Bot @%s is polling", state.bot_username)
        try:
            await asyncio.Event().wait()
        finally:
            state.is_running = False
            capture.dispose()
            workspace.stop()
            await watcher
            await app.updater.stop()
            await app.stop()


def main() -> None:
    _configure_logging()
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        logger.info("Shutting down")
    except RuntimeError as exc:
        logger.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
