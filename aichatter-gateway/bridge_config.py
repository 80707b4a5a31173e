"""
AI-Chatter Bridge: Configuration

Runtime knobs are read from the environment at import time. The Telegram
section (bot token, authorised usernames) lives in a YAML file so it can be
edited from the bot itself via ``ConfigurationManager``.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("aichatter.config")

# ---------------------------------------------------------------------------
# General
# ---------------------------------------------------------------------------
LOG_LEVEL: str = os.environ.get("AICHATTER_LOG_LEVEL", "INFO")
VERSION: str = "0.2.15"

CONFIG_PATH: str = os.environ.get("AICHATTER_CONFIG", ".aichatter/ai-chatter.yml")

# Directory whose files are treated as the editor's open documents.
WORKSPACE_DIR: str = os.environ.get("AICHATTER_WORKSPACE_DIR", os.getcwd())
WORKSPACE_POLL_SECONDS: float = float(os.environ.get("AICHATTER_WORKSPACE_POLL_SECONDS", "1.0"))
# Enable every detected chat document on startup (headless hosts have no toggle UI).
AUTO_ENABLE_CHATS: bool = os.environ.get("AICHATTER_AUTO_ENABLE", "0").lower() in {"1", "true", "yes"}

# ---------------------------------------------------------------------------
# Messaging
# ---------------------------------------------------------------------------
MAX_REPLY_LENGTH = 4000
TRUNCATION_MARKER = "\n\n... (response truncated due to length)"
MAX_HISTORY_SIZE = 10

# Seconds of silence after which an AI reply is considered finished.
RESPONSE_QUIESCENCE_SECONDS: float = float(os.environ.get("AICHATTER_RESPONSE_QUIESCENCE", "5.0"))

# Seconds a sender keeps the routing target after their last message.
# 0 means the most recent sender always wins.
ROUTING_LOCK_SECONDS: float = float(os.environ.get("AICHATTER_ROUTING_LOCK_SECONDS", "300"))

# ---------------------------------------------------------------------------
# Terminal
# ---------------------------------------------------------------------------
TERMINAL_ENABLED: bool = os.environ.get("AICHATTER_TERMINAL_ENABLED", "1").lower() in {"1", "true", "yes"}
TERMINAL_TIMEOUT_SECONDS: int = int(os.environ.get("AICHATTER_TERMINAL_TIMEOUT", "30"))
TERMINAL_WORKING_DIR: str = os.environ.get("AICHATTER_TERMINAL_CWD", WORKSPACE_DIR)

TERMINAL_ALLOWED_COMMANDS: frozenset[str] = frozenset({
    "ls", "pwd", "whoami", "date", "uptime", "df", "ps",
    "cat", "head", "tail", "grep", "find", "du", "free",
    "git", "npm", "node", "python", "python3", "java",
    "docker", "kubectl", "aws", "gcloud",
})

TERMINAL_BLOCKED_COMMANDS: frozenset[str] = frozenset({
    "rm", "del", "format", "shutdown", "reboot", "halt", "poweroff",
    "init", "killall", "pkill", "kill", "sudo", "su",
    "chmod", "chown", "chgrp",
})

TERMINAL_DANGEROUS_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"[;&|`$]"),
    re.compile(r">\s*/"),
    re.compile(r"rm\s+-rf"),
    re.compile(r"sudo\s+"),
    re.compile(r"chmod\s+777"),
    re.compile(r"chown\s+root"),
)

# ---------------------------------------------------------------------------
# Weather plugin
# ---------------------------------------------------------------------------
WEATHER_GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
WEATHER_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
WEATHER_HTTP_TIMEOUT_SECONDS = 10

# ---------------------------------------------------------------------------
# Telegram section (YAML + environment overrides)
# ---------------------------------------------------------------------------
DEFAULT_MAX_USERS = 10
_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")


@dataclass
class TelegramConfig:
    bot_token: str = ""
    authorized_users: list[str] = field(default_factory=list)
    max_users: int = DEFAULT_MAX_USERS
    admin_users: list[str] = field(default_factory=list)


class ConfigurationManager:
    """Load, validate and persist the Telegram configuration.

    The YAML file is the source of truth; ``TELEGRAM_BOT_TOKEN`` and
    ``AICHATTER_AUTHORIZED_USERS`` (comma separated) override it when set.
    """

    def __init__(self, path: str | Path = CONFIG_PATH, *, read_env: bool = True) -> None:
        self.path = Path(path)
        self._read_env = read_env
        self._config = TelegramConfig()

    @property
    def config(self) -> TelegramConfig:
        return self._config

    def load(self) -> TelegramConfig:
        self._config = self.load_from_yaml()
        if self._read_env:
            self._apply_env_overrides(self._config)
        return self._config

    def load_from_yaml(self) -> TelegramConfig:
        if not self.path.is_file():
            logger.info("No configuration file at %s, using defaults", self.path)
            return TelegramConfig()
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError:
            logger.exception("Could not parse %s", self.path)
            return TelegramConfig()
        section: dict[str, Any] = data.get("telegram") or {}
        return TelegramConfig(
            bot_token=str(section.get("bot_token") or ""),
            authorized_users=[str(u) for u in section.get("authorized_users") or []],
            max_users=int(section.get("max_users") or DEFAULT_MAX_USERS),
            admin_users=[str(u) for u in section.get("admin_users") or []],
        )

    def save_to_yaml(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "telegram": {
                "bot_token": self._config.bot_token,
                "authorized_users": list(self._config.authorized_users),
                "max_users": self._config.max_users,
                "admin_users": list(self._config.admin_users),
            }
        }
        self.path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        logger.info("Configuration saved to %s", self.path)

    @staticmethod
    def _apply_env_overrides(config: TelegramConfig) -> None:
        token = os.environ.get("TELEGRAM_BOT_TOKEN", "").strip()
        if token:
            config.bot_token = token
        users = os.environ.get("AICHATTER_AUTHORIZED_USERS", "").strip()
        if users:
            config.authorized_users = [u.strip().lstrip("@") for u in users.split(",") if u.strip()]
        max_users = os.environ.get("AICHATTER_MAX_USERS", "").strip()
        if max_users:
            config.max_users = int(max_users)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def update(self, **changes: Any) -> None:
        for key, value in changes.items():
            if not hasattr(self._config, key):
                raise ValueError(f"Unknown configuration key: {key}")
            setattr(self._config, key, value)
        self.save_to_yaml()

    def add_authorized_user(self, username: str) -> None:
        username = username.strip().lstrip("@")
        if username in self._config.authorized_users:
            return
        if len(self._config.authorized_users) >= self._config.max_users:
            raise ValueError(f"Maximum number of users ({self._config.max_users}) reached")
        self._config.authorized_users.append(username)
        self.save_to_yaml()

    def remove_authorized_user(self, username: str) -> None:
        username = username.strip().lstrip("@")
        self._config.authorized_users = [u for u in self._config.authorized_users if u != username]
        self.save_to_yaml()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_authorized(self, username: str | None) -> bool:
        return bool(username) and username in self._config.authorized_users

    def is_admin(self, username: str | None) -> bool:
        return bool(username) and username in self._config.admin_users

    def has_valid_configuration(self) -> bool:
        return bool(self._config.bot_token) and len(self._config.authorized_users) > 0

    def user_limit_reached(self) -> bool:
        return len(self._config.authorized_users) >= self._config.max_users

    def validate_configuration(self) -> list[str]:
        """Return a list of human-readable problems; empty when valid."""
        errors: list[str] = []
        cfg = self._config
        if not cfg.bot_token:
            errors.append("Bot token is required")
        if not cfg.authorized_users:
            errors.append("At least one authorized user is required")
        if len(cfg.authorized_users) > cfg.max_users:
            errors.append(f"Too many authorized users. Maximum allowed: {cfg.max_users}")
        for username in cfg.authorized_users:
            if not username.strip():
                errors.append("Username cannot be empty")
            elif len(username) > 32:
                errors.append(f"Username too long: {username}")
            elif not _USERNAME_RE.match(username):
                errors.append(f"Invalid username format: {username}")
        return errors


def token_looks_valid(token: str) -> bool:
    """Telegram tokens are ``<digits>:<35+ chars>``."""
    return len(token) >= 40 and bool(re.match(r"^\d+:", token))
