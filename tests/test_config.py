"""ConfigurationManager: YAML persistence, env overrides, validation."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest
import yaml


def _ensure_gateway_path() -> None:
    repo_root = Path(__file__).parent.parent
    gateway_root = str(repo_root / "aichatter-gateway")
    if gateway_root not in sys.path:
        sys.path.insert(0, gateway_root)


_ensure_gateway_path()

import bridge_config as cfg  # noqa: E402

VALID_TOKEN = "123456789:" + "A" * 35


def _write(path: Path, data: dict) -> None:
    path.write_text(yaml.safe_dump(data), encoding="utf-8")


def test_missing_file_gives_defaults(tmp_path) -> None:
    manager = cfg.ConfigurationManager(tmp_path / "none.yml", read_env=False)
    config = manager.load()
    assert config.bot_token == ""
    assert config.authorized_users == []
    assert config.max_users == cfg.DEFAULT_MAX_USERS
    assert manager.has_valid_configuration() is False


def test_load_reads_telegram_section(tmp_path) -> None:
    path = tmp_path / "ai-chatter.yml"
    _write(path, {"telegram": {"bot_token": VALID_TOKEN, "authorized_users": ["alice"], "max_users": 3}})

    manager = cfg.ConfigurationManager(path, read_env=False)
    config = manager.load()

    assert config.bot_token == VALID_TOKEN
    assert config.authorized_users == ["alice"]
    assert config.max_users == 3
    assert manager.has_valid_configuration() is True
    assert manager.validate_configuration() == []


def test_environment_overrides_file(tmp_path, monkeypatch) -> None:
    path = tmp_path / "ai-chatter.yml"
    _write(path, {"telegram": {"bot_token": "file-token", "authorized_users": ["alice"]}})
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", VALID_TOKEN)
    monkeypatch.setenv("AICHATTER_AUTHORIZED_USERS", "@bob, carol")

    config = cfg.ConfigurationManager(path).load()

    assert config.bot_token == VALID_TOKEN
    assert config.authorized_users == ["bob", "carol"]


def test_add_and_remove_user_persist(tmp_path) -> None:
    path = tmp_path / "sub" / "ai-chatter.yml"
    manager = cfg.ConfigurationManager(path, read_env=False)
    manager.load()

    manager.add_authorized_user("@alice")
    manager.add_authorized_user("alice")
    manager.add_authorized_user("bob")
    manager.remove_authorized_user("alice")

    saved = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert saved["telegram"]["authorized_users"] == ["bob"]


def test_add_user_beyond_limit_raises(tmp_path) -> None:
    manager = cfg.ConfigurationManager(tmp_path / "c.yml", read_env=False)
    manager.config.max_users = 1
    manager.add_authorized_user("alice")
    with pytest.raises(ValueError, match="Maximum number of users"):
        manager.add_authorized_user("bob")
    assert manager.user_limit_reached() is True


def test_validate_reports_bad_usernames(tmp_path) -> None:
    manager = cfg.ConfigurationManager(tmp_path / "c.yml", read_env=False)
    manager.config.bot_token = VALID_TOKEN
    manager.config.authorized_users = ["ok_user", "bad-name", "x" * 33]

    errors = manager.validate_configuration()

    assert "Invalid username format: bad-name" in errors
    assert any(e.startswith("Username too long") for e in errors)
    assert len(errors) == 2


def test_update_rejects_unknown_keys(tmp_path) -> None:
    manager = cfg.ConfigurationManager(tmp_path / "c.yml", read_env=False)
    with pytest.raises(ValueError):
        manager.update(colour="blue")


def test_token_shape() -> None:
    assert cfg.token_looks_valid(VALID_TOKEN)
    assert not cfg.token_looks_valid("short")
    assert not cfg.token_looks_valid("x" * 45)
