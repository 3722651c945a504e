from __future__ import annotations

import json
import os

from upgradebot.config import DEFAULT_TIMEOUT_MS, apply_env, default_config, expand_config_home, load_from_file
from upgradebot.util.env import load_env_file


def test_defaults() -> None:
    cfg = default_config()
    assert cfg.table_name == "upgradeProcess"
    assert cfg.timeout_ms == DEFAULT_TIMEOUT_MS == 180_000
    assert cfg.default_branch == "master"
    assert cfg.cancel_on_timeout is True


def test_load_from_file_ignores_unknown_keys(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"table_name": "runs", "timeout_ms": "5000", "keep_workdir": 1, "bogus": True}),
        encoding="utf-8",
    )

    cfg = load_from_file(str(path))

    assert cfg.table_name == "runs"
    assert cfg.timeout_ms == 5000
    assert cfg.keep_workdir is True


def test_apply_env_overrides() -> None:
    cfg = apply_env(
        default_config(),
        {
            "GITHUB_AUTH_TOKEN": "ghp_x",
            "LEDGER_CONNECTION_STRING": "sqlite:///tmp/l.db",
            "TASK_TABLE_NAME": "tasks",
            "UPGRADE_TIMEOUT": "60000",
            "UPGRADE_CANCEL_ON_TIMEOUT": "false",
        },
    )
    assert cfg.github_token == "ghp_x"
    assert cfg.connection_string == "sqlite:///tmp/l.db"
    assert cfg.table_name == "tasks"
    assert cfg.timeout_ms == 60_000
    assert cfg.cancel_on_timeout is False


def test_invalid_timeout_falls_back_to_default() -> None:
    assert apply_env(default_config(), {"UPGRADE_TIMEOUT": "soon"}).timeout_ms == DEFAULT_TIMEOUT_MS
    assert apply_env(default_config(), {"UPGRADE_TIMEOUT": "0"}).timeout_ms == DEFAULT_TIMEOUT_MS


def test_expand_config_home(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    cfg = expand_config_home(default_config())
    assert cfg.connection_string == f"file://{tmp_path}/.upgradebot"
    assert cfg.work_root


def test_load_env_file_keeps_existing(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("TASK_TABLE_NAME", "already")
    monkeypatch.delenv("UPGRADE_BOT_LOGIN", raising=False)
    path = tmp_path / ".env"
    path.write_text('# comment\nexport UPGRADE_BOT_LOGIN="bot"\nTASK_TABLE_NAME=other\nnot a pair\n', encoding="utf-8")

    loaded = load_env_file(str(path))

    assert loaded == ["UPGRADE_BOT_LOGIN"]
    assert os.environ["UPGRADE_BOT_LOGIN"] == "bot"
    assert os.environ["TASK_TABLE_NAME"] == "already"
