from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping, Optional

from upgradebot.util.env import env_bool, env_int
from upgradebot.util.path import expand_home, expand_url_home

DEFAULT_TIMEOUT_MS = 3 * 60 * 1000


@dataclass
class Config:
    listen_addr: str = "127.0.0.1:7071"
    auth_token: str = ""
    github_token: str = ""
    github_api_url: str = "https://api.github.com"
    connection_string: str = "file://~/.upgradebot"
    table_name: str = "upgradeProcess"
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    cancel_on_timeout: bool = True
    default_branch: str = "master"
    bot_login: str = ""
    bot_name: str = "ts-upgrade-bot"
    bot_email: str = "tsupgradebot@gmail.com"
    commit_message: str = "Upgrade TypeScript syntax"
    pr_title: str = "Upgrade TypeScript syntax"
    upgrade_command: str = "npx --yes ts-upgrade --version {version} {dir}"
    work_root: str = ""
    keep_workdir: bool = False


_ENV_STRINGS = {
    "listen_addr": "UPGRADE_LISTEN",
    "auth_token": "UPGRADE_AUTH_TOKEN",
    "github_token": "GITHUB_AUTH_TOKEN",
    "github_api_url": "GITHUB_API_URL",
    "connection_string": "LEDGER_CONNECTION_STRING",
    "table_name": "TASK_TABLE_NAME",
    "default_branch": "UPGRADE_DEFAULT_BRANCH",
    "bot_login": "UPGRADE_BOT_LOGIN",
    "upgrade_command": "UPGRADE_COMMAND",
    "work_root": "UPGRADE_WORK_ROOT",
}


def default_config() -> Config:
    return Config()


def load_from_file(file_path: str) -> Config:
    if not file_path:
        raise ValueError("path is empty")
    raw = Path(file_path).read_text(encoding="utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"config must be a JSON object: {file_path}")
    cfg = Config()
    known = {f.name: f for f in fields(Config)}
    for key, value in data.items():
        if key not in known:
            continue
        default = getattr(cfg, key)
        if isinstance(default, bool):
            setattr(cfg, key, bool(value))
        elif isinstance(default, int):
            setattr(cfg, key, int(value))
        else:
            setattr(cfg, key, str(value))
    return cfg


def apply_env(cfg: Config, environ: Optional[Mapping[str, str]] = None) -> Config:
    env = os.environ if environ is None else environ
    for name, key in _ENV_STRINGS.items():
        value = env.get(key, "").strip()
        if value:
            setattr(cfg, name, value)
    if env.get("UPGRADE_TIMEOUT"):
        cfg.timeout_ms = env_int(env.get("UPGRADE_TIMEOUT"), DEFAULT_TIMEOUT_MS)
    cfg.cancel_on_timeout = env_bool(env.get("UPGRADE_CANCEL_ON_TIMEOUT"), cfg.cancel_on_timeout)
    return cfg


def expand_config_home(cfg: Config) -> Config:
    cfg.connection_string = expand_url_home(cfg.connection_string)
    cfg.work_root = expand_home(cfg.work_root) or tempfile.gettempdir()
    return cfg
