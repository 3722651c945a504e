#!/usr/bin/env python3
from __future__ import annotations

import argparse
import os

import uvicorn

from upgradebot.api.server import Server
from upgradebot.config import Config, apply_env, default_config, expand_config_home, load_from_file
from upgradebot.host.github import GitHubClient
from upgradebot.ledger import Ledger, open_table_store
from upgradebot.transform.upgrade import CommandTransformer
from upgradebot.upgrader.runner import Runner
from upgradebot.util.env import load_env_file
from upgradebot.vcs.git import Git


def main() -> None:
    parser = argparse.ArgumentParser(prog="upgraded")
    parser.add_argument("--listen", default="", help="listen address host:port")
    parser.add_argument("--auth-token", default="", help="bearer token required by the HTTP API")
    parser.add_argument("--connection-string", default="", help="ledger connection string")
    parser.add_argument("--config", default="", help="config file")
    args = parser.parse_args()

    load_env_file(".env.local")
    load_env_file(".env")

    cfg = default_config()
    config_path = args.config or os.environ.get("UPGRADE_CONFIG", "")
    if config_path:
        try:
            cfg = load_from_file(config_path)
        except Exception as err:
            print("failed to load config file", {"path": config_path, "err": err})
    cfg = apply_env(cfg)

    if args.listen:
        cfg.listen_addr = args.listen
    if args.auth_token:
        cfg.auth_token = args.auth_token
    if args.connection_string:
        cfg.connection_string = args.connection_string

    cfg = expand_config_home(cfg)
    if not cfg.github_token:
        print("GITHUB_AUTH_TOKEN is not set; upgrades will fail at the auth step")

    server = build_server(cfg)
    host, port = parse_listen_addr(cfg.listen_addr)

    print(
        "upgraded listening",
        {"addr": cfg.listen_addr, "table": cfg.table_name, "timeout_ms": cfg.timeout_ms},
    )
    if cfg.auth_token:
        print("auth enabled", {"mode": "bearer"})

    uvicorn.run(server.handler(), host=host, port=port, log_level="info")


def build_server(cfg: Config) -> Server:
    ledger = Ledger(open_table_store(cfg.connection_string), cfg.table_name)
    runner = Runner(
        ledger,
        GitHubClient(cfg.github_token, cfg.github_api_url),
        Git(),
        CommandTransformer(cfg.upgrade_command),
        cfg,
    )
    return Server(ledger, cfg.auth_token, runner, default_branch=cfg.default_branch)


def parse_listen_addr(addr: str) -> tuple[str, int]:
    trimmed = addr.strip() or "127.0.0.1:7071"
    if ":" in trimmed:
        host, _, port_raw = trimmed.rpartition(":")
    else:
        host, port_raw = trimmed, "7071"
    try:
        port = int(port_raw)
    except ValueError:
        port = 7071
    return host or "127.0.0.1", port


if __name__ == "__main__":
    main()
