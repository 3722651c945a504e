#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any, Dict

import httpx

from upgradebot.util.id import new_run_id
from upgradebot.util.lookpath import look_paths


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="upgradectl", add_help=False)
    parser.add_argument("-h", "--help", action="store_true")
    subparsers = parser.add_subparsers(dest="command")

    parser_start = subparsers.add_parser("start")
    parser_start.add_argument("--owner", required=True)
    parser_start.add_argument("--repo", required=True)
    parser_start.add_argument("--branch", default="")
    parser_start.add_argument("--id", default="", help="run id (generated when omitted)")
    parser_start.add_argument("--no-id", dest="no_id", action="store_true", help="run without a ledger record")
    parser_start.add_argument("--version", default="")
    parser_start.add_argument("--url", default="")

    parser_status = subparsers.add_parser("status")
    parser_status.add_argument("run_id")
    parser_status.add_argument("--url", default="")

    parser_list = subparsers.add_parser("list")
    parser_list.add_argument("--owner", default="")
    parser_list.add_argument("--url", default="")

    subparsers.add_parser("doctor")

    args = parser.parse_args(argv)

    if args.help or not args.command:
        usage()
        return 2 if not args.command else 0

    try:
        if args.command == "start":
            return cmd_start(args)
        if args.command == "status":
            return cmd_status(args)
        if args.command == "list":
            return cmd_list(args)
        if args.command == "doctor":
            return cmd_doctor()
    except (RuntimeError, httpx.HTTPError) as err:
        fatal(str(err))
        return 1
    print(f"unknown command: {args.command}")
    usage()
    return 2


def usage() -> None:
    print(
        """upgradectl - CLI client for upgraded

Usage:
  upgradectl start --owner <owner> --repo <repo> [--branch <name>] [--id <run_id> | --no-id] [--version <v>] [--url <base>]
  upgradectl status <run_id> [--url <base>]
  upgradectl list [--owner <owner>] [--url <base>]
  upgradectl doctor

Environment:
  UPGRADE_URL         Base URL for upgraded (default http://127.0.0.1:7071)
  UPGRADE_AUTH_TOKEN  Bearer token (optional, must match upgraded)
"""
    )


def base_url(flag_url: str) -> str:
    if flag_url.strip():
        return flag_url.strip().rstrip("/")
    env = os.environ.get("UPGRADE_URL", "").strip()
    if env:
        return env.rstrip("/")
    return "http://127.0.0.1:7071"


def auth_token() -> str:
    return os.environ.get("UPGRADE_AUTH_TOKEN", "").strip()


def do_json(
    method: str,
    url: str,
    body: Any | None = None,
    timeout: float | None = 30.0,
    params: Dict[str, str] | None = None,
) -> Any:
    headers: Dict[str, str] = {"Content-Type": "application/json"}
    tok = auth_token()
    if tok:
        headers["Authorization"] = f"Bearer {tok}"
    with httpx.Client(timeout=timeout) as client:
        resp = client.request(method, url, headers=headers, json=body, params=params)
    if resp.status_code >= 400:
        raise RuntimeError(f"http {resp.status_code}: {resp.text.strip()}")
    if resp.status_code == 204:
        return None
    return resp.json() if resp.text else None


def cmd_start(args: argparse.Namespace) -> int:
    run_id = "" if args.no_id else (args.id or new_run_id())
    options = {"owner": args.owner, "repo": args.repo}
    if args.branch:
        options["branch"] = args.branch
    if args.version:
        options["version"] = args.version
    if run_id:
        options["id"] = run_id
        print(f"run {run_id}")
    # The server holds the request open until the run finishes or its deadline passes.
    resp = do_json("POST", f"{base_url(args.url)}/v1/upgrades", {"options": options}, timeout=None)
    pr = (resp or {}).get("pr")
    if pr:
        print(pr)
        return 0
    print("no pull request yet (deadline exceeded); poll with `upgradectl status`")
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    resp = do_json("POST", f"{base_url(args.url)}/v1/upgrades/status", {"id": args.run_id})
    data = (resp or {}).get("data")
    if not data:
        fatal(f"run not found: {args.run_id}")
        return 1
    print(json.dumps(data, indent=2))
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    params = {"owner": args.owner} if args.owner else None
    for record in do_json("GET", f"{base_url(args.url)}/v1/upgrades", params=params) or []:
        print(
            f"{record['runId']}  {record['owner']}/{record['repo']}  "
            f"{str(record['statusName']).ljust(12)}  last={record['lastStatusName']}"
        )
    return 0


def cmd_doctor() -> int:
    print("doctor:")
    missing = 0
    for cmd, resolved in look_paths(["git", "npx"]).items():
        if resolved:
            print(f"  - {cmd.ljust(6)} OK ({resolved})")
        else:
            print(f"  - {cmd.ljust(6)} MISSING")
            missing += 1
    return 1 if missing else 0


def fatal(message: str) -> None:
    print(f"error: {message}", file=sys.stderr)


if __name__ == "__main__":
    sys.exit(main())
