from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import List, Optional

from upgradebot.util.cancel import CancelToken
from upgradebot.util.exec import CmdResult, CommandError, ExecOptions, run_command


class GitError(RuntimeError):
    def __init__(self, message: str, result: Optional[CmdResult] = None) -> None:
        super().__init__(message)
        self.result = result


@dataclass
class Commit:
    sha: str
    tree: str


@dataclass
class Author:
    name: str
    email: str


class Git:
    def __init__(self, binary: str = "git", timeout_ms: int = 10 * 60_000) -> None:
        self._binary = binary
        self._timeout_ms = timeout_ms

    def clone(
        self,
        url: str,
        dir: str,
        single_branch: bool = True,
        depth: int = 1,
        branch: str = "",
        token: CancelToken | None = None,
    ) -> None:
        args = ["clone"]
        if single_branch:
            args.append("--single-branch")
        if depth > 0:
            args += ["--depth", str(depth)]
        if branch:
            args += ["--branch", branch]
        args += [url, dir]
        self._run(args, None, token)

    def checkout(self, dir: str, ref: str, token: CancelToken | None = None) -> None:
        self._run(["checkout", ref], dir, token)

    def log(self, dir: str, ref: str = "HEAD", depth: int = 1, token: CancelToken | None = None) -> List[Commit]:
        args = ["log", "--format=%H %T"]
        if depth > 0:
            args.append(f"--max-count={depth}")
        args += [ref or "HEAD", "--"]
        result = self._run(args, dir, token)
        commits: List[Commit] = []
        for line in result.stdout.splitlines():
            sha, _, tree = line.strip().partition(" ")
            if sha and tree:
                commits.append(Commit(sha=sha, tree=tree))
        return commits

    def create_branch(self, dir: str, name: str, token: CancelToken | None = None) -> None:
        self._run(["branch", "--force", name], dir, token)

    def stage_all(self, dir: str, token: CancelToken | None = None) -> None:
        self._run(["add", "--all", "."], dir, token)

    def commit(self, dir: str, author: Author, message: str, token: CancelToken | None = None) -> None:
        args = [
            "-c",
            f"user.name={author.name}",
            "-c",
            f"user.email={author.email}",
            "commit",
            "--allow-empty",
            "--no-verify",
            "-m",
            message,
        ]
        self._run(args, dir, token)

    def push(
        self,
        dir: str,
        remote: str,
        ref: str,
        force: bool = False,
        auth_token: str = "",
        token: CancelToken | None = None,
    ) -> None:
        args: List[str] = []
        header = ""
        if auth_token:
            header = "Authorization: Basic " + base64.b64encode(f"{auth_token}:x-oauth-basic".encode()).decode()
            args += ["-c", f"http.extraheader={header}"]
        args.append("push")
        if force:
            args.append("--force")
        args += [remote, f"refs/heads/{ref}:refs/heads/{ref}"]
        self._run(args, dir, token, redact=[header])

    def _run(
        self,
        args: List[str],
        dir: Optional[str],
        token: CancelToken | None,
        redact: Optional[List[str]] = None,
    ) -> CmdResult:
        opts = ExecOptions(
            dir=dir,
            env={"GIT_TERMINAL_PROMPT": "0"},
            timeout_ms=self._timeout_ms,
            signal=token,
            redact=redact,
        )
        try:
            return run_command([self._binary, *args], opts)
        except CommandError as err:
            stderr = err.result.stderr.strip().splitlines()
            detail = stderr[-1] if stderr else str(err)
            raise GitError(f"git {_verb(args)} failed: {detail}", err.result) from err


def _verb(args: List[str]) -> str:
    for i, arg in enumerate(args):
        if arg == "-c":
            continue
        if i > 0 and args[i - 1] == "-c":
            continue
        return arg
    return "command"
