from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from upgradebot.config import Config
from upgradebot.host.github import Fork, PullRequest, SourceHost
from upgradebot.ledger import Ledger, MemoryTableStore
from upgradebot.transform.upgrade import Transformer
from upgradebot.upgrader.runner import Runner
from upgradebot.util.cancel import CancelToken, check
from upgradebot.vcs.git import Author, Commit

TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


class RecordingTables(MemoryTableStore):
    """Memory store that keeps every merge so tests can check write order."""

    def __init__(self) -> None:
        super().__init__()
        self.merges: List[Dict[str, Any]] = []
        self.fail_merges = False

    def upsert_merge(self, table: str, entity: Dict[str, Any]) -> None:
        if self.fail_merges:
            raise OSError("ledger unavailable")
        self.merges.append(dict(entity))
        super().upsert_merge(table, entity)


class DummyHost(SourceHost):
    def __init__(self, login: str = "ts-upgrade-bot") -> None:
        self.login = login
        self.calls: List[tuple] = []
        self.fail_on: Optional[str] = None

    def _call(self, name: str, *args: object) -> None:
        self.calls.append((name, *args))
        if self.fail_on == name:
            raise RuntimeError(f"{name} exploded")

    def authenticated_login(self, token: CancelToken | None = None) -> str:
        self._call("authenticated_login")
        return self.login

    def create_fork(self, owner: str, repo: str, token: CancelToken | None = None) -> Fork:
        self._call("create_fork", owner, repo)
        return Fork(
            clone_url=f"https://github.com/{self.login}/{repo}.git",
            html_url=f"https://github.com/{self.login}/{repo}",
            owner_login=self.login,
        )

    def star_repo(self, owner: str, repo: str, token: CancelToken | None = None) -> None:
        self._call("star_repo", owner, repo)

    def create_pull_request(self, owner, repo, title, base, head, token=None) -> PullRequest:
        self._call("create_pull_request", owner, repo, title, base, head)
        return PullRequest(url=f"https://api.github.com/repos/{owner}/{repo}/pulls/7", number=7)


class DummyGit:
    def __init__(self, tree: str = TREE) -> None:
        self.tree = tree
        self.calls: List[tuple] = []
        self.fail_on: Optional[str] = None

    def _call(self, name: str, *args: object) -> None:
        self.calls.append((name, *args))
        if self.fail_on == name:
            raise RuntimeError(f"git {name} exploded")

    def clone(self, url, dir, single_branch=True, depth=1, branch="", token=None) -> None:
        self._call("clone", url, dir, single_branch, depth, branch)
        Path(dir).mkdir(parents=True)
        (Path(dir) / "index.ts").write_text("var x = 1;\n", encoding="utf-8")

    def checkout(self, dir, ref, token=None) -> None:
        self._call("checkout", ref)

    def log(self, dir, ref="HEAD", depth=1, token=None) -> List[Commit]:
        self._call("log", ref, depth)
        return [Commit(sha="c0ffee" * 6 + "c0ff", tree=self.tree)]

    def create_branch(self, dir, name, token=None) -> None:
        self._call("create_branch", name)

    def stage_all(self, dir, token=None) -> None:
        self._call("stage_all")

    def commit(self, dir, author: Author, message, token=None) -> None:
        self._call("commit", author.name, author.email, message)

    def push(self, dir, remote, ref, force=False, auth_token="", token=None) -> None:
        self._call("push", remote, ref, force)


class DummyTransformer(Transformer):
    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.error: Optional[Exception] = None
        self.release: Optional[threading.Event] = None

    def upgrade(self, project_dir: str, version: str, token: CancelToken | None = None) -> None:
        self.calls.append((project_dir, version))
        if self.release is not None:
            while not self.release.wait(0.01):
                check(token)
        if self.error is not None:
            raise self.error


class Harness:
    def __init__(self, tmp_path) -> None:
        self.tables = RecordingTables()
        self.ledger = Ledger(self.tables, "upgradeProcess")
        self.host = DummyHost()
        self.git = DummyGit()
        self.transformer = DummyTransformer()
        self.logs: List[tuple] = []
        self.cfg = Config(github_token="ghp_test", work_root=str(tmp_path), timeout_ms=5_000)
        self.runner = Runner(
            self.ledger,
            self.host,
            self.git,
            self.transformer,
            self.cfg,
            log=lambda *args: self.logs.append(args),
        )


@pytest.fixture
def harness(tmp_path) -> Harness:
    return Harness(tmp_path)
