from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional

from upgradebot.config import Config
from upgradebot.host.github import Fork, PullRequest, SourceHost
from upgradebot.ledger.models import RunStatus
from upgradebot.transform.upgrade import LATEST, Transformer, normalize_version
from upgradebot.util.cancel import CancelToken
from upgradebot.vcs.git import Author, Git

BRANCH_PREFIX = "ts-upgrade-at-"

_NAME = re.compile(r"[A-Za-z0-9_.-]+")


@dataclass
class RunParams:
    owner: str
    repo: str
    branch: str
    version: str = LATEST
    run_id: Optional[str] = None


def new_params(
    owner: str,
    repo: str,
    branch: str | None = None,
    version: str | None = None,
    run_id: str | None = None,
    default_branch: str = "master",
) -> RunParams:
    owner = (owner or "").strip()
    repo = (repo or "").strip()
    if not owner:
        raise ValueError("owner is required")
    if not repo:
        raise ValueError("repo is required")
    for field, value in (("owner", owner), ("repo", repo)):
        if not _NAME.fullmatch(value) or value in (".", ".."):
            raise ValueError(f"invalid {field}: {value!r}")
    return RunParams(
        owner=owner,
        repo=repo,
        branch=(branch or "").strip() or default_branch,
        version=normalize_version(version),
        run_id=(run_id or "").strip() or None,
    )


def working_branch_name(tree_id: str) -> str:
    if not tree_id:
        raise ValueError("tree id is empty")
    return f"{BRANCH_PREFIX}{tree_id[:8]}"


@dataclass
class StepContext:
    params: RunParams
    workdir: str
    cfg: Config
    host: SourceHost
    git: Git
    transformer: Transformer
    token: Optional[CancelToken] = None
    log: Callable[..., None] = print
    bot_login: str = ""
    fork: Optional[Fork] = None
    working_branch: str = ""
    pull_request: Optional[PullRequest] = None

    def info(self, message: str, **data: object) -> None:
        payload = {"owner": self.params.owner, "repo": self.params.repo}
        if self.params.run_id:
            payload["run_id"] = self.params.run_id
        payload.update(data)
        self.log(message, payload)


@dataclass(frozen=True)
class Step:
    name: str
    status: RunStatus
    action: Callable[[StepContext], None]


def _auth(ctx: StepContext) -> None:
    ctx.bot_login = ctx.cfg.bot_login or ctx.host.authenticated_login(ctx.token)
    ctx.info("auth succeed", login=ctx.bot_login)


def _fork(ctx: StepContext) -> None:
    ctx.fork = ctx.host.create_fork(ctx.params.owner, ctx.params.repo, ctx.token)
    if not ctx.fork.clone_url:
        raise RuntimeError("fork response has no clone url")
    ctx.info("fork succeed", fork=ctx.fork.html_url)


def _clone(ctx: StepContext) -> None:
    if ctx.fork is None:
        raise RuntimeError("clone requires a fork")
    ctx.info("clone started", fork=ctx.fork.html_url, dir=ctx.workdir)
    ctx.git.clone(
        ctx.fork.clone_url,
        ctx.workdir,
        single_branch=True,
        depth=1,
        branch=ctx.params.branch,
        token=ctx.token,
    )
    ctx.info("clone succeed", dir=ctx.workdir)


def _branch(ctx: StepContext) -> None:
    branch = ctx.params.branch
    ctx.git.checkout(ctx.workdir, branch, ctx.token)
    commits = ctx.git.log(ctx.workdir, branch, depth=1, token=ctx.token)
    if not commits:
        raise RuntimeError(f"branch {branch} has no commits")
    tree = commits[0].tree
    ctx.info("current commit", sha=commits[0].sha, tree=tree)
    ctx.working_branch = working_branch_name(tree)
    ctx.git.create_branch(ctx.workdir, ctx.working_branch, ctx.token)
    ctx.info("create branch", branch=ctx.working_branch)


def _checkout(ctx: StepContext) -> None:
    ctx.git.checkout(ctx.workdir, ctx.working_branch, ctx.token)
    ctx.info("checkout branch", branch=ctx.working_branch)


def _upgrade(ctx: StepContext) -> None:
    ctx.transformer.upgrade(ctx.workdir, ctx.params.version, ctx.token)
    ctx.info("upgrade succeed", version=ctx.params.version)


def _add(ctx: StepContext) -> None:
    ctx.git.stage_all(ctx.workdir, ctx.token)
    ctx.info("add changes succeed")


def _commit(ctx: StepContext) -> None:
    author = Author(name=ctx.cfg.bot_name, email=ctx.cfg.bot_email)
    ctx.git.commit(ctx.workdir, author, ctx.cfg.commit_message, ctx.token)
    ctx.info("commit succeed")


def _push(ctx: StepContext) -> None:
    ctx.git.push(
        ctx.workdir,
        "origin",
        ctx.working_branch,
        force=True,
        auth_token=ctx.cfg.github_token,
        token=ctx.token,
    )
    ctx.info("push succeed", branch=ctx.working_branch)


def _star(ctx: StepContext) -> None:
    ctx.host.star_repo(ctx.params.owner, ctx.params.repo, ctx.token)
    ctx.info("star succeed")


def _pull_request(ctx: StepContext) -> None:
    ctx.pull_request = ctx.host.create_pull_request(
        ctx.params.owner,
        ctx.params.repo,
        title=ctx.cfg.pr_title,
        base=ctx.params.branch,
        head=f"{ctx.bot_login}:{ctx.working_branch}",
        token=ctx.token,
    )
    ctx.info("pull request created", url=ctx.pull_request.url)


# Executed in this order; each status is recorded once its step succeeds.
STEPS: List[Step] = [
    Step("auth", RunStatus.AUTH, _auth),
    Step("fork", RunStatus.FORK, _fork),
    Step("clone", RunStatus.CLONE, _clone),
    Step("branch", RunStatus.BRANCH, _branch),
    Step("checkout", RunStatus.CHECKOUT, _checkout),
    Step("upgrade", RunStatus.UPGRADE, _upgrade),
    Step("add", RunStatus.ADD, _add),
    Step("commit", RunStatus.COMMIT, _commit),
    Step("push", RunStatus.PUSH, _push),
    Step("star", RunStatus.STAR, _star),
    Step("pull_request", RunStatus.PULL_REQUEST, _pull_request),
]
