from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from upgradebot.upgrader.steps import working_branch_name
from upgradebot.vcs.git import Author, Git, GitError

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

IDENTITY = ["-c", "user.name=tester", "-c", "user.email=tester@example.com"]


def _git(cwd: Path, *args: str) -> str:
    out = subprocess.run(["git", *IDENTITY, *args], cwd=cwd, check=True, capture_output=True, text=True)
    return out.stdout.strip()


@pytest.fixture
def origin(tmp_path) -> Path:
    repo = tmp_path / "origin"
    repo.mkdir()
    _git(repo, "init", "--quiet")
    _git(repo, "checkout", "--quiet", "-b", "main")
    (repo / "index.ts").write_text("var answer = 42;\n", encoding="utf-8")
    _git(repo, "add", ".")
    _git(repo, "commit", "--quiet", "-m", "initial")
    return repo


def test_clone_branch_commit_and_force_push(tmp_path, origin) -> None:
    git = Git()
    work = tmp_path / "work"

    git.clone(origin.as_uri(), str(work), single_branch=True, depth=1, branch="main")
    git.checkout(str(work), "main")
    commits = git.log(str(work), "main", depth=1)
    assert len(commits) == 1
    assert commits[0].tree == _git(origin, "rev-parse", "main^{tree}")

    branch = working_branch_name(commits[0].tree)
    git.create_branch(str(work), branch)
    git.checkout(str(work), branch)
    (work / "index.ts").write_text("const answer = 42;\n", encoding="utf-8")
    git.stage_all(str(work))
    git.commit(str(work), Author("ts-upgrade-bot", "tsupgradebot@gmail.com"), "Upgrade TypeScript syntax")
    git.push(str(work), "origin", branch, force=True)

    assert _git(origin, "log", "-1", "--format=%an %s", branch) == "ts-upgrade-bot Upgrade TypeScript syntax"

    # A second run from the same source state lands on the same branch and overwrites it.
    again = tmp_path / "again"
    git.clone(origin.as_uri(), str(again), branch="main")
    assert working_branch_name(git.log(str(again), "main")[0].tree) == branch
    git.create_branch(str(again), branch)
    git.checkout(str(again), branch)
    git.commit(str(again), Author("ts-upgrade-bot", "tsupgradebot@gmail.com"), "Upgrade TypeScript syntax")
    git.push(str(again), "origin", branch, force=True)


def test_checkout_unknown_ref_raises(tmp_path, origin) -> None:
    git = Git()
    work = tmp_path / "work"
    git.clone(origin.as_uri(), str(work), branch="main")

    with pytest.raises(GitError, match="git checkout failed"):
        git.checkout(str(work), "does-not-exist")
