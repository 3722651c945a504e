from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Callable, List, Optional

from upgradebot.config import Config
from upgradebot.host.github import SourceHost
from upgradebot.ledger import Ledger, RunStatus
from upgradebot.transform.upgrade import Transformer
from upgradebot.util.cancel import CancelToken, check
from upgradebot.util.id import new_workdir_name
from upgradebot.vcs.git import Git
from .deadline import RunHandle, start_run, wait
from .steps import STEPS, RunParams, Step, StepContext


class Runner:
    def __init__(
        self,
        ledger: Ledger,
        host: SourceHost,
        git: Git,
        transformer: Transformer,
        cfg: Config,
        log: Callable[..., None] = print,
        steps: Optional[List[Step]] = None,
    ) -> None:
        self._ledger = ledger
        self._host = host
        self._git = git
        self._transformer = transformer
        self._cfg = cfg
        self._log = log
        self._steps = list(steps or STEPS)

    def run(self, params: RunParams, token: CancelToken | None = None) -> str:
        run_id = params.run_id
        if run_id:
            self._ledger.init()
            self._ledger.start(run_id, params.owner, params.repo, params.branch, params.version)

        workdir = str(Path(self._cfg.work_root or tempfile.gettempdir()) / new_workdir_name())
        ctx = StepContext(
            params=params,
            workdir=workdir,
            cfg=self._cfg,
            host=self._host,
            git=self._git,
            transformer=self._transformer,
            token=token,
            log=self._log,
        )
        recorded = RunStatus.AUTH
        try:
            for step in self._steps:
                check(token)
                step.action(ctx)
                if run_id and step.status > recorded:
                    self._ledger.advance(params.owner, run_id, step.status)
                    recorded = step.status
            if ctx.pull_request is None:
                raise RuntimeError("run finished without a pull request")
            if run_id:
                self._ledger.advance(params.owner, run_id, RunStatus.DONE)
        except Exception as err:
            self._log("run failed", {"owner": params.owner, "repo": params.repo, "run_id": run_id, "err": str(err)})
            if run_id:
                self._ledger.fail(params.owner, run_id)
            raise
        finally:
            if not self._cfg.keep_workdir:
                shutil.rmtree(workdir, ignore_errors=True)

        return ctx.pull_request.url

    def submit(self, params: RunParams, timeout_ms: int | None = None) -> RunHandle:
        timeout = self._cfg.timeout_ms if timeout_ms is None else timeout_ms
        return start_run(
            lambda tok: self.run(params, tok),
            timeout,
            cancel_on_timeout=self._cfg.cancel_on_timeout,
            on_timeout=lambda: self._log(
                "run deadline exceeded",
                {"owner": params.owner, "repo": params.repo, "run_id": params.run_id, "timeout_ms": timeout},
            ),
        )

    def run_with_deadline(self, params: RunParams, timeout_ms: int | None = None) -> Optional[str]:
        return wait(self.submit(params, timeout_ms))
