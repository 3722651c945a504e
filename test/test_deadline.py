from __future__ import annotations

import threading
import time

import pytest

from upgradebot.ledger import RunStatus
from upgradebot.upgrader.deadline import run_with_deadline, start_run, wait
from upgradebot.upgrader.steps import new_params
from upgradebot.util.cancel import CancelToken


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_result_wins_race() -> None:
    assert run_with_deadline(lambda tok: "https://example/pr/1", 1_000) == "https://example/pr/1"


def test_error_wins_race() -> None:
    def boom(tok: CancelToken) -> str:
        raise RuntimeError("fork failed")

    with pytest.raises(RuntimeError, match="fork failed"):
        run_with_deadline(boom, 1_000)


def test_timeout_returns_none_and_cancels() -> None:
    token = CancelToken()
    seen = threading.Event()

    def slow(tok: CancelToken) -> str:
        tok.wait(5)
        seen.set()
        return "late"

    assert run_with_deadline(slow, 50, token=token) is None
    assert token.is_cancelled()
    assert seen.wait(1)


def test_timeout_without_cancel_leaves_work_running() -> None:
    token = CancelToken()
    release = threading.Event()
    finished = threading.Event()

    def slow(tok: CancelToken) -> str:
        release.wait(5)
        finished.set()
        return "late"

    assert run_with_deadline(slow, 50, token=token, cancel_on_timeout=False) is None
    assert not token.is_cancelled()
    release.set()
    assert finished.wait(1)


def test_non_positive_timeout_waits_for_result() -> None:
    def slowish(tok: CancelToken) -> int:
        time.sleep(0.05)
        return 42

    assert run_with_deadline(slowish, 0) == 42


def test_runner_timeout_background_run_finishes(harness) -> None:
    harness.cfg.cancel_on_timeout = False
    harness.transformer.release = threading.Event()
    params = new_params("acme", "widgets", branch="main", run_id="r2")

    assert harness.runner.run_with_deadline(params, timeout_ms=300) is None
    assert _wait_for(lambda: bool(harness.transformer.calls))
    assert harness.ledger.get("r2").status is RunStatus.CHECKOUT

    harness.transformer.release.set()
    assert _wait_for(lambda: harness.ledger.get("r2").status is RunStatus.DONE)
    assert harness.ledger.get("r2").last_status is RunStatus.DONE


def test_runner_timeout_cancels_run_and_records_error(harness) -> None:
    harness.transformer.release = threading.Event()
    params = new_params("acme", "widgets", branch="main", run_id="r3")

    assert harness.runner.run_with_deadline(params, timeout_ms=300) is None

    assert _wait_for(lambda: harness.ledger.get("r3").status is RunStatus.ERROR)
    record = harness.ledger.get("r3")
    assert record.last_status is RunStatus.CHECKOUT
    assert any(entry[0] == "run deadline exceeded" for entry in harness.logs)
    assert "stage_all" not in [c[0] for c in harness.git.calls]


def test_run_handle_without_deadline() -> None:
    handle = start_run(lambda tok: "done", 0)

    assert handle.timeout is None
    assert wait(handle) == "done"
    assert not handle.token.is_cancelled()
