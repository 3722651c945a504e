from __future__ import annotations

import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from upgradebot.util.cancel import CancelToken

T = TypeVar("T")


@dataclass
class RunHandle:
    future: Future
    token: CancelToken
    timeout_ms: int
    cancel_on_timeout: bool = True
    on_timeout: Optional[Callable[[], None]] = None

    @property
    def timeout(self) -> Optional[float]:
        if self.timeout_ms and self.timeout_ms > 0:
            return self.timeout_ms / 1000
        return None

    def expire(self) -> None:
        if self.on_timeout:
            self.on_timeout()
        if self.cancel_on_timeout:
            self.token.cancel("deadline exceeded")


def start_run(
    fn: Callable[[CancelToken], T],
    timeout_ms: int,
    token: CancelToken | None = None,
    cancel_on_timeout: bool = True,
    on_timeout: Callable[[], None] | None = None,
) -> RunHandle:
    token = token or CancelToken()
    future: Future = Future()
    future.set_running_or_notify_cancel()

    def work() -> None:
        try:
            future.set_result(fn(token))
        except BaseException as err:
            future.set_exception(err)

    thread = threading.Thread(target=work, name="upgrade-run", daemon=True)
    thread.start()
    return RunHandle(future, token, timeout_ms, cancel_on_timeout, on_timeout)


def wait(handle: RunHandle) -> Optional[T]:
    try:
        return handle.future.result(handle.timeout)
    except FutureTimeout:
        handle.expire()
        return None


def run_with_deadline(
    fn: Callable[[CancelToken], T],
    timeout_ms: int,
    token: CancelToken | None = None,
    cancel_on_timeout: bool = True,
    on_timeout: Callable[[], None] | None = None,
) -> Optional[T]:
    """Race ``fn`` against a timer.

    Returns ``fn``'s result, re-raises its error, or returns ``None`` when the
    timer fires first. The worker thread is never joined after a timeout: with
    ``cancel_on_timeout`` the token is cancelled so ``fn`` stops at its next
    cancellation check, otherwise it keeps running to completion.
    A ``timeout_ms`` of zero or less waits without a deadline.
    """
    return wait(start_run(fn, timeout_ms, token, cancel_on_timeout, on_timeout))
