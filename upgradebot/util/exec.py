from __future__ import annotations

import os
import shlex
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .cancel import CancelToken, CanceledError


@dataclass
class CmdResult:
    cmd: str
    exit_code: int
    stdout: str
    stderr: str
    duration: str


@dataclass
class ExecOptions:
    dir: Optional[str] = None
    env: Optional[Dict[str, str]] = None
    timeout_ms: Optional[int] = None
    signal: Optional[CancelToken] = None
    # Replaced with "***" in the recorded command line.
    redact: Optional[List[str]] = None


class CommandError(RuntimeError):
    def __init__(self, message: str, result: CmdResult) -> None:
        super().__init__(message)
        self.result = result


def run_command(argv: Sequence[str] | str, opts: ExecOptions | None = None) -> CmdResult:
    """Run ``argv`` and return its result, raising ``CommandError`` on a non-zero exit.

    A string is run through ``/bin/bash -lc``. When ``opts.signal`` is cancelled
    the process is killed and ``CanceledError`` is raised.
    """
    if not argv:
        raise ValueError("cmd is empty")
    if opts is None:
        opts = ExecOptions()
    if opts.signal is not None:
        opts.signal.raise_if_cancelled()
    if isinstance(argv, str):
        args = ["/bin/bash", "-lc", argv]
        display = argv
    else:
        args = list(argv)
        display = shlex.join(args)
    for secret in opts.redact or []:
        if secret:
            display = display.replace(secret, "***")
    timeout_ms = opts.timeout_ms if opts.timeout_ms and opts.timeout_ms > 0 else 10 * 60_000
    start = time.time()

    env = dict(os.environ)
    if opts.env:
        env.update(opts.env)
    process = subprocess.Popen(
        args,
        cwd=opts.dir,
        env=env,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )

    kill_lock = threading.Lock()
    finished = threading.Event()

    def kill() -> None:
        with kill_lock:
            if process.poll() is None:
                process.kill()

    cancel_thread = None
    if opts.signal:
        signal = opts.signal

        def watch_cancel() -> None:
            while not finished.is_set():
                if signal.wait(0.1):
                    kill()
                    return

        cancel_thread = threading.Thread(target=watch_cancel, daemon=True)
        cancel_thread.start()

    try:
        stdout, stderr = process.communicate(timeout=timeout_ms / 1000)
    except subprocess.TimeoutExpired:
        kill()
        stdout, stderr = process.communicate()
        raise CommandError(
            "command failed (timeout)",
            _result(display, 1, stdout, stderr, start),
        )
    finally:
        finished.set()
        if cancel_thread:
            cancel_thread.join(timeout=0.2)

    if opts.signal is not None and opts.signal.is_cancelled():
        raise opts.signal.reason or CanceledError("canceled")

    exit_code = process.returncode if process.returncode is not None else 1
    result = _result(display, exit_code, stdout, stderr, start)
    if exit_code == 0:
        return result
    raise CommandError(f"command failed (exit {exit_code})", result)


def _result(display: str, exit_code: int, stdout: str | None, stderr: str | None, start: float) -> CmdResult:
    return CmdResult(
        cmd=display,
        exit_code=exit_code,
        stdout=stdout or "",
        stderr=stderr or "",
        duration=f"{int((time.time() - start) * 1000)}ms",
    )
