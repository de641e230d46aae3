"""Subprocess execution with timeouts and cooperative cancellation."""

from __future__ import annotations

import os
import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from crossship.cancel import CancelToken

POLL_INTERVAL_S = 0.1
TERMINATE_WAIT_S = 5.0
# Share of the grace period reserved for SIGTERM before SIGKILL.
TERMINATE_SHARE = 0.2


@dataclass(frozen=True, slots=True)
class ProcessResult:
    argv: tuple[str, ...]
    returncode: int | None
    output: str
    duration_s: float
    timed_out: bool = False
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out and not self.cancelled


class ProcessRunner(Protocol):
    def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
        grace_period_s: float = 0.0,
    ) -> ProcessResult:
        """Run ``argv`` to completion, timeout, or cancellation."""


def run_process(
    argv: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
    cancel: CancelToken | None = None,
    grace_period_s: float = 0.0,
) -> ProcessResult:
    """Run a process, capturing stdout and stderr as one log.

    A process still running at ``timeout`` is stopped and flagged
    ``timed_out``. Once ``cancel`` fires the process may keep running for
    most of ``grace_period_s``; it is then sent SIGTERM and, if still alive
    at the end of the grace period, killed. It is flagged ``cancelled``.
    Spawn errors (``OSError``) propagate to the caller.
    """
    command = tuple(argv)
    started = time.monotonic()
    deadline = started + timeout if timeout is not None else None
    process = subprocess.Popen(
        list(command),
        cwd=str(cwd) if cwd is not None else None,
        env={**os.environ, **env} if env else None,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        errors="replace",
    )

    timed_out = False
    cancelled = False
    while True:
        try:
            output, _ = process.communicate(timeout=POLL_INTERVAL_S)
            break
        except subprocess.TimeoutExpired:
            pass
        now = time.monotonic()
        if deadline is not None and now >= deadline:
            timed_out = True
            output = _stop(process)
            break
        if cancel is not None and cancel.cancelled:
            stop_at = cancel.grace_deadline(grace_period_s)
            if stop_at is None:
                stop_at = now
            window = min(TERMINATE_WAIT_S, grace_period_s * TERMINATE_SHARE)
            if now >= stop_at - window:
                cancelled = True
                output = _stop(process, wait=max(0.0, stop_at - now))
                break

    return ProcessResult(
        argv=command,
        returncode=process.returncode,
        output=output or "",
        duration_s=time.monotonic() - started,
        timed_out=timed_out,
        cancelled=cancelled,
    )


def _stop(process: subprocess.Popen[str], *, wait: float = TERMINATE_WAIT_S) -> str:
    process.terminate()
    try:
        output, _ = process.communicate(timeout=wait)
    except subprocess.TimeoutExpired:
        process.kill()
        output, _ = process.communicate()
    return output or ""
