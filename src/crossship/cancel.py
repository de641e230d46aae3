"""Run-level cancellation signal shared by builds and uploads."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field


@dataclass(slots=True)
class CancelToken:
    _event: threading.Event = field(default_factory=threading.Event)
    _cancelled_at: float | None = None

    def cancel(self) -> None:
        if not self._event.is_set():
            self._cancelled_at = time.monotonic()
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    def grace_deadline(self, grace_period_s: float) -> float | None:
        """Monotonic time after which in-flight work is forcibly stopped."""
        if self._cancelled_at is None:
            return None
        return self._cancelled_at + grace_period_s
