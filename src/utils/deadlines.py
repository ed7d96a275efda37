"""Deadline helpers for provider calls."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from core.errors import ProviderTimeout

T = TypeVar("T")


@dataclass(frozen=True)
class Deadline:
    """Absolute deadline on the monotonic clock."""

    expires_at: float
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        now = time.monotonic()
        return cls(expires_at=now + seconds, started_at=now)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at


def effective_timeout(timeout: Optional[float], deadline: Optional[Deadline]) -> Optional[float]:
    """Combine a per-call timeout with an overall deadline (smallest wins)."""
    if deadline is None:
        return timeout
    remaining = deadline.remaining()
    if timeout is None:
        return remaining
    return min(timeout, remaining)


def call_with_timeout(
    func: Callable[[], T],
    *,
    timeout: Optional[float],
    operation: str,
) -> T:
    """Run func, raising ProviderTimeout if it does not return within timeout.

    The worker thread is abandoned on timeout; providers are expected to honor
    their own client-side timeouts as well.
    """
    if timeout is None:
        return func()
    if timeout <= 0:
        raise ProviderTimeout(operation, timeout)

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="deadline")
    future = executor.submit(func)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout as exc:
        future.cancel()
        raise ProviderTimeout(operation, timeout) from exc
    finally:
        executor.shutdown(wait=False)


__all__ = ["Deadline", "call_with_timeout", "effective_timeout"]
