from __future__ import annotations

import threading

import pytest

from core.errors import ProviderTimeout
from utils.deadlines import Deadline, call_with_timeout, effective_timeout


def test_effective_timeout_takes_smallest_budget() -> None:
    assert effective_timeout(None, None) is None
    assert effective_timeout(5.0, None) == 5.0
    deadline = Deadline.after(100)
    assert effective_timeout(5.0, deadline) == 5.0
    assert 0 < effective_timeout(None, deadline) <= 100


def test_expired_deadline() -> None:
    deadline = Deadline.after(0)
    assert deadline.expired
    assert deadline.remaining() == 0.0


def test_call_with_timeout_returns_value_and_propagates_errors() -> None:
    assert call_with_timeout(lambda: 42, timeout=1.0, operation="demo") == 42
    assert call_with_timeout(lambda: 7, timeout=None, operation="demo") == 7

    def boom():
        raise KeyError("inner")

    with pytest.raises(KeyError):
        call_with_timeout(boom, timeout=1.0, operation="demo")


def test_call_with_timeout_raises_provider_timeout() -> None:
    release = threading.Event()
    try:
        with pytest.raises(ProviderTimeout) as excinfo:
            call_with_timeout(lambda: release.wait(2), timeout=0.05, operation="embedding")
    finally:
        release.set()
    assert excinfo.value.operation == "embedding"

    with pytest.raises(ProviderTimeout):
        call_with_timeout(lambda: 1, timeout=0, operation="reasoning")
