# tests/conftest.py
import os

import pytest

# Keep tracing off and the audit log out of the working tree during tests.
os.environ.setdefault("LANGSMITH_TRACING", "false")


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch):
    from core.config import get_settings

    monkeypatch.setenv("AGENT_LOG_DB", str(tmp_path / "agent_logs.sqlite"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
