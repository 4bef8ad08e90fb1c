"""LangSmith tracing switch."""

import os

import pytest

from app.core import tracing
from app.core.config import settings


@pytest.fixture(autouse=True)
def _restore(monkeypatch):
    for key in ("LANGSMITH_API_KEY", "LANGSMITH_ENDPOINT", "LANGSMITH_PROJECT", "LANGSMITH_TRACING"):
        # setenv first so the original value (or its absence) is restored
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    yield
    tracing._enabled = False


def test_tracing_stays_off_without_api_key(monkeypatch):
    monkeypatch.setattr(settings, "LANGSMITH_TRACING", True)
    monkeypatch.setattr(settings, "LANGSMITH_API_KEY", "")

    assert tracing.setup_tracing() is False
    assert "LANGSMITH_TRACING" not in os.environ


def test_tracing_exports_sdk_environment(monkeypatch):
    monkeypatch.setattr(settings, "LANGSMITH_TRACING", True)
    monkeypatch.setattr(settings, "LANGSMITH_API_KEY", "ls-test")
    monkeypatch.setattr(settings, "LANGSMITH_PROJECT", "plant-maintenance-test")

    assert tracing.setup_tracing() is True
    assert os.environ["LANGSMITH_API_KEY"] == "ls-test"
    assert os.environ["LANGSMITH_PROJECT"] == "plant-maintenance-test"
    assert os.environ["LANGSMITH_TRACING"] == "true"


@pytest.mark.asyncio
async def test_untraced_call_runs_the_function():
    @tracing.traceable_step(name="double", run_type="tool")
    async def double(x):
        return x * 2

    assert await double(21) == 42
    assert double.__name__ == "double"
