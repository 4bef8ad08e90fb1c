"""
LangSmith tracing for reasoning calls.

Tracing is opt-in: LANGSMITH_TRACING must be true and an API key set.
Until setup_tracing() has switched it on, functions decorated with
traceable_step() run exactly as written.

    setup_tracing()   # once, from the app lifespan

    @traceable_step(name="reasoning_call", run_type="llm")
    async def evaluate(self, system_prompt, user_prompt): ...
"""

from __future__ import annotations

import functools
import os
from typing import Any, Callable

from langsmith import traceable

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

_enabled = False


def _langsmith_env() -> dict[str, str]:
    return {
        "LANGSMITH_API_KEY": settings.LANGSMITH_API_KEY,
        "LANGSMITH_ENDPOINT": settings.LANGSMITH_ENDPOINT,
        "LANGSMITH_PROJECT": settings.LANGSMITH_PROJECT,
        "LANGSMITH_TRACING": "true",
    }


def setup_tracing() -> bool:
    """Export the LangSmith settings the SDK reads.  True when tracing is on."""
    global _enabled

    _enabled = bool(settings.LANGSMITH_TRACING and settings.LANGSMITH_API_KEY)
    if not _enabled:
        logger.info("LangSmith tracing off", configured=bool(settings.LANGSMITH_API_KEY))
        return False

    os.environ.update(_langsmith_env())
    logger.info("LangSmith tracing on", project=settings.LANGSMITH_PROJECT)
    return True


def traceable_step(
    name: str,
    run_type: str = "chain",
    metadata: dict[str, Any] | None = None,
    tags: list[str] | None = None,
) -> Callable:
    """Trace an async function under `name` whenever tracing is on."""
    def decorator(func: Callable) -> Callable:
        traced = traceable(name=name, run_type=run_type, metadata=metadata or {}, tags=tags or [])(func)

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            target = traced if _enabled else func
            return await target(*args, **kwargs)
        return wrapper
    return decorator
