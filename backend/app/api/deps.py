"""Shared dependencies for API routes."""

from __future__ import annotations

from fastapi import Depends

from app.db.session import async_session
from app.integrations.line_messaging import LineMessenger
from app.integrations.reasoning import GeminiReasoningClient
from app.pipeline.engine import PipelineEngine
from app.repositories.base import PipelineStore
from app.repositories.store import SqlPipelineStore


def get_store() -> PipelineStore:
    """Postgres-backed store on the app's session factory."""
    return SqlPipelineStore(async_session)


def get_engine(store: PipelineStore = Depends(get_store)) -> PipelineEngine:
    """Pipeline engine wired to Gemini and LINE."""
    return PipelineEngine(store, GeminiReasoningClient(), LineMessenger())
