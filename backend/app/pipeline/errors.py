"""
Domain-specific exception hierarchy for the maintenance pipeline.

All pipeline exceptions inherit from PipelineError so callers can
catch broadly or narrowly as needed.  Each exception carries structured
context (session ID, stage name, details) for logging/debugging.

Only two families are recovered inside a stage: ReasoningError and
DeliveryError.  Everything else reaches the engine, which fails the
session.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(
        self,
        message: str,
        *,
        session_id: str | None = None,
        stage: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.session_id = session_id
        self.stage = stage
        self.details = details or {}
        super().__init__(message)


class StageExecutionError(PipelineError):
    """A stage hit a condition it cannot turn into a fallback."""
    pass


class ReasoningError(PipelineError):
    """The reasoning service could not produce an answer (transport, config, timeout)."""
    pass


class ReasoningParseError(ReasoningError):
    """The reasoning service answered, but not with the JSON shape we asked for."""

    def __init__(
        self,
        message: str,
        *,
        raw_response: str | None = None,
        **kwargs,
    ) -> None:
        self.raw_response = raw_response
        super().__init__(message, **kwargs)


class PersistenceError(PipelineError):
    """A store read or write failed."""
    pass


class SessionNotFoundError(PipelineError):
    """No session exists with the given ID."""
    pass


class MachineNotFoundError(PipelineError):
    """No machine exists with the given ID."""
    pass


class DeliveryError(PipelineError):
    """Outbound message delivery failed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response_body: str | None = None,
        **kwargs,
    ) -> None:
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message, **kwargs)
