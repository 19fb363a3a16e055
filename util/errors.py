# util/errors.py
from fastapi import HTTPException, status
from util.enums import ErrorMessage, Phase


class AppError(HTTPException):
    # Flow: raise AppError to short-circuit with a typed status & message.
    def __init__(
        self, message: str, http_status: int = status.HTTP_400_BAD_REQUEST
    ) -> None:
        super().__init__(status_code=http_status, detail=message)

    @classmethod
    def of(cls, error: ErrorMessage) -> "AppError":
        return cls(error.value.message, error.value.http_status)


class UpstreamError(AppError):
    """A search/embedding/judge/generation collaborator failed or answered non-2xx."""

    def __init__(self, service: str, message: str) -> None:
        super().__init__(
            f"{service}: {message}", ErrorMessage.UPSTREAM_ERROR.value.http_status
        )
        self.service = service


class PhaseTransitionError(RuntimeError):
    def __init__(self, current: Phase, requested: Phase) -> None:
        super().__init__(
            f"cannot move from {current.value} to {requested.value}"
        )
        self.current = current
        self.requested = requested


class PipelineAborted(Exception):
    """Caller cancelled the run; not a user-facing error."""
