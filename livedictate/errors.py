"""Exception hierarchy for LiveDictate."""

from typing import Any


class LiveDictateError(Exception):
    """Base exception for all LiveDictate errors.

    Attributes:
        status_code: HTTP status code an ingestion handler reports for this error.
        error_code: Machine-readable error identifier for clients.
        context: Arbitrary key-value pairs describing the failure.
    """

    status_code: int = 500

    def __init__(self, message: str, error_code: str = "INTERNAL_ERROR", **context: Any) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.context = context


class UnauthorizedError(LiveDictateError):
    """No caller, or the caller could not be authenticated."""

    status_code: int = 401

    def __init__(self, message: str = "Unauthorized", **context: Any) -> None:
        super().__init__(message, error_code="UNAUTHORIZED", **context)


class BadRequestError(LiveDictateError):
    """Malformed input, e.g. an undecodable audio chunk."""

    status_code: int = 400

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, error_code="BAD_REQUEST", **context)


class NotFoundError(LiveDictateError):
    """Unknown session, foreign session, or a session whose audio is gone."""

    status_code: int = 404

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, error_code="NOT_FOUND", **context)


class ConflictError(LiveDictateError):
    """Operation not allowed in the session's current state."""

    status_code: int = 409

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, error_code="CONFLICT", **context)


class InternalError(LiveDictateError):
    """Unexpected backend or persistence failure."""

    status_code: int = 500

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, error_code="INTERNAL_ERROR", **context)


class TranscriptionError(LiveDictateError):
    """A speech-to-text call failed."""

    status_code: int = 502

    def __init__(self, message: str, error_code: str = "TRANSCRIPTION_FAILED", **context: Any) -> None:
        super().__init__(message, error_code=error_code, **context)


class RateLimitedError(TranscriptionError):
    """The speech-to-text service asked us to slow down. Retryable."""

    status_code: int = 429

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, error_code="RATE_LIMITED", **context)


class TranscriptionBackendError(TranscriptionError):
    """Any non-retryable speech-to-text failure."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, error_code="BACKEND_ERROR", **context)
