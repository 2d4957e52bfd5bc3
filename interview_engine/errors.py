from typing import List, Optional


class InterviewEngineError(Exception):
    """Base class for errors raised by the interview engine."""


class ServiceError(InterviewEngineError):
    """A single completion request failed.

    Carries the HTTP status (when the service answered) and the reason text so
    the gateway can decide whether the failure is worth retrying.
    """

    def __init__(self, status: Optional[int], reason: str):
        self.status = status
        self.reason = reason
        label = f"HTTP {status}" if status is not None else "request failed"
        super().__init__(f"{label}: {reason}")


class ExhaustedError(InterviewEngineError):
    """Every credential and retry was used without a successful completion."""

    def __init__(self, message: str, rate_limited: bool = False, attempts: Optional[List] = None):
        super().__init__(message)
        self.rate_limited = rate_limited
        self.attempts = list(attempts or [])


class ExtractionError(InterviewEngineError):
    """Model output did not contain a well-formed structured payload."""


class InvalidArgument(InterviewEngineError, ValueError):
    """The caller supplied input the engine cannot work with."""
