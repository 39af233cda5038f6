"""
Custom Exceptions
Failure taxonomy for trigger, poll and session layers.
"""
from core.contracts import ErrorKind


class UCIEError(Exception):
    """Base error for the orchestration layer."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(UCIEError):
    """Malformed subject or parameters; raised before any network call."""

    kind = ErrorKind.VALIDATION


class ConfigurationError(UCIEError):
    """Invalid configuration or aggregator input."""

    kind = ErrorKind.CONFIGURATION


class TriggerError(UCIEError):
    """Remote rejected (or never acknowledged) job creation."""

    kind = ErrorKind.TRIGGER

    def __init__(self, message: str, job_kind: str = None, status_code: int = None, **kwargs):
        super().__init__(message, kwargs)
        self.job_kind = job_kind
        self.status_code = status_code


class TransientPollError(UCIEError):
    """One status query failed; absorbed by the poller."""

    kind = ErrorKind.TRANSIENT

    def __init__(self, message: str, status_code: int = None, **kwargs):
        super().__init__(message, kwargs)
        self.status_code = status_code


class RemoteFailure(UCIEError):
    """Remote explicitly reported job failure, or returned an unusable result."""

    kind = ErrorKind.REMOTE_FAILURE


class PollTimeout(UCIEError):
    """Attempt budget exhausted without a terminal remote status."""

    kind = ErrorKind.TIMED_OUT

    def __init__(self, message: str, attempts: int = 0, **kwargs):
        super().__init__(message, kwargs)
        self.attempts = attempts

