"""Exception hierarchy shared by the search engine and its collaborators."""

from __future__ import annotations


class DocQueryError(Exception):
    """Base class for all docquery failures."""


class ConfigurationError(DocQueryError):
    """Backend credentials or settings are missing."""


class ValidationError(DocQueryError):
    """A query was rejected before entering the pipeline."""


class Throttled(DocQueryError):
    """The admission controller rejected the request."""

    def __init__(self, retry_after: int, reason: str = "rate_limit") -> None:
        super().__init__(f"Too many requests. Please try again in {retry_after} seconds.")
        self.retry_after = retry_after
        self.reason = reason


class BackendError(DocQueryError):
    """Generic failure reported by the LLM backend."""


class BackendTimeoutError(BackendError, TimeoutError):
    """The LLM backend did not answer within the allotted time."""


class RateLimitedByBackend(BackendError):
    """The LLM backend refused the request because of its own quotas."""


class MalformedBackendOutput(BackendError):
    """The backend answered with something that could not be parsed."""


class ExtractionError(DocQueryError):
    """A file could not be turned into text."""


class UnsupportedType(ExtractionError):
    """No extractor is registered for the file extension."""
