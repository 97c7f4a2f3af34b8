"""Failure kinds that the fallback policy turns into a neutral result."""

from __future__ import annotations


class SentimentError(Exception):
    """Base class for data-availability failures during a computation."""


class MissingCredentialsError(SentimentError):
    """Raised when the upstream API key is not configured."""


class SourceUnavailableError(SentimentError):
    """Raised when one upstream fetch fails or times out."""

    def __init__(self, collection_id: str, reason: str) -> None:
        super().__init__(f"source unavailable for {collection_id}: {reason}")
        self.collection_id = collection_id
        self.reason = reason


class TotalSourceFailureError(SentimentError):
    """Raised when no source in an aggregation round returned data."""


class ResultValidationError(SentimentError):
    """Raised when a computed result does not satisfy the response schema."""


__all__ = [
    "MissingCredentialsError",
    "ResultValidationError",
    "SentimentError",
    "SourceUnavailableError",
    "TotalSourceFailureError",
]
