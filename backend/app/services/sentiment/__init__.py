"""Sentiment scoring building blocks; import the engine from :mod:`.engine`."""

from .cache import SentimentCache
from .errors import (
    MissingCredentialsError,
    ResultValidationError,
    SentimentError,
    SourceUnavailableError,
    TotalSourceFailureError,
)
from .fallback import fallback_result
from .normalizer import WindowConfig, clamp_unit, normalize, summarize
from .scoring import classify, round_score, score

__all__ = [
    "MissingCredentialsError",
    "ResultValidationError",
    "SentimentCache",
    "SentimentError",
    "SourceUnavailableError",
    "TotalSourceFailureError",
    "WindowConfig",
    "clamp_unit",
    "classify",
    "fallback_result",
    "normalize",
    "round_score",
    "score",
    "summarize",
]
