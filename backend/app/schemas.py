from __future__ import annotations

import math
from dataclasses import fields
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from app.domain import (
    CollectionIndicators,
    MarketIndicators,
    MarketState,
    SentimentMode,
    SentimentReport,
    SentimentResult,
)
from app.services.sentiment.scoring import REGIMES, classify


INDICATOR_FIELDS: dict[SentimentMode, frozenset[str]] = {
    SentimentMode.COLLECTION: frozenset(field.name for field in fields(CollectionIndicators)),
    SentimentMode.MARKET: frozenset(field.name for field in fields(MarketIndicators)),
}


class SentimentPayload(BaseModel):
    sentiment_score: float = Field(ge=0.0, le=1.0, allow_inf_nan=False)
    market_state: MarketState
    mode: SentimentMode
    indicators: dict[str, float]
    raw_data: dict[str, Any] = Field(default_factory=dict)
    fallback: bool = False

    @field_validator("indicators")
    @classmethod
    def _check_indicator_bounds(cls, value: dict[str, float]) -> dict[str, float]:
        for name, indicator in value.items():
            if not math.isfinite(indicator) or not 0.0 <= indicator <= 1.0:
                raise ValueError(f"indicator {name} must be a finite value in [0, 1], got {indicator}")
        return value

    @model_validator(mode="after")
    def _check_consistency(self) -> "SentimentPayload":
        expected = INDICATOR_FIELDS[self.mode]
        if set(self.indicators) != expected:
            raise ValueError(
                f"{self.mode.value} indicators must be exactly {sorted(expected)}"
            )
        if not self.fallback:
            thresholds = REGIMES[self.mode].thresholds
            if classify(self.sentiment_score, thresholds) is not self.market_state:
                raise ValueError(
                    f"market_state {self.market_state.value} does not match score {self.sentiment_score}"
                )
        return self

    @classmethod
    def from_result(cls, result: SentimentResult) -> "SentimentPayload":
        return cls.model_validate(
            {
                "sentiment_score": result.score,
                "market_state": result.state,
                "mode": result.mode,
                "indicators": result.indicators.as_dict(),
                "raw_data": result.raw_summary,
                "fallback": result.fallback,
            }
        )


class SentimentResponse(SentimentPayload):
    computed_at: datetime
    cached: bool = False
    is_stale: bool = False
    data_age_hours: float = 0.0

    @classmethod
    def from_report(cls, report: SentimentReport) -> "SentimentResponse":
        payload = SentimentPayload.from_result(report.result)
        return cls(
            **payload.model_dump(),
            computed_at=report.computed_at,
            cached=report.cached,
            is_stale=report.is_stale,
            data_age_hours=round(report.data_age_hours, 2),
        )


class HealthStatus(BaseModel):
    status: str
    cache_size: int
    timestamp: datetime
