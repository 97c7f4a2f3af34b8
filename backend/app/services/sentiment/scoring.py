"""Weighted scoring and threshold classification of indicator vectors."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Any, Mapping

from app.domain import IndicatorVector, MarketState, SentimentMode, SentimentResult


STATE_ORDER: tuple[MarketState, ...] = (
    MarketState.CAPITULATION,
    MarketState.STAGNATION,
    MarketState.RESILIENCE,
    MarketState.EUPHORIA,
)


@dataclass(slots=True, frozen=True)
class ScoringRegime:
    """Fixed weights, state boundaries, and rounding for one computation mode."""

    name: str
    weights: Mapping[str, float]
    thresholds: tuple[float, float, float]
    precision: int = 2
    rounding: str = ROUND_HALF_UP
    description: str | None = None

    def __post_init__(self) -> None:
        if not math.isclose(sum(self.weights.values()), 1.0, abs_tol=1e-9):
            raise ValueError(f"weights for regime {self.name!r} must sum to 1.0")
        if not (0.0 < self.thresholds[0] < self.thresholds[1] < self.thresholds[2] <= 1.0):
            raise ValueError(f"thresholds for regime {self.name!r} must be increasing in (0, 1]")


COLLECTION_REGIME = ScoringRegime(
    name="collection",
    weights=MappingProxyType(
        {
            "floor_price_trend": 0.25,
            "sales_volume_ratio": 0.25,
            "active_traders": 0.20,
            "price_volatility": 0.15,
            "market_cap_change": 0.15,
        }
    ),
    thresholds=(0.25, 0.50, 0.75),
)

# Absolute 24h volume regime: the score is volume / 10000 ETH, so the
# boundaries below sit at 2000, 4000 and 7000 ETH. Truncating keeps a volume
# just under a boundary from rounding up onto it.
MARKET_REGIME = ScoringRegime(
    name="market",
    weights=MappingProxyType(
        {
            "total_volume_norm": 1.0,
            "active_collections_ratio": 0.0,
            "total_sales_norm": 0.0,
            "market_activity_score": 0.0,
        }
    ),
    thresholds=(0.20, 0.40, 0.70),
    rounding=ROUND_DOWN,
    description="24h volume thresholds of 2000/4000/7000 ETH",
)

REGIMES: Mapping[SentimentMode, ScoringRegime] = MappingProxyType(
    {
        SentimentMode.COLLECTION: COLLECTION_REGIME,
        SentimentMode.MARKET: MARKET_REGIME,
    }
)


def round_score(value: float, precision: int = 2, rounding: str = ROUND_HALF_UP) -> float:
    """Quantize to ``precision`` decimals; the default is half away from zero."""

    quantum = Decimal(1).scaleb(-precision)
    return float(Decimal(repr(value)).quantize(quantum, rounding=rounding))


def classify(score: float, thresholds: tuple[float, float, float] = COLLECTION_REGIME.thresholds) -> MarketState:
    """Map a score to the first state whose upper boundary it is below."""

    for state, boundary in zip(STATE_ORDER, thresholds):
        if score < boundary:
            return state
    return MarketState.EUPHORIA


def weighted_sum(indicators: IndicatorVector, weights: Mapping[str, float]) -> float:
    values = indicators.as_dict()
    missing = set(weights) - set(values)
    if missing:
        raise ValueError(f"indicator vector is missing weighted fields: {sorted(missing)}")
    return sum(values[name] * weight for name, weight in weights.items())


def score(
    indicators: IndicatorVector,
    mode: SentimentMode = SentimentMode.COLLECTION,
    *,
    raw_summary: dict[str, Any] | None = None,
) -> SentimentResult:
    regime = REGIMES[mode]
    raw = weighted_sum(indicators, regime.weights)
    rounded = round_score(min(max(raw, 0.0), 1.0), regime.precision, regime.rounding)
    return SentimentResult(
        score=rounded,
        state=classify(rounded, regime.thresholds),
        indicators=indicators,
        mode=mode,
        raw_summary=dict(raw_summary or {}),
    )


__all__ = [
    "COLLECTION_REGIME",
    "MARKET_REGIME",
    "REGIMES",
    "STATE_ORDER",
    "ScoringRegime",
    "classify",
    "round_score",
    "score",
    "weighted_sum",
]
