"""Neutral results served whenever a computation cannot complete."""

from __future__ import annotations

from app.domain import (
    CollectionIndicators,
    IndicatorVector,
    MarketIndicators,
    MarketState,
    SentimentMode,
    SentimentResult,
)


NEUTRAL_SCORE = 0.5
NEUTRAL_STATE = MarketState.STAGNATION
NEUTRAL_INDICATOR = 0.5


def neutral_indicators(mode: SentimentMode) -> IndicatorVector:
    if mode is SentimentMode.MARKET:
        return MarketIndicators(
            total_volume_norm=NEUTRAL_INDICATOR,
            active_collections_ratio=NEUTRAL_INDICATOR,
            total_sales_norm=NEUTRAL_INDICATOR,
            market_activity_score=NEUTRAL_INDICATOR,
        )
    return CollectionIndicators(
        floor_price_trend=NEUTRAL_INDICATOR,
        sales_volume_ratio=NEUTRAL_INDICATOR,
        active_traders=NEUTRAL_INDICATOR,
        price_volatility=NEUTRAL_INDICATOR,
        market_cap_change=NEUTRAL_INDICATOR,
    )


def fallback_result(mode: SentimentMode, reason: str) -> SentimentResult:
    """Build the fixed neutral result, tagged so callers can tell it apart."""

    return SentimentResult(
        score=NEUTRAL_SCORE,
        state=NEUTRAL_STATE,
        indicators=neutral_indicators(mode),
        mode=mode,
        raw_summary={"note": "Fallback data - sentiment unavailable", "error": reason},
        fallback=True,
    )


__all__ = ["NEUTRAL_SCORE", "NEUTRAL_STATE", "fallback_result", "neutral_indicators"]
