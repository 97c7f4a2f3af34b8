from __future__ import annotations

import math
from datetime import timedelta

import pytest
from pydantic import ValidationError

from app.domain import CollectionIndicators, MarketState, SentimentMode, SentimentReport, SentimentResult
from app.schemas import SentimentPayload, SentimentResponse
from app.services.sentiment.fallback import fallback_result


INDICATORS = {
    "floor_price_trend": 1.0,
    "sales_volume_ratio": 0.5,
    "active_traders": 0.04,
    "price_volatility": 0.9,
    "market_cap_change": 0.01,
}


def _payload(**overrides):
    data = {
        "sentiment_score": 0.52,
        "market_state": "resilience",
        "mode": "collection",
        "indicators": dict(INDICATORS),
    }
    data.update(overrides)
    return data


def test_valid_payload():
    payload = SentimentPayload.model_validate(_payload())

    assert payload.market_state is MarketState.RESILIENCE
    assert payload.fallback is False


@pytest.mark.parametrize("score", [-0.1, 1.1, math.nan, math.inf])
def test_score_must_be_a_finite_unit_value(score):
    with pytest.raises(ValidationError):
        SentimentPayload.model_validate(_payload(sentiment_score=score))


@pytest.mark.parametrize("value", [1.5, -0.01, math.nan])
def test_indicators_must_be_bounded(value):
    indicators = dict(INDICATORS, active_traders=value)

    with pytest.raises(ValidationError):
        SentimentPayload.model_validate(_payload(indicators=indicators))


def test_state_must_match_score():
    with pytest.raises(ValidationError):
        SentimentPayload.model_validate(_payload(market_state="euphoria"))


def test_indicator_fields_must_match_mode():
    with pytest.raises(ValidationError):
        SentimentPayload.model_validate(_payload(mode="market"))

    trimmed = {name: value for name, value in INDICATORS.items() if name != "market_cap_change"}
    with pytest.raises(ValidationError):
        SentimentPayload.model_validate(_payload(indicators=trimmed))


def test_market_thresholds_apply_in_market_mode():
    payload = SentimentPayload.model_validate(
        {
            "sentiment_score": 0.45,
            "market_state": "resilience",
            "mode": "market",
            "indicators": {
                "total_volume_norm": 0.45,
                "active_collections_ratio": 1.0,
                "total_sales_norm": 0.2,
                "market_activity_score": 0.3,
            },
        }
    )

    assert payload.mode is SentimentMode.MARKET


@pytest.mark.parametrize("mode", list(SentimentMode))
def test_fallback_results_validate(mode):
    payload = SentimentPayload.from_result(fallback_result(mode, "upstream down"))

    assert payload.fallback is True
    assert payload.sentiment_score == 0.5
    assert payload.market_state is MarketState.STAGNATION
    assert payload.raw_data["error"] == "upstream down"


def test_response_from_report(now):
    result = SentimentResult(
        score=0.52,
        state=MarketState.RESILIENCE,
        indicators=CollectionIndicators(**INDICATORS),
        mode=SentimentMode.COLLECTION,
        raw_summary={"sales_count": 2},
    )
    report = SentimentReport(
        result=result,
        computed_at=now - timedelta(hours=1),
        cached=True,
        data_age_hours=1.23456,
    )

    response = SentimentResponse.from_report(report)

    assert response.cached is True
    assert response.is_stale is False
    assert response.data_age_hours == 1.23
    assert response.raw_data == {"sales_count": 2}
    assert response.indicators == INDICATORS
