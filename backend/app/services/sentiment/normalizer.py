"""Turn acquired datasets into bounded indicator vectors.

Every function here is pure: given the dataset and ``now`` the output is fully
determined. All indicators are clamped to ``[0, 1]`` and non-finite
intermediate values collapse to ``0.0`` rather than propagating.
"""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Iterable

from app.domain import (
    CollectionIndicators,
    IndicatorVector,
    MarketDataset,
    MarketIndicators,
    RawSaleRecord,
    SentimentMode,
    wei_to_eth,
)


ACTIVE_TRADERS_SATURATION = 50
MARKET_CAP_SCALE = 1000.0
NEUTRAL_VOLATILITY = 0.5
MARKET_VOLUME_SATURATION_ETH = 10_000.0
MARKET_SALES_SATURATION = 500
COLLECTION_SALES_SATURATION = 50


@dataclass(slots=True, frozen=True)
class WindowConfig:
    short_window: timedelta = timedelta(hours=24)
    reference_days: int = 30

    @property
    def reference_window(self) -> timedelta:
        return timedelta(days=self.reference_days)


@dataclass(slots=True, frozen=True)
class _CollectionStats:
    floor_price: float
    sales_short: list[RawSaleRecord]
    volume_short: float
    volume_reference: float


@dataclass(slots=True, frozen=True)
class _MarketStats:
    total_wei: int
    total_sales: int
    active_collections: int
    participation: list[float]
    breakdown: list[dict[str, Any]]


def clamp_unit(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return min(max(value, 0.0), 1.0)


def _within(sales: Iterable[RawSaleRecord], now: datetime, window: timedelta) -> list[RawSaleRecord]:
    cutoff = now - window
    return [sale for sale in sales if cutoff < sale.timestamp <= now]


def _volume_eth(sales: Iterable[RawSaleRecord]) -> float:
    return wei_to_eth(sum(sale.price_wei for sale in sales))


def _unique_traders(sales: Iterable[RawSaleRecord]) -> int:
    traders: set[str] = set()
    for sale in sales:
        if sale.buyer_id:
            traders.add(sale.buyer_id)
        if sale.seller_id:
            traders.add(sale.seller_id)
    return len(traders)


def _collection_stats(dataset: MarketDataset, now: datetime, windows: WindowConfig) -> _CollectionStats:
    # Sales are pooled across entries; the first reported floor price wins.
    sales = [sale for item in dataset.datasets for sale in item.sales]
    floor_price = next(
        (item.floor_price for item in dataset.datasets if item.floor_price is not None),
        Decimal(0),
    )
    sales_short = _within(sales, now, windows.short_window)
    return _CollectionStats(
        floor_price=float(floor_price),
        sales_short=sales_short,
        volume_short=_volume_eth(sales_short),
        volume_reference=_volume_eth(_within(sales, now, windows.reference_window)),
    )


def _price_volatility(sales_short: list[RawSaleRecord], floor_price: float) -> float:
    if not sales_short:
        return NEUTRAL_VOLATILITY
    deviation = statistics.pstdev([sale.price_eth for sale in sales_short])
    ratio = deviation / floor_price if floor_price > 0 else 0.0
    return clamp_unit(1.0 - ratio)


def normalize_collection(
    dataset: MarketDataset,
    now: datetime,
    *,
    windows: WindowConfig | None = None,
) -> CollectionIndicators:
    windows = windows or WindowConfig()
    stats = _collection_stats(dataset, now, windows)

    if stats.volume_reference > 0:
        daily_average = stats.volume_reference / windows.reference_days
        sales_volume_ratio = clamp_unit((stats.volume_short / daily_average) * 0.5)
    else:
        sales_volume_ratio = 0.0

    return CollectionIndicators(
        floor_price_trend=clamp_unit(stats.floor_price * 0.5),
        sales_volume_ratio=sales_volume_ratio,
        active_traders=clamp_unit(len(stats.sales_short) / ACTIVE_TRADERS_SATURATION),
        price_volatility=_price_volatility(stats.sales_short, stats.floor_price),
        market_cap_change=clamp_unit(
            (stats.floor_price * len(stats.sales_short)) / MARKET_CAP_SCALE
        ),
    )


def summarize_collection(
    dataset: MarketDataset,
    now: datetime,
    *,
    windows: WindowConfig | None = None,
) -> dict[str, Any]:
    windows = windows or WindowConfig()
    stats = _collection_stats(dataset, now, windows)
    return {
        "floor_price": stats.floor_price,
        "volume_24h": stats.volume_short,
        "volume_reference": stats.volume_reference,
        "reference_days": windows.reference_days,
        "sales_count": len(stats.sales_short),
        "unique_traders": _unique_traders(stats.sales_short),
        "successful_sources": dataset.successful_sources,
        "requested_sources": dataset.requested_sources,
    }


def _market_stats(dataset: MarketDataset, now: datetime, windows: WindowConfig) -> _MarketStats:
    total_wei = 0
    total_sales = 0
    active_collections = 0
    participation: list[float] = []
    breakdown: list[dict[str, Any]] = []
    for item in dataset.datasets:
        # Zero-priced transfers are not market activity.
        sales_short = [
            sale for sale in _within(item.sales, now, windows.short_window) if sale.price_wei > 0
        ]
        collection_wei = sum(sale.price_wei for sale in sales_short)
        total_wei += collection_wei
        total_sales += len(sales_short)
        if sales_short:
            active_collections += 1
        participation.append(clamp_unit(len(sales_short) / COLLECTION_SALES_SATURATION))
        breakdown.append(
            {
                "contract": item.collection_id,
                "volume_24h": round(wei_to_eth(collection_wei), 3),
                "sales_24h": len(sales_short),
                "source_ok": item.source_ok,
            }
        )
    return _MarketStats(
        total_wei=total_wei,
        total_sales=total_sales,
        active_collections=active_collections,
        participation=participation,
        breakdown=breakdown,
    )


def normalize_market(
    dataset: MarketDataset,
    now: datetime,
    *,
    windows: WindowConfig | None = None,
) -> MarketIndicators:
    windows = windows or WindowConfig()
    stats = _market_stats(dataset, now, windows)
    requested = dataset.requested_sources
    activity = sum(stats.participation) / len(stats.participation) if stats.participation else 0.0
    return MarketIndicators(
        total_volume_norm=clamp_unit(wei_to_eth(stats.total_wei) / MARKET_VOLUME_SATURATION_ETH),
        active_collections_ratio=clamp_unit(stats.active_collections / requested)
        if requested
        else 0.0,
        total_sales_norm=clamp_unit(stats.total_sales / MARKET_SALES_SATURATION),
        market_activity_score=clamp_unit(activity),
    )


def summarize_market(
    dataset: MarketDataset,
    now: datetime,
    *,
    windows: WindowConfig | None = None,
) -> dict[str, Any]:
    windows = windows or WindowConfig()
    stats = _market_stats(dataset, now, windows)
    total_volume = wei_to_eth(stats.total_wei)
    return {
        "collections_analyzed": dataset.requested_sources,
        "successful_sources": dataset.successful_sources,
        "active_collections": stats.active_collections,
        "total_volume_eth": round(total_volume, 3),
        "total_sales": stats.total_sales,
        "average_sale_price": round(total_volume / stats.total_sales, 3)
        if stats.total_sales
        else 0.0,
        "collection_breakdown": stats.breakdown,
        "time_window": {
            "start": (now - windows.short_window).isoformat(),
            "end": now.isoformat(),
            "duration_hours": windows.short_window.total_seconds() / 3600,
        },
    }


def normalize(
    dataset: MarketDataset,
    now: datetime,
    mode: SentimentMode = SentimentMode.COLLECTION,
    *,
    windows: WindowConfig | None = None,
) -> IndicatorVector:
    if mode is SentimentMode.MARKET:
        return normalize_market(dataset, now, windows=windows)
    return normalize_collection(dataset, now, windows=windows)


def summarize(
    dataset: MarketDataset,
    now: datetime,
    mode: SentimentMode = SentimentMode.COLLECTION,
    *,
    windows: WindowConfig | None = None,
) -> dict[str, Any]:
    if mode is SentimentMode.MARKET:
        return summarize_market(dataset, now, windows=windows)
    return summarize_collection(dataset, now, windows=windows)


__all__ = [
    "WindowConfig",
    "clamp_unit",
    "normalize",
    "normalize_collection",
    "normalize_market",
    "summarize",
    "summarize_collection",
    "summarize_market",
]
