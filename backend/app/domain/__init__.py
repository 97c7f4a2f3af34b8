"""Domain models representing sentiment inputs, results, and cache entries."""

from .models import (
    WEI_SCALE,
    CacheEntry,
    CollectionDataset,
    CollectionIndicators,
    EndpointKind,
    IndicatorVector,
    MarketDataset,
    MarketIndicators,
    MarketState,
    RawSaleRecord,
    SentimentMode,
    SentimentReport,
    SentimentResult,
    wei_to_eth,
)

__all__ = [
    "WEI_SCALE",
    "CacheEntry",
    "CollectionDataset",
    "CollectionIndicators",
    "EndpointKind",
    "IndicatorVector",
    "MarketDataset",
    "MarketIndicators",
    "MarketState",
    "RawSaleRecord",
    "SentimentMode",
    "SentimentReport",
    "SentimentResult",
    "wei_to_eth",
]
