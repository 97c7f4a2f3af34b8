"""Typed domain representations shared by ingestion, scoring, and the cache."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Union


WEI_SCALE = Decimal(10) ** 18


def wei_to_eth(amount_wei: int) -> float:
    """Scale a smallest-unit integer to ETH before handing it to float maths."""

    return float(Decimal(amount_wei) / WEI_SCALE)


class MarketState(str, Enum):
    CAPITULATION = "capitulation"
    STAGNATION = "stagnation"
    RESILIENCE = "resilience"
    EUPHORIA = "euphoria"


class SentimentMode(str, Enum):
    COLLECTION = "collection"
    MARKET = "market"


class EndpointKind(str, Enum):
    """Which upstream endpoints one source call covers."""

    FLOOR_AND_SALES = "floor_and_sales"
    SALES = "sales"


@dataclass(slots=True, frozen=True)
class RawSaleRecord:
    """One decoded upstream sale; fee components stay in wei."""

    timestamp: datetime
    price_components: tuple[int, ...]
    buyer_id: str | None = None
    seller_id: str | None = None

    @property
    def price_wei(self) -> int:
        return sum(self.price_components)

    @property
    def price_eth(self) -> float:
        return wei_to_eth(self.price_wei)


@dataclass(slots=True, frozen=True)
class CollectionDataset:
    """Result of one acquisition for one collection.

    ``source_ok`` is False when the fetch failed or timed out; the dataset is
    then empty but otherwise shaped like a successful one.
    """

    collection_id: str
    floor_price: Decimal | None = None
    sales: tuple[RawSaleRecord, ...] = ()
    source_ok: bool = True

    @classmethod
    def unavailable(cls, collection_id: str) -> "CollectionDataset":
        return cls(collection_id=collection_id, source_ok=False)


@dataclass(slots=True, frozen=True)
class MarketDataset:
    datasets: tuple[CollectionDataset, ...]
    successful_sources: int
    requested_sources: int

    def __post_init__(self) -> None:
        if not 0 <= self.successful_sources <= self.requested_sources:
            raise ValueError(
                f"successful_sources={self.successful_sources} outside "
                f"[0, requested_sources={self.requested_sources}]"
            )

    @classmethod
    def from_datasets(cls, datasets: list[CollectionDataset]) -> "MarketDataset":
        return cls(
            datasets=tuple(datasets),
            successful_sources=sum(1 for item in datasets if item.source_ok),
            requested_sources=len(datasets),
        )


@dataclass(slots=True, frozen=True)
class CollectionIndicators:
    floor_price_trend: float
    sales_volume_ratio: float
    active_traders: float
    price_volatility: float
    market_cap_change: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class MarketIndicators:
    total_volume_norm: float
    active_collections_ratio: float
    total_sales_norm: float
    market_activity_score: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


IndicatorVector = Union[CollectionIndicators, MarketIndicators]


@dataclass(slots=True, frozen=True)
class SentimentResult:
    score: float
    state: MarketState
    indicators: IndicatorVector
    mode: SentimentMode
    raw_summary: dict[str, Any] = field(default_factory=dict)
    fallback: bool = False


@dataclass(slots=True, frozen=True)
class CacheEntry:
    key: str
    result: SentimentResult
    computed_at: datetime

    def age_hours(self, now: datetime) -> float:
        return (now - self.computed_at).total_seconds() / 3600.0


@dataclass(slots=True, frozen=True)
class SentimentReport:
    """What callers receive: a result plus its cache metadata."""

    result: SentimentResult
    computed_at: datetime
    cached: bool = False
    is_stale: bool = False
    data_age_hours: float = 0.0
