"""Cache-first sentiment computation with a neutral fallback."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from loguru import logger
from pydantic import ValidationError

from app.core.config import Settings, get_settings
from app.domain import (
    CacheEntry,
    CollectionDataset,
    EndpointKind,
    SentimentMode,
    SentimentReport,
    SentimentResult,
)
from app.schemas import SentimentPayload
from ingestion.aggregator import FanOutAggregator
from ingestion.client import AlchemyNFTClient

from .cache import SentimentCache
from .errors import (
    MissingCredentialsError,
    ResultValidationError,
    SentimentError,
    TotalSourceFailureError,
)
from .fallback import fallback_result
from .normalizer import WindowConfig, normalize, summarize
from .scoring import score


MARKET_KEY = "market"


class SessionClient(Protocol):
    """Source client usable as an async context manager for one round."""

    async def __aenter__(self) -> "SessionClient": ...

    async def __aexit__(self, exc_type, exc, tb) -> None: ...

    async def fetch(
        self,
        collection_id: str,
        kind: EndpointKind = EndpointKind.FLOOR_AND_SALES,
        *,
        since: datetime,
    ) -> CollectionDataset: ...


ClientFactory = Callable[[], SessionClient]


@dataclass(slots=True)
class _KeyLock:
    lock: asyncio.Lock
    users: int = 0


def normalize_key(key: str) -> str:
    if not isinstance(key, str) or not key.strip():
        raise ValueError("sentiment key must be a non-empty string")
    return key.strip().lower()


def _coerce_now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    return now if now.tzinfo else now.replace(tzinfo=timezone.utc)


class SentimentEngine:
    """Serve sentiment per key from the cache, recomputing when it is not fresh.

    ``get_sentiment`` and ``refresh_sentiment`` never raise for data
    availability problems: missing credentials, total source failure, and
    schema violations all produce the tagged neutral fallback, which is not
    cached. Concurrent misses for one key share a single computation.
    """

    def __init__(
        self,
        cache: SentimentCache,
        *,
        client_factory: ClientFactory | None,
        market_collections: Sequence[str],
        windows: WindowConfig | None = None,
        deadline: float | None = None,
    ) -> None:
        if not market_collections:
            raise ValueError("market_collections must not be empty")
        self.cache = cache
        self._client_factory = client_factory
        self._market_collections = tuple(market_collections)
        self._windows = windows or WindowConfig()
        self._deadline = deadline
        self._locks: dict[str, _KeyLock] = {}
        self._locks_guard = threading.Lock()

    @asynccontextmanager
    async def _key_lock(self, key: str) -> AsyncIterator[None]:
        """Hold the per-key lock; the entry is dropped once nobody uses it."""

        with self._locks_guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyLock(asyncio.Lock())
            entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[key]

    @staticmethod
    def mode_for(key: str) -> SentimentMode:
        return SentimentMode.MARKET if key == MARKET_KEY else SentimentMode.COLLECTION

    def _report(self, entry: CacheEntry, now: datetime, *, cached: bool) -> SentimentReport:
        return SentimentReport(
            result=entry.result,
            computed_at=entry.computed_at,
            cached=cached,
            is_stale=self.cache.is_stale(entry, now),
            data_age_hours=max(entry.age_hours(now), 0.0),
        )

    async def get_sentiment(self, key: str, now: datetime | None = None) -> SentimentReport:
        key = normalize_key(key)
        now = _coerce_now(now)

        entry = self.cache.get(key)
        if entry is not None and self.cache.is_fresh(entry, now):
            return self._report(entry, now, cached=True)

        async with self._key_lock(key):
            # Another caller may have finished the computation while we waited.
            entry = self.cache.get(key)
            if entry is not None and self.cache.is_fresh(entry, now):
                return self._report(entry, now, cached=True)
            return await self._compute_and_store(key, now)

    async def refresh_sentiment(self, key: str, now: datetime | None = None) -> SentimentReport:
        key = normalize_key(key)
        now = _coerce_now(now)
        async with self._key_lock(key):
            return await self._compute_and_store(key, now)

    def read_cached(self, key: str, now: datetime | None = None) -> SentimentReport:
        """Serve whatever the cache holds without ever recomputing."""

        key = normalize_key(key)
        now = _coerce_now(now)
        entry = self.cache.get(key)
        if entry is None:
            logger.warning("No cached sentiment for {}, serving fallback", key)
            return SentimentReport(
                result=fallback_result(self.mode_for(key), "no cached sentiment available"),
                computed_at=now,
            )
        report = self._report(entry, now, cached=True)
        if report.is_stale:
            logger.warning(
                "Cached sentiment for {} is stale ({:.0f} hours old)", key, report.data_age_hours
            )
        return report

    async def _compute_and_store(self, key: str, now: datetime) -> SentimentReport:
        mode = self.mode_for(key)
        try:
            result = await self._compute(key, mode, now)
        except SentimentError as exc:
            logger.warning("Serving fallback sentiment for {}: {}", key, exc)
            return SentimentReport(result=fallback_result(mode, str(exc)), computed_at=now)

        entry = self.cache.put(key, result, now)
        logger.info(
            "Computed {} sentiment for {}: {} ({})", mode.value, key, result.state.value, result.score
        )
        return self._report(entry, now, cached=False)

    async def _compute(self, key: str, mode: SentimentMode, now: datetime) -> SentimentResult:
        if self._client_factory is None:
            raise MissingCredentialsError("no upstream client configured")

        if mode is SentimentMode.MARKET:
            collection_ids: Sequence[str] = self._market_collections
            kind = EndpointKind.SALES
            since = now - self._windows.short_window
        else:
            collection_ids = (key,)
            kind = EndpointKind.FLOOR_AND_SALES
            since = now - self._windows.reference_window

        async with self._client_factory() as client:
            aggregator = FanOutAggregator(client, deadline=self._deadline)
            dataset = await aggregator.aggregate(collection_ids, since=since, kind=kind)

        if dataset.successful_sources == 0:
            raise TotalSourceFailureError(
                f"all {dataset.requested_sources} sources unavailable for {key}"
            )

        indicators = normalize(dataset, now, mode, windows=self._windows)
        result = score(
            indicators, mode, raw_summary=summarize(dataset, now, mode, windows=self._windows)
        )
        try:
            SentimentPayload.from_result(result)
        except ValidationError as exc:
            logger.error("Sentiment result for {} failed validation: {}", key, exc)
            raise ResultValidationError(str(exc)) from exc
        return result


def build_sentiment_engine(
    config: Settings | None = None,
    *,
    cache: SentimentCache | None = None,
    client_factory: ClientFactory | None = None,
) -> SentimentEngine:
    """Wire an engine from settings; one per process."""

    config = config or get_settings()
    cache = cache or SentimentCache(
        ttl=timedelta(hours=config.cache_ttl_hours),
        stale_after=timedelta(hours=config.stale_after_hours),
    )

    def _alchemy_client() -> AlchemyNFTClient:
        return AlchemyNFTClient(
            api_key=config.alchemy_api_key or "",
            base_url=str(config.alchemy_base_url),
            timeout=config.source_timeout_seconds,
            page_size=config.sales_page_size,
            max_pages=config.sales_max_pages,
        )

    return SentimentEngine(
        cache,
        client_factory=client_factory or _alchemy_client,
        market_collections=config.market_collections,
        windows=WindowConfig(
            short_window=timedelta(hours=config.short_window_hours),
            reference_days=config.reference_window_days,
        ),
        deadline=config.aggregation_deadline_seconds,
    )


__all__ = ["MARKET_KEY", "SentimentEngine", "build_sentiment_engine", "normalize_key"]
