from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from loguru import logger

from app.core.config import settings
from app.domain import CollectionDataset, EndpointKind, MarketDataset


class SourceClient(Protocol):
    """Anything that can fetch one collection without raising for upstream failures."""

    async def fetch(
        self,
        collection_id: str,
        kind: EndpointKind = EndpointKind.FLOOR_AND_SALES,
        *,
        since: datetime,
    ) -> CollectionDataset:
        """Return the collection's dataset, or an unavailable one."""


class FanOutAggregator:
    """Run one source fetch per collection concurrently and keep input order."""

    def __init__(self, client: SourceClient, *, deadline: float | None = None) -> None:
        self._client = client
        self._deadline = deadline if deadline is not None else settings.aggregation_deadline_seconds

    async def aggregate(
        self,
        collection_ids: Sequence[str],
        *,
        since: datetime,
        kind: EndpointKind = EndpointKind.FLOOR_AND_SALES,
        deadline: float | None = None,
    ) -> MarketDataset:
        if not collection_ids:
            raise ValueError("aggregate() requires at least one collection id")
        deadline = self._deadline if deadline is None else deadline

        tasks = [
            asyncio.create_task(self._client.fetch(collection_id, kind, since=since))
            for collection_id in collection_ids
        ]
        try:
            _, pending = await asyncio.wait(tasks, timeout=deadline)
        finally:
            # No fetch outlives the round, even when the caller is cancelled.
            unfinished = [task for task in tasks if not task.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)
        if pending:
            logger.warning(
                "Aggregation deadline of {}s expired with {} fetches pending",
                deadline,
                len(pending),
            )

        datasets: list[CollectionDataset] = []
        for collection_id, task in zip(collection_ids, tasks):
            if task.cancelled():
                datasets.append(CollectionDataset.unavailable(collection_id))
            else:
                datasets.append(task.result())

        market = MarketDataset.from_datasets(datasets)
        logger.info(
            "Aggregated {}/{} sources (kind={})",
            market.successful_sources,
            market.requested_sources,
            kind.value,
        )
        return market


__all__ = ["FanOutAggregator", "SourceClient"]
