from __future__ import annotations

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Any

import httpx
from loguru import logger

from app.core.config import settings
from app.domain import CollectionDataset, EndpointKind, RawSaleRecord
from app.services.sentiment.errors import MissingCredentialsError, SourceUnavailableError

from .normalize import normalize_floor_price, normalize_sales


FLOOR_PRICE_PATH = "getFloorPrice"
SALES_PATH = "getNFTSales"


class AlchemyNFTClient:
    """Thin async wrapper around the Alchemy NFT floor price and sales endpoints.

    :meth:`fetch` is the only method that never raises for upstream problems:
    it bounds the whole call with ``timeout`` and reports failures as an
    unavailable :class:`CollectionDataset`.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        page_size: int | None = None,
        max_pages: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        api_key = api_key if api_key is not None else settings.alchemy_api_key
        if not api_key:
            raise MissingCredentialsError("ALCHEMY_API_KEY not configured")
        self.base_url = (base_url or str(settings.alchemy_base_url)).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.source_timeout_seconds
        self.page_size = page_size or settings.sales_page_size
        self.max_pages = max_pages or settings.sales_max_pages
        self.client = httpx.AsyncClient(
            base_url=f"{self.base_url}/{api_key}/",
            timeout=self.timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        logger.debug("Alchemy GET {} params={}", path, params)
        response = await self.client.get(path, params=params)
        response.raise_for_status()
        return response.json()

    async def fetch_floor_price(self, collection_id: str) -> Decimal | None:
        payload = await self._get(FLOOR_PRICE_PATH, {"contractAddress": collection_id})
        return normalize_floor_price(payload)

    async def fetch_sales(self, collection_id: str, *, since: datetime) -> list[RawSaleRecord]:
        """Page through sales newest-first until one predates ``since``."""

        sales: list[RawSaleRecord] = []
        page_key: str | None = None
        for _ in range(self.max_pages):
            params: dict[str, Any] = {
                "contractAddress": collection_id,
                "order": "desc",
                "limit": self.page_size,
            }
            if page_key:
                params["pageKey"] = page_key
            payload = await self._get(SALES_PATH, params)
            records, page_key = normalize_sales(payload)
            sales.extend(records)

            if not page_key or any(record.timestamp < since for record in records):
                break
        return sales

    async def _fetch_collection(
        self, collection_id: str, kind: EndpointKind, since: datetime
    ) -> CollectionDataset:
        if kind is EndpointKind.SALES:
            sales = await self.fetch_sales(collection_id, since=since)
            return CollectionDataset(collection_id=collection_id, sales=tuple(sales))

        floor_result, sales_result = await asyncio.gather(
            self.fetch_floor_price(collection_id),
            self.fetch_sales(collection_id, since=since),
            return_exceptions=True,
        )
        for result in (floor_result, sales_result):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
        if isinstance(floor_result, Exception) and isinstance(sales_result, Exception):
            raise SourceUnavailableError(collection_id, str(sales_result)) from sales_result

        floor_price: Decimal | None = None
        if isinstance(floor_result, Exception):
            logger.warning("Floor price unavailable for {}: {}", collection_id, floor_result)
        else:
            floor_price = floor_result

        sales: list[RawSaleRecord] = []
        if isinstance(sales_result, Exception):
            logger.warning("Sales unavailable for {}: {}", collection_id, sales_result)
        else:
            sales = sales_result

        return CollectionDataset(
            collection_id=collection_id, floor_price=floor_price, sales=tuple(sales)
        )

    async def fetch(
        self,
        collection_id: str,
        kind: EndpointKind = EndpointKind.FLOOR_AND_SALES,
        *,
        since: datetime,
    ) -> CollectionDataset:
        try:
            return await asyncio.wait_for(
                self._fetch_collection(collection_id, kind, since), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Fetch for {} timed out after {}s", collection_id, self.timeout)
        except (httpx.HTTPError, ValueError, SourceUnavailableError) as exc:
            logger.warning("Fetch for {} failed: {}", collection_id, exc)
        return CollectionDataset.unavailable(collection_id)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "AlchemyNFTClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
