from __future__ import annotations

import asyncio
import copy
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import httpx
import pytest

from app.core.config import Settings
from ingestion.client import AlchemyNFTClient


FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
TEST_BASE_URL = "https://alchemy.test/nft/v3"
TEST_API_KEY = "test-key"


def _load(name: str) -> dict[str, Any]:
    path = Path(__file__).parent / "data" / name
    return json.loads(path.read_text(encoding="utf-8"))


class AlchemyStub:
    """Callable handler for ``httpx.MockTransport`` that mimics the NFT API.

    Every contract gets the same floor and sales payloads unless overridden.
    Contracts listed in ``failing`` answer 503; ``delays`` holds seconds to
    sleep before answering, keyed by lower-cased contract address.
    """

    def __init__(
        self,
        *,
        floor_payload: dict[str, Any] | None = None,
        sales_payload: dict[str, Any] | None = None,
        sales_pages: dict[str, dict[str, Any]] | None = None,
        failing: set[str] | None = None,
        failing_paths: set[str] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.floor_payload = floor_payload if floor_payload is not None else _load("sample_floor_price.json")
        self.sales_payload = sales_payload if sales_payload is not None else _load("sample_sales.json")
        self.sales_pages = sales_pages or {}
        self.failing = {item.lower() for item in (failing or set())}
        self.failing_paths = failing_paths or set()
        self.delays = {key.lower(): value for key, value in (delays or {}).items()}
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        contract = (request.url.params.get("contractAddress") or "").lower()
        endpoint = request.url.path.rsplit("/", 1)[-1]

        delay = self.delays.get(contract)
        if delay:
            await asyncio.sleep(delay)
        if contract in self.failing or endpoint in self.failing_paths:
            return httpx.Response(503, json={"error": "service unavailable"})
        if endpoint == "getFloorPrice":
            return httpx.Response(200, json=copy.deepcopy(self.floor_payload))
        if endpoint == "getNFTSales":
            page_key = request.url.params.get("pageKey")
            if page_key:
                return httpx.Response(200, json=copy.deepcopy(self.sales_pages[page_key]))
            return httpx.Response(200, json=copy.deepcopy(self.sales_payload))
        return httpx.Response(404, json={"error": f"unknown endpoint {endpoint}"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def client(self, *, timeout: float = 2.0, max_pages: int = 3) -> AlchemyNFTClient:
        return AlchemyNFTClient(
            api_key=TEST_API_KEY,
            base_url=TEST_BASE_URL,
            timeout=timeout,
            page_size=100,
            max_pages=max_pages,
            transport=self.transport(),
        )


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def sample_sales_payload() -> dict[str, Any]:
    return _load("sample_sales.json")


@pytest.fixture
def sample_floor_payload() -> dict[str, Any]:
    return _load("sample_floor_price.json")


@pytest.fixture
def alchemy_stub() -> AlchemyStub:
    return AlchemyStub()


@pytest.fixture
def make_stub():
    return AlchemyStub


@pytest.fixture
def test_settings(monkeypatch) -> Settings:
    settings = Settings(
        alchemy_api_key=TEST_API_KEY,
        alchemy_base_url=TEST_BASE_URL,
        source_timeout_seconds=2.0,
        aggregation_deadline_seconds=5.0,
        market_collections="0xaaa,0xbbb,0xccc",
        refresh_secret="s3cret",
    )
    monkeypatch.setattr("app.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("app.core.config.settings", settings)
    return settings
