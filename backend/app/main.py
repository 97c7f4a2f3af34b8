from __future__ import annotations

import secrets
from datetime import datetime, timezone
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Query

from . import schemas
from .core.config import settings
from .domain import SentimentReport
from .services.sentiment.engine import MARKET_KEY, SentimentEngine, build_sentiment_engine

app = FastAPI(title="NFT Sentiment API", version="0.1.0", debug=settings.debug)


@lru_cache
def _sentiment_engine() -> SentimentEngine:
    """Provide the process-wide engine and its cache."""

    return build_sentiment_engine(settings)


def _respond(report: SentimentReport) -> schemas.SentimentResponse:
    return schemas.SentimentResponse.from_report(report)


@app.get("/healthz", response_model=schemas.HealthStatus, tags=["system"])
def healthcheck(engine: SentimentEngine = Depends(_sentiment_engine)) -> schemas.HealthStatus:
    """Readiness probe that also reports how many keys are cached."""

    return schemas.HealthStatus(
        status="ok", cache_size=len(engine.cache), timestamp=datetime.now(timezone.utc)
    )


@app.get("/sentiment", response_model=schemas.SentimentResponse, tags=["sentiment"])
async def collection_sentiment(
    contract: Annotated[
        str | None,
        Query(description="Collection contract address; defaults to the configured collection"),
    ] = None,
    engine: SentimentEngine = Depends(_sentiment_engine),
):
    """Return the sentiment of one collection, served from cache when fresh."""

    key = contract if contract is not None else settings.default_collection
    try:
        report = await engine.get_sentiment(key)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _respond(report)


@app.get("/sentiment/market", response_model=schemas.SentimentResponse, tags=["sentiment"])
async def market_sentiment(engine: SentimentEngine = Depends(_sentiment_engine)):
    """Return the market-wide sentiment across the configured collections."""

    return _respond(await engine.get_sentiment(MARKET_KEY))


@app.get("/sentiment/market/cached", response_model=schemas.SentimentResponse, tags=["sentiment"])
def cached_market_sentiment(engine: SentimentEngine = Depends(_sentiment_engine)):
    """Serve the last market-wide snapshot without recomputing it."""

    return _respond(engine.read_cached(MARKET_KEY))


@app.post("/sentiment/refresh", response_model=schemas.SentimentResponse, tags=["sentiment"])
async def refresh_sentiment(
    secret: Annotated[str, Query(description="Shared refresh secret")],
    key: Annotated[str, Query(description="Collection address or 'market'")] = MARKET_KEY,
    engine: SentimentEngine = Depends(_sentiment_engine),
):
    """Force a recomputation for ``key`` and store it in the cache."""

    expected = settings.refresh_secret
    if not expected or not secrets.compare_digest(secret.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        report = await engine.refresh_sentiment(key)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _respond(report)
