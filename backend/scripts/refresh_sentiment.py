import argparse
import asyncio
import json
from pathlib import Path

from loguru import logger

from app.core.config import get_settings
from app.schemas import SentimentResponse
from app.services.sentiment.engine import MARKET_KEY, build_sentiment_engine


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recompute NFT market sentiment snapshots")
    parser.add_argument(
        "--contract",
        action="append",
        default=None,
        metavar="ADDRESS",
        help="Collection contract to refresh (repeatable)",
    )
    parser.add_argument(
        "--market",
        action="store_true",
        help="Refresh the market-wide sentiment (default when no --contract is given)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the JSON snapshots to this file instead of stdout",
    )
    return parser.parse_args(argv)


async def refresh(keys: list[str]) -> list[SentimentResponse]:
    engine = build_sentiment_engine(get_settings())
    responses: list[SentimentResponse] = []
    for key in keys:
        report = await engine.refresh_sentiment(key)
        response = SentimentResponse.from_report(report)
        if response.fallback:
            logger.warning("Refresh for {} fell back to neutral sentiment", key)
        else:
            logger.info(
                "Refreshed {}: {} ({})", key, response.market_state.value, response.sentiment_score
            )
        responses.append(response)
    return responses


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    keys = list(args.contract or [])
    if args.market or not keys:
        keys.append(MARKET_KEY)

    responses = asyncio.run(refresh(keys))
    document = json.dumps(
        [response.model_dump(mode="json") for response in responses], indent=2
    )
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(document + "\n", encoding="utf-8")
        logger.info("Wrote {} snapshots to {}", len(responses), args.output)
    else:
        print(document)
    return 1 if any(response.fallback for response in responses) else 0


if __name__ == "__main__":
    raise SystemExit(main())
