from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from dateutil import parser as date_parser
from loguru import logger

from app.domain import RawSaleRecord


FEE_COMPONENT_FIELDS = ("sellerFee", "protocolFee", "royaltyFee")
FLOOR_PRICE_MARKETPLACES = ("openSea", "looksRare")
_WEI_AMOUNT_RE = re.compile(r"-?[0-9]+")


class MalformedRecordError(ValueError):
    """Raised when an upstream sale cannot be decoded without guessing."""


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = date_parser.isoparse(str(value))
    except (ValueError, TypeError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def parse_wei_amount(value: Any) -> int:
    """Decode one fee component into an integer amount of wei.

    A missing component (``None``, empty string, or an object without an
    ``amount``) counts as zero. Anything else must be an integer, either as a
    decimal string or an ``int``; fractional or non-numeric input raises
    :class:`MalformedRecordError` instead of being coerced.
    """

    if isinstance(value, dict):
        value = value.get("amount")
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise MalformedRecordError(f"fee amount must be an integer, got {value!r}")
    if isinstance(value, int):
        amount = value
    else:
        text = str(value).strip()
        if not _WEI_AMOUNT_RE.fullmatch(text):
            raise MalformedRecordError(f"fee amount is not an integer string: {value!r}")
        amount = int(text)
    if amount < 0:
        raise MalformedRecordError(f"fee amount must not be negative: {value!r}")
    return amount


def normalize_sale(raw_sale: dict[str, Any]) -> RawSaleRecord:
    timestamp = _parse_datetime(raw_sale.get("blockTimestamp") or raw_sale.get("timestamp"))
    if timestamp is None:
        raise MalformedRecordError("sale is missing a parseable blockTimestamp")

    components = tuple(parse_wei_amount(raw_sale.get(name)) for name in FEE_COMPONENT_FIELDS)
    buyer = raw_sale.get("buyerAddress") or raw_sale.get("to")
    seller = raw_sale.get("sellerAddress") or raw_sale.get("from")
    return RawSaleRecord(
        timestamp=timestamp,
        price_components=components,
        buyer_id=str(buyer).lower() if buyer else None,
        seller_id=str(seller).lower() if seller else None,
    )


def normalize_sales(payload: Any) -> tuple[list[RawSaleRecord], str | None]:
    """Decode one page of ``getNFTSales`` into records plus the next page key.

    Records that cannot be decoded are dropped and logged; they never turn
    into zero-priced sales.
    """

    if not isinstance(payload, dict):
        return [], None

    records: list[RawSaleRecord] = []
    for raw_sale in _as_list(payload.get("nftSales")):
        if not isinstance(raw_sale, dict):
            continue
        try:
            records.append(normalize_sale(raw_sale))
        except MalformedRecordError as exc:
            logger.warning(
                "Dropping malformed sale tx={}: {}", raw_sale.get("transactionHash"), exc
            )
    page_key = payload.get("pageKey") or None
    return records, page_key


def normalize_floor_price(payload: Any) -> Decimal | None:
    """Return the first marketplace floor price in ETH, or ``None`` when unlisted."""

    if not isinstance(payload, dict):
        return None
    for marketplace in FLOOR_PRICE_MARKETPLACES:
        entry = payload.get(marketplace)
        if not isinstance(entry, dict):
            continue
        raw_price = entry.get("floorPrice")
        if raw_price is None or isinstance(raw_price, bool):
            continue
        try:
            price = Decimal(str(raw_price))
        except (InvalidOperation, ValueError):
            continue
        if price.is_nan() or price.is_infinite() or price < 0:
            continue
        return price
    return None
