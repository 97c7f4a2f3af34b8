from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from ingestion.normalize import (
    MalformedRecordError,
    normalize_floor_price,
    normalize_sale,
    normalize_sales,
    parse_wei_amount,
)


def test_normalize_sales_handles_real_payload(sample_sales_payload):
    records, page_key = normalize_sales(sample_sales_payload)

    assert page_key is None
    assert len(records) == 3
    first = records[0]
    assert first.timestamp == datetime(2026, 10, 19, 11, 0, tzinfo=timezone.utc)
    assert first.price_components == (1_950_000_000_000_000_000, 0, 50_000_000_000_000_000)
    assert first.price_wei == 2 * 10**18
    assert first.price_eth == 2.0
    assert first.buyer_id == "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"


def test_missing_fee_components_count_as_zero(sample_sales_payload):
    records, _ = normalize_sales(sample_sales_payload)

    oldest = records[2]
    assert oldest.price_components == (87 * 10**18, 0, 0)
    assert oldest.price_eth == 87.0


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2000000000000000000", 2 * 10**18),
        ({"amount": "5"}, 5),
        (None, 0),
        ("", 0),
        ({"symbol": "ETH"}, 0),
        (12, 12),
        ("123456789012345678901234567890", 123456789012345678901234567890),
    ],
)
def test_parse_wei_amount(raw, expected):
    assert parse_wei_amount(raw) == expected


@pytest.mark.parametrize(
    "raw", ["1.5", "1e18", "abc", "-5", "--5", "\u00b2", "\u0663", " 1 2", True, {"amount": "0x10"}]
)
def test_parse_wei_amount_rejects_non_integer(raw):
    with pytest.raises(MalformedRecordError):
        parse_wei_amount(raw)


def test_large_amounts_keep_precision_until_scaled():
    record = normalize_sale(
        {
            "blockTimestamp": "2026-10-19T11:00:00Z",
            "sellerFee": {"amount": "1000000000000000001"},
        }
    )
    assert record.price_wei == 1_000_000_000_000_000_001
    assert record.price_eth == pytest.approx(1.0)


def test_malformed_sales_are_dropped_not_zeroed():
    payload = {
        "nftSales": [
            {"blockTimestamp": "2026-10-19T11:00:00Z", "sellerFee": {"amount": "1.5"}},
            {"sellerFee": {"amount": "1000"}},
            {"blockTimestamp": "not-a-date", "sellerFee": {"amount": "1000"}},
            "garbage",
            {"blockTimestamp": "2026-10-19T09:00:00Z", "sellerFee": {"amount": "1000"}},
        ],
        "pageKey": "next-page",
    }

    records, page_key = normalize_sales(payload)

    assert page_key == "next-page"
    assert [record.price_wei for record in records] == [1000]


def test_naive_timestamps_are_treated_as_utc():
    record = normalize_sale({"blockTimestamp": "2026-10-19T11:00:00"})
    assert record.timestamp.tzinfo is not None
    assert record.timestamp == datetime(2026, 10, 19, 11, 0, tzinfo=timezone.utc)


def test_normalize_sales_ignores_non_dict_payload():
    assert normalize_sales(None) == ([], None)
    assert normalize_sales([]) == ([], None)


def test_floor_price_prefers_opensea(sample_floor_payload):
    assert normalize_floor_price(sample_floor_payload) == Decimal("5.0")


def test_floor_price_falls_back_to_looksrare():
    payload = {
        "openSea": {"error": "unable to fetch floor price"},
        "looksRare": {"floorPrice": 4.95, "priceCurrency": "ETH"},
    }
    assert normalize_floor_price(payload) == Decimal("4.95")


@pytest.mark.parametrize(
    "payload",
    [None, {}, {"openSea": {"floorPrice": None}}, {"openSea": {"floorPrice": "NaN"}}],
)
def test_floor_price_absent(payload):
    assert normalize_floor_price(payload) is None


def test_non_ascii_digits_drop_only_that_sale():
    payload = {
        "nftSales": [
            {"blockTimestamp": "2026-10-19T11:00:00Z", "sellerFee": {"amount": "1000"}},
            {"blockTimestamp": "2026-10-19T10:00:00Z", "sellerFee": {"amount": "²"}},
        ]
    }

    records, _ = normalize_sales(payload)

    assert [record.price_wei for record in records] == [1000]
