from __future__ import annotations

import json

import pytest

from volume_sentiment.sources.payload import PayloadValidationError, parse_snapshot


def test_parse_snapshot_reads_plain_shape_and_defaults_missing_fields() -> None:
    snapshot = parse_snapshot(
        json.dumps(
            {
                "exchange": "binance",
                "timestamp": 1_700_000_000_000,
                "buy_volume": 1.5,
                "buy_avg_price": 100.0,
                "buy_count": 3,
            }
        )
    )

    assert snapshot.exchange == "binance"
    assert snapshot.timestamp == 1_700_000_000_000
    assert snapshot.buy_volume == 1.5
    assert snapshot.buy_avg_price == 100.0
    assert snapshot.buy_count == 3
    assert snapshot.sell_volume == 0.0
    assert snapshot.sell_avg_price == 0.0
    assert snapshot.sell_count == 0
    assert snapshot.buy_min_price == 0.0


def test_parse_snapshot_accepts_min_max_variant_and_bytes() -> None:
    raw = json.dumps(
        {
            "exchange": "kraken",
            "timestamp": 5,
            "buy_volume": 0,
            "sell_volume": 2.0,
            "sell_avg_price": 200.0,
            "sell_min_price": 199.0,
            "sell_max_price": 201.0,
        }
    ).encode("utf-8")

    snapshot = parse_snapshot(raw)

    assert snapshot.sell_min_price == 199.0
    assert snapshot.sell_max_price == 201.0
    assert snapshot.has_valid_sell is True
    assert snapshot.has_valid_buy is False


@pytest.mark.parametrize(
    "payload",
    [
        {"timestamp": 1, "buy_volume": 0},
        {"exchange": "", "timestamp": 1, "buy_volume": 0},
        {"exchange": "x", "buy_volume": 0},
        {"exchange": "x", "timestamp": 0, "buy_volume": 0},
        {"exchange": "x", "timestamp": -5, "buy_volume": 0},
        {"exchange": "x", "timestamp": "123", "buy_volume": 0},
        {"exchange": "x", "timestamp": 1, "buy_volume": 1.0},
        {"exchange": "x", "timestamp": 1, "buy_volume": 1.0, "buy_avg_price": 0},
        {"exchange": "x", "timestamp": 1},
        {"exchange": "x", "timestamp": 1, "buy_volume": -1.0, "buy_avg_price": 10.0},
        {"exchange": "x", "timestamp": 1, "buy_volume": 0, "sell_count": "many"},
        {"exchange": "x", "timestamp": 10**400, "buy_volume": 1.0, "buy_avg_price": 100.0},
        {"exchange": "x", "timestamp": 1, "buy_volume": 10**400, "buy_avg_price": 100.0},
        {"exchange": "x", "timestamp": 1, "buy_volume": 0, "sell_max_price": 10**400},
    ],
)
def test_parse_snapshot_rejects_malformed_payloads(payload: dict[str, object]) -> None:
    with pytest.raises(PayloadValidationError):
        parse_snapshot(payload)


def test_parse_snapshot_accepts_one_plausible_side_next_to_an_implausible_one() -> None:
    snapshot = parse_snapshot(
        {
            "exchange": "x",
            "timestamp": 1,
            "buy_volume": 0,
            "sell_volume": 2.0,
        }
    )
    assert snapshot.sell_volume == 2.0
    assert snapshot.has_valid_sell is False


def test_parse_snapshot_rejects_oversized_integer_in_raw_json() -> None:
    raw = '{"exchange":"x","timestamp":1' + "0" * 400 + ',"buy_volume":1,"buy_avg_price":100}'
    with pytest.raises(PayloadValidationError, match="timestamp"):
        parse_snapshot(raw)


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", b"\xff\xfe", "42"])
def test_parse_snapshot_rejects_undecodable_text(raw: str | bytes) -> None:
    with pytest.raises(PayloadValidationError):
        parse_snapshot(raw)
