from __future__ import annotations

import random

from volume_sentiment.core.models import Snapshot, TradeSide
from volume_sentiment.engine.trades import (
    SIZE_LARGE,
    SIZE_MEDIUM,
    SIZE_NORMAL,
    SIZE_SMALL,
    extract_trades,
    limit_trades,
    max_volume,
    relative_size,
    size_bucket,
)

T0 = 1_700_000_000_000


def test_extract_trades_yields_one_trade_per_valid_side_newest_first() -> None:
    snapshots = [
        Snapshot(exchange="a", timestamp=T0, buy_volume=1.0, buy_avg_price=100.0, buy_count=4),
        Snapshot(
            exchange="b",
            timestamp=T0 + 2_000,
            buy_volume=2.0,
            buy_avg_price=101.0,
            sell_volume=0.5,
            sell_avg_price=99.0,
        ),
        Snapshot(exchange="c", timestamp=T0 + 1_000, sell_volume=3.0),
    ]

    trades = extract_trades(snapshots)

    assert [(trade.side, trade.timestamp) for trade in trades] == [
        (TradeSide.BUY, T0 + 2_000),
        (TradeSide.SELL, T0 + 2_000),
        (TradeSide.BUY, T0),
    ]
    assert trades[0].count == 1
    assert trades[2].count == 4
    assert trades[1].price == 99.0


def test_limit_trades_truncates_to_most_recent_of_one_side() -> None:
    rng = random.Random(7)
    snapshots = [
        Snapshot(
            exchange="x",
            timestamp=T0 + rng.randrange(300_000),
            buy_volume=rng.random() + 0.1,
            buy_avg_price=100.0,
            sell_volume=rng.random() + 0.1,
            sell_avg_price=100.0,
        )
        for _ in range(80)
    ]
    trades = extract_trades(snapshots)

    for side in TradeSide:
        limited = limit_trades(trades, side, 25)
        assert len(limited) == 25
        assert all(trade.side is side for trade in limited)
        timestamps = [trade.timestamp for trade in limited]
        assert timestamps == sorted(timestamps, reverse=True)
        assert timestamps[0] == max(s.timestamp for s in snapshots)

    assert len(limit_trades(trades, TradeSide.BUY, 500)) == 80
    assert limit_trades(trades, TradeSide.BUY, 0) == []


def test_max_volume_and_relative_size() -> None:
    trades = extract_trades(
        [
            Snapshot(exchange="x", timestamp=T0, buy_volume=1.0, buy_avg_price=100.0),
            Snapshot(exchange="x", timestamp=T0, sell_volume=4.0, sell_avg_price=100.0),
        ]
    )

    assert max_volume(trades) == 4.0
    assert max_volume([]) == 0.0
    assert relative_size(1.0, 4.0) == 0.25
    assert relative_size(1.0, 0.0) == 0.0


def test_size_bucket_tiers() -> None:
    assert size_bucket(4.0, 4.0) == SIZE_LARGE
    assert size_bucket(2.5, 4.0) == SIZE_MEDIUM
    assert size_bucket(1.5, 4.0) == SIZE_SMALL
    assert size_bucket(1.0, 4.0) == SIZE_NORMAL
