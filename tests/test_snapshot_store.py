from __future__ import annotations

from volume_sentiment.core.models import Snapshot
from volume_sentiment.engine.store import SnapshotStore

T0 = 1_700_000_000_000


def _snapshot(timestamp: int, exchange: str = "binance") -> Snapshot:
    return Snapshot(exchange=exchange, timestamp=timestamp, buy_volume=1.0, buy_avg_price=100.0)


def test_store_keeps_most_recent_capacity_entries() -> None:
    store = SnapshotStore()
    timestamps = [T0 + index * 10 for index in range(1001)]
    for timestamp in timestamps:
        store.admit(_snapshot(timestamp), now=timestamp)

    remaining = store.all()
    assert len(remaining) == 1000
    assert remaining[0].timestamp == timestamps[1]
    assert remaining[-1].timestamp == timestamps[-1]


def test_store_drops_entries_at_or_beyond_retention_horizon() -> None:
    store = SnapshotStore(retention_ms=300_000)
    store.admit(_snapshot(T0), now=T0)
    store.admit(_snapshot(T0 + 1_000), now=T0 + 1_000)

    store.admit(_snapshot(T0 + 300_000), now=T0 + 300_000)

    assert [item.timestamp for item in store.all()] == [T0 + 1_000, T0 + 300_000]


def test_store_preserves_arrival_order() -> None:
    store = SnapshotStore()
    store.admit(_snapshot(T0 + 500, "a"), now=T0 + 500)
    store.admit(_snapshot(T0 + 100, "b"), now=T0 + 500)

    assert [item.exchange for item in store.all()] == ["a", "b"]


def test_store_reset_and_revision() -> None:
    store = SnapshotStore()
    start = store.revision
    store.admit(_snapshot(T0), now=T0)
    assert store.revision == start + 1
    assert len(store) == 1

    store.reset()
    assert store.revision == start + 2
    assert store.all() == ()


def test_store_since_filters_by_cutoff_and_exchange() -> None:
    store = SnapshotStore()
    store.admit(_snapshot(T0, "a"), now=T0)
    store.admit(_snapshot(T0 + 1_000, "b"), now=T0 + 1_000)
    store.admit(_snapshot(T0 + 2_000, "a"), now=T0 + 2_000)

    assert [item.timestamp for item in store.since(T0)] == [T0 + 1_000, T0 + 2_000]
    assert [item.timestamp for item in store.since(T0 - 1, exchange="a")] == [T0, T0 + 2_000]
