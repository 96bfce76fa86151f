from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from volume_sentiment.core.models import ExchangeRollup, Snapshot

from .store import SnapshotStore
from .windows import NEUTRAL_BUY_PERCENT, buy_percent


@dataclass(slots=True)
class _VenueAccumulator:
    total_volume: float = 0.0
    last_price: float = 0.0
    price_timestamp: int = 0


def rollup(snapshots: Iterable[Snapshot], global_avg_price: float) -> list[ExchangeRollup]:
    """Per-venue volume and latest price, largest venue first.

    The latest price comes from the newest snapshot with a valid side; the buy
    side is preferred when both sides are valid.
    """
    venues: dict[str, _VenueAccumulator] = {}
    for snapshot in snapshots:
        if not snapshot.exchange:
            continue
        venue = venues.setdefault(snapshot.exchange, _VenueAccumulator())
        venue.total_volume += snapshot.total_volume
        if snapshot.timestamp <= venue.price_timestamp:
            continue
        if snapshot.has_valid_buy:
            venue.last_price = snapshot.buy_avg_price
            venue.price_timestamp = snapshot.timestamp
        elif snapshot.has_valid_sell:
            venue.last_price = snapshot.sell_avg_price
            venue.price_timestamp = snapshot.timestamp

    rollups = [
        ExchangeRollup(
            name=name,
            total_volume=venue.total_volume,
            last_price=venue.last_price,
            diff_from_global_avg_percent=_diff_percent(venue.last_price, global_avg_price),
        )
        for name, venue in venues.items()
    ]
    rollups.sort(key=lambda item: item.total_volume, reverse=True)
    return rollups


def _diff_percent(price: float, reference: float) -> float:
    if not price or not reference:
        return 0.0
    return (price - reference) / reference * 100


def buy_percent_for(store: SnapshotStore, exchange: str, window_seconds: int, now: int) -> float:
    if not exchange:
        return NEUTRAL_BUY_PERCENT
    buy = 0.0
    sell = 0.0
    for snapshot in store.since(now - int(window_seconds) * 1000, exchange=exchange):
        buy += snapshot.buy_volume
        sell += snapshot.sell_volume
    return buy_percent(buy, sell)
