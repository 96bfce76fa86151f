"""
Rolling-window statistics over the snapshot store.

Window results are memoized per (window seconds, wall-clock second). The cache
is an insertion-ordered map: once it grows past capacity the first-inserted key
is evicted, regardless of how recently it was read. Any store mutation drops
the whole cache.

The pure helpers at the bottom turn WindowMetrics into the ratios and bar
geometry a rendering layer needs.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from volume_sentiment.core.models import (
    EMPTY_METRICS,
    CenteredBar,
    PriceMode,
    RangeOverlay,
    Snapshot,
    VolumeDiff,
    WindowMetrics,
)
from volume_sentiment.core.time_utils import floor_to_second_ms

from .store import SnapshotStore

DEFAULT_CACHE_CAPACITY = 10
NEUTRAL_BUY_PERCENT = 50.0


@dataclass(frozen=True, slots=True)
class _WindowEntry:
    snapshots: tuple[Snapshot, ...]
    metrics: WindowMetrics


def _valid_prices(snapshot: Snapshot) -> list[float]:
    prices: list[float] = []
    if snapshot.has_valid_buy:
        prices.append(snapshot.buy_avg_price)
    if snapshot.has_valid_sell:
        prices.append(snapshot.sell_avg_price)
    return prices


def _range_prices(snapshot: Snapshot) -> list[float]:
    prices: list[float] = []
    if snapshot.buy_min_price > 0:
        prices.extend((snapshot.buy_min_price, snapshot.buy_max_price or snapshot.buy_min_price))
    elif snapshot.has_valid_buy:
        prices.append(snapshot.buy_avg_price)
    if snapshot.sell_min_price > 0:
        prices.extend((snapshot.sell_min_price, snapshot.sell_max_price or snapshot.sell_min_price))
    elif snapshot.has_valid_sell:
        prices.append(snapshot.sell_avg_price)
    return prices


def aggregate_metrics(snapshots: Sequence[Snapshot], price_mode: PriceMode = PriceMode.MEAN) -> WindowMetrics:
    """Sum volumes and summarize prices over a slice of snapshots.

    ``PriceMode.MEAN`` averages every valid per-side average price without
    weighting. ``PriceMode.VWAP`` weights each side's average by its volume and
    takes the range from the min/max fields when the feed provides them.
    """
    if not snapshots:
        return EMPTY_METRICS

    buy_total = 0.0
    sell_total = 0.0
    prices: list[float] = []
    weighted_sum = 0.0

    for snapshot in snapshots:
        buy_total += snapshot.buy_volume
        sell_total += snapshot.sell_volume
        if price_mode is PriceMode.VWAP:
            if snapshot.buy_avg_price > 0:
                weighted_sum += snapshot.buy_volume * snapshot.buy_avg_price
            if snapshot.sell_avg_price > 0:
                weighted_sum += snapshot.sell_volume * snapshot.sell_avg_price
            prices.extend(_range_prices(snapshot))
        else:
            prices.extend(_valid_prices(snapshot))

    if price_mode is PriceMode.VWAP:
        volume = buy_total + sell_total
        avg_price = weighted_sum / volume if volume else 0.0
    else:
        avg_price = sum(prices) / len(prices) if prices else 0.0

    return WindowMetrics(
        buy_volume_total=buy_total,
        sell_volume_total=sell_total,
        avg_price=avg_price,
        min_price=min(prices) if prices else 0.0,
        max_price=max(prices) if prices else 0.0,
    )


class WindowAggregator:
    def __init__(
        self,
        store: SnapshotStore,
        *,
        cache_capacity: int = DEFAULT_CACHE_CAPACITY,
        price_mode: PriceMode = PriceMode.MEAN,
    ) -> None:
        self._store = store
        self._cache_capacity = max(1, cache_capacity)
        self._price_mode = price_mode
        self._cache: OrderedDict[tuple[int, int], _WindowEntry] = OrderedDict()
        self._cache_revision = store.revision

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    @property
    def price_mode(self) -> PriceMode:
        return self._price_mode

    def invalidate(self) -> None:
        self._cache.clear()
        self._cache_revision = self._store.revision

    def metrics_for(self, window_seconds: int, now: int) -> WindowMetrics:
        return self._entry(window_seconds, now).metrics

    def snapshots_for(self, window_seconds: int, now: int) -> tuple[Snapshot, ...]:
        return self._entry(window_seconds, now).snapshots

    def _entry(self, window_seconds: int, now: int) -> _WindowEntry:
        if self._cache_revision != self._store.revision:
            self.invalidate()

        key = (int(window_seconds), floor_to_second_ms(now))
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        snapshots = tuple(self._store.since(now - int(window_seconds) * 1000))
        entry = _WindowEntry(snapshots=snapshots, metrics=aggregate_metrics(snapshots, self._price_mode))
        self._cache[key] = entry
        while len(self._cache) > self._cache_capacity:
            self._cache.popitem(last=False)
        return entry


def buy_percent(buy: float, sell: float) -> float:
    total = buy + sell
    if total <= 0:
        return NEUTRAL_BUY_PERCENT
    return min(100.0, max(0.0, buy / total * 100))


def metrics_buy_percent(metrics: WindowMetrics) -> float:
    return buy_percent(metrics.buy_volume_total, metrics.sell_volume_total)


def volume_diff(buy: float, sell: float) -> VolumeDiff:
    diff = buy - sell
    sign = (diff > 0) - (diff < 0)
    return VolumeDiff(magnitude=abs(diff), sign=sign)


def centered_bar(diff: float) -> CenteredBar:
    clamped = max(-100.0, min(diff, 100.0))
    if clamped >= 0:
        return CenteredBar(offset=50.0, width=clamped, positive=True)
    return CenteredBar(offset=50.0 + clamped, width=-clamped, positive=False)


def empty_bar() -> CenteredBar:
    return CenteredBar(offset=50.0, width=0.0, positive=True)


def price_centered_diff(metrics: WindowMetrics) -> float:
    """Where the window average sits inside its own [min, max] range, scaled to [-100, 100]."""
    low, high = metrics.min_price, metrics.max_price
    if not high or high <= low:
        return 0.0
    mid = (low + high) / 2
    half_range = (high - low) / 2
    return max(-100.0, min((metrics.avg_price - mid) / half_range * 100, 100.0))


def volume_bar_diff(metrics: WindowMetrics) -> float:
    return metrics_buy_percent(metrics) - NEUTRAL_BUY_PERCENT


def price_drift_percent(short: WindowMetrics, long: WindowMetrics) -> float:
    if not long.avg_price:
        return 0.0
    return (short.avg_price - long.avg_price) / long.avg_price * 100


def trade_counts(snapshots: Iterable[Snapshot]) -> tuple[int, int]:
    buys = 0
    sells = 0
    for snapshot in snapshots:
        buys += snapshot.buy_count
        sells += snapshot.sell_count
    return buys, sells


def trade_diff_bar(buy_count: int, sell_count: int) -> CenteredBar:
    total = buy_count + sell_count
    if not total:
        return empty_bar()
    return centered_bar((buy_count - sell_count) / total * 100)


def completeness_percent(start_ms: int | None, now: int, window_seconds: int) -> float:
    if start_ms is None:
        return 0.0
    elapsed = max(0, now - start_ms)
    return min(elapsed / (window_seconds * 1000) * 100, 100.0)


def range_overlay(inner: WindowMetrics, outer: WindowMetrics) -> RangeOverlay:
    """Place the inner window's price band inside the outer window's range."""
    span = outer.max_price - outer.min_price
    if not span or not inner.min_price or not inner.max_price:
        return RangeOverlay(left=0.0, width=0.0)

    left_value = max(inner.min_price, outer.min_price)
    right_value = min(inner.max_price, outer.max_price)
    left = max(0.0, min((left_value - outer.min_price) / span * 100, 100.0))
    width = max(0.0, min((right_value - left_value) / span * 100, 100.0 - left))
    return RangeOverlay(left=left, width=width)


def price_marker(inner: WindowMetrics, outer: WindowMetrics) -> float:
    span = outer.max_price - outer.min_price
    if not span:
        return 0.0
    clamped = min(max(inner.avg_price, outer.min_price), outer.max_price)
    return (clamped - outer.min_price) / span * 100
