from __future__ import annotations

from collections.abc import Iterable, Sequence

from volume_sentiment.core.models import Snapshot, Trade, TradeSide

DEFAULT_DISPLAY_LIMIT = 25

SIZE_LARGE = "large"
SIZE_MEDIUM = "medium"
SIZE_SMALL = "small"
SIZE_NORMAL = "normal"


def extract_trades(snapshots: Iterable[Snapshot]) -> list[Trade]:
    """One trade per valid side of each snapshot, most recent first."""
    trades: list[Trade] = []
    for snapshot in snapshots:
        if snapshot.has_valid_buy:
            trades.append(
                Trade(
                    side=TradeSide.BUY,
                    volume=snapshot.buy_volume,
                    count=snapshot.buy_count or 1,
                    price=snapshot.buy_avg_price,
                    timestamp=snapshot.timestamp,
                )
            )
        if snapshot.has_valid_sell:
            trades.append(
                Trade(
                    side=TradeSide.SELL,
                    volume=snapshot.sell_volume,
                    count=snapshot.sell_count or 1,
                    price=snapshot.sell_avg_price,
                    timestamp=snapshot.timestamp,
                )
            )
    # stable sort keeps arrival order among equal timestamps
    trades.sort(key=lambda trade: trade.timestamp, reverse=True)
    return trades


def limit_trades(trades: Sequence[Trade], side: TradeSide, limit: int = DEFAULT_DISPLAY_LIMIT) -> list[Trade]:
    if limit <= 0:
        return []
    selected: list[Trade] = []
    for trade in trades:
        if trade.side is not side:
            continue
        selected.append(trade)
        if len(selected) >= limit:
            break
    return selected


def max_volume(trades: Iterable[Trade]) -> float:
    return max((trade.volume for trade in trades), default=0.0)


def relative_size(volume: float, largest: float) -> float:
    if not volume or not largest:
        return 0.0
    return volume / largest


def size_bucket(volume: float, largest: float) -> str:
    ratio = relative_size(volume, largest)
    if ratio > 0.75:
        return SIZE_LARGE
    if ratio > 0.5:
        return SIZE_MEDIUM
    if ratio > 0.25:
        return SIZE_SMALL
    return SIZE_NORMAL
